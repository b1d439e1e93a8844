from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from apartment_admin.models import UserRole
from apartment_admin.schemas.common import normalize_email


class UserBase(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    email: str = Field(max_length=100)
    role: UserRole = UserRole.ADMIN

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str):
        return normalize_email(v)


class UserCreate(UserBase):
    password: str = Field(min_length=6)


class UserUpdate(UserBase):
    is_active: bool


class PasswordReset(BaseModel):
    new_password: str = Field(min_length=6)


class UserOut(UserBase):
    id: int
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    email: str
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str):
        return normalize_email(v)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut
