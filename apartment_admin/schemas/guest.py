from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from apartment_admin.models import GuestType
from apartment_admin.schemas.common import Pagination, normalize_email


class GuestBase(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    phone: str = Field(min_length=10, max_length=20)
    email: Optional[str] = Field(default=None, max_length=100)
    address: Optional[str] = None
    guest_type: GuestType = GuestType.LOCAL
    place_or_country: Optional[str] = Field(default=None, max_length=100)
    introduced: bool = False
    introduced_by: Optional[str] = Field(default=None, max_length=100)

    @field_validator("name", "phone")
    @classmethod
    def strip(cls, v: str):
        return v.strip()

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]):
        if v is None or not v.strip():
            return None
        return normalize_email(v)


class GuestCreate(GuestBase):
    pass


class GuestUpdate(GuestBase):
    pass


class GuestBrief(BaseModel):
    id: int
    name: str
    phone: str
    email: Optional[str] = None
    guest_type: GuestType

    model_config = ConfigDict(from_attributes=True)


class GuestOut(GuestBase):
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GuestListOut(BaseModel):
    guests: list[GuestOut]
    pagination: Pagination
