from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from apartment_admin.models import Floor


class ApartmentBase(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    floor: Optional[Floor] = None
    unit: Optional[str] = Field(default=None, max_length=50)


class ApartmentCreate(ApartmentBase):
    pass


class ApartmentUpdate(ApartmentBase):
    pass


class ApartmentBrief(BaseModel):
    id: int
    name: str
    floor: Optional[Floor] = None

    model_config = ConfigDict(from_attributes=True)


class ApartmentOut(ApartmentBase):
    id: int
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
