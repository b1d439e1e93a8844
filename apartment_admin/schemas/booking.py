from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from apartment_admin.domain.availability import normalize_instant
from apartment_admin.models import (
    BookingStatus,
    Floor,
    GuestType,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    Season,
)
from apartment_admin.schemas.apartment import ApartmentBrief
from apartment_admin.schemas.common import Pagination, normalize_email
from apartment_admin.schemas.guest import GuestBrief


class BookingBase(BaseModel):
    # Guest: either an existing guest_id, or details for a new guest
    guest_id: Optional[int] = Field(default=None, ge=1)
    guest_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    guest_phone: Optional[str] = Field(default=None, min_length=1, max_length=20)
    guest_email: Optional[str] = Field(default=None, max_length=100)
    guest_address: Optional[str] = None
    guest_type: GuestType = GuestType.LOCAL
    place_or_country: Optional[str] = Field(default=None, max_length=100)
    introduced: bool = False
    introduced_by: Optional[str] = Field(default=None, max_length=100)

    apartment_id: int = Field(ge=1)
    floor: Optional[Floor] = None
    unit_no: Optional[str] = Field(default=None, max_length=50)
    from_datetime: datetime
    to_datetime: datetime

    season: Season = Season.REGULAR
    discount: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)

    payment_type: PaymentType = PaymentType.FULL
    amount_paid: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: PaymentMethod = PaymentMethod.CASH
    booking_status: BookingStatus = BookingStatus.DRAFT

    @field_validator("guest_email")
    @classmethod
    def validate_email(cls, v: Optional[str]):
        if v is None or not v.strip():
            return None
        return normalize_email(v, "guest_email")

    @field_validator("from_datetime", "to_datetime")
    @classmethod
    def to_utc(cls, v: datetime):
        return normalize_instant(v)

    @field_validator("to_datetime")
    @classmethod
    def validate_dates(cls, v: datetime, info):
        start = info.data.get("from_datetime")
        if start and v <= start:
            raise ValueError("to_datetime must be after from_datetime")
        return v

    @model_validator(mode="after")
    def require_guest(self):
        if self.guest_id is None and not (self.guest_name and self.guest_phone):
            raise ValueError("guest_id or guest_name and guest_phone are required")
        return self


class BookingCreate(BookingBase):
    pass


class BookingUpdate(BookingBase):
    """Full replacement, like the admin form submits it."""


class BookingConflictOut(BaseModel):
    id: int
    apartment_id: int
    guest_id: int
    from_datetime: datetime
    to_datetime: datetime
    booking_status: BookingStatus

    model_config = ConfigDict(from_attributes=True)


class BookingOut(BaseModel):
    id: int
    guest_id: int
    apartment_id: int
    floor: Optional[Floor] = None
    unit_no: Optional[str] = None
    from_datetime: datetime
    to_datetime: datetime
    days: int
    season: Season
    base_rate: Decimal
    multiplier: Decimal
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    grand_total: Decimal
    currency: str
    payment_type: PaymentType
    amount_paid: Decimal
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    booking_status: BookingStatus
    booking_by_user: int
    email_sent: bool
    created_at: datetime
    updated_at: datetime

    guest: Optional[GuestBrief] = None
    apartment: Optional[ApartmentBrief] = None

    model_config = ConfigDict(from_attributes=True)


class BookingListOut(BaseModel):
    bookings: list[BookingOut]
    pagination: Pagination


class AvailabilityOut(BaseModel):
    apartment_id: int
    from_datetime: datetime
    to_datetime: datetime
    is_available: bool
    conflicts: list[BookingConflictOut]

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
