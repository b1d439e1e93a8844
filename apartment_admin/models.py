from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    String,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    Text,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from apartment_admin.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserRole(str, Enum):
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class Floor(str, Enum):
    GROUND = "ground"
    FIRST = "first"
    SECOND = "second"


class GuestType(str, Enum):
    LOCAL = "local"
    FOREIGN = "foreign"


class Season(str, Enum):
    REGULAR = "regular"
    PEAK = "peak"
    OFFPEAK = "offpeak"


class PaymentType(str, Enum):
    FULL = "full"
    ADVANCE = "advance"
    OTHER = "other"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BANK = "bank"
    ONLINE = "online"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


class BookingStatus(str, Enum):
    DRAFT = "draft"
    TENTATIVE = "tentative"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked-in"
    CHECKED_OUT = "checked-out"
    CANCELLED = "cancelled"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    email: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(SQLEnum(UserRole), default=UserRole.ADMIN)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )


class Apartment(Base):
    __tablename__ = "apartments"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    floor: Mapped[Optional[Floor]] = mapped_column(SQLEnum(Floor), nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)  # soft delete

    # Bumped inside every booking write for this apartment; the UPDATE takes
    # the row lock that serializes concurrent check-and-insert.
    booking_revision: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    bookings: Mapped[list["Booking"]] = relationship(back_populates="apartment")


class Guest(Base):
    __tablename__ = "guests"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[str] = mapped_column(String(20), index=True)
    email: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    guest_type: Mapped[GuestType] = mapped_column(
        SQLEnum(GuestType), default=GuestType.LOCAL
    )
    place_or_country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    introduced: Mapped[bool] = mapped_column(Boolean, default=False)
    introduced_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    bookings: Mapped[list["Booking"]] = relationship(back_populates="guest")


class PricingRule(Base):
    __tablename__ = "pricing_rules"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Per-day tier rates
    rate_1_3: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    rate_4_6: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    rate_7_plus: Mapped[Decimal] = mapped_column(Numeric(10, 2))

    # Season multipliers
    season_regular: Mapped[Decimal] = mapped_column(Numeric(4, 2), default=Decimal("1.00"))
    season_peak: Mapped[Decimal] = mapped_column(Numeric(4, 2), default=Decimal("1.20"))
    season_offpeak: Mapped[Decimal] = mapped_column(Numeric(4, 2), default=Decimal("0.80"))

    tax_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0.00"))
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    effective_date: Mapped[date] = mapped_column(Date, index=True)
    updated_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Связи
    guest_id: Mapped[int] = mapped_column(ForeignKey("guests.id"), index=True)
    guest: Mapped["Guest"] = relationship(back_populates="bookings")
    apartment_id: Mapped[int] = mapped_column(ForeignKey("apartments.id"), index=True)
    apartment: Mapped["Apartment"] = relationship(back_populates="bookings")
    floor: Mapped[Optional[Floor]] = mapped_column(SQLEnum(Floor), nullable=True)
    unit_no: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Stay
    from_datetime: Mapped[datetime] = mapped_column(DateTime, index=True)
    to_datetime: Mapped[datetime] = mapped_column(DateTime, index=True)
    days: Mapped[int] = mapped_column(Integer)
    season: Mapped[Season] = mapped_column(SQLEnum(Season), default=Season.REGULAR)

    # Price breakdown, recomputed on every write
    base_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    multiplier: Mapped[Decimal] = mapped_column(Numeric(4, 2), default=Decimal("1.00"))
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"))
    tax: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"))
    grand_total: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    # Payment
    payment_type: Mapped[PaymentType] = mapped_column(SQLEnum(PaymentType))
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"))
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, index=True
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod), default=PaymentMethod.CASH
    )

    # Метаданные
    booking_status: Mapped[BookingStatus] = mapped_column(
        SQLEnum(BookingStatus), default=BookingStatus.DRAFT, index=True
    )
    booking_by_user: Mapped[int] = mapped_column(ForeignKey("users.id"))
    booked_by: Mapped["User"] = relationship()
    email_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    entity: Mapped[str] = mapped_column(String(50))
    entity_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    action: Mapped[str] = mapped_column(String(50))
    old_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON
    new_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), nullable=True, index=True
    )
    user: Mapped[Optional["User"]] = relationship()
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
