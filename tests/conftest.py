"""
Pytest configuration for apartment booking admin tests
"""
import sys
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio

# Ensure app is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from apartment_admin.core.config import Settings  # noqa: E402
from apartment_admin.core.rate_limiter import limiter  # noqa: E402
from apartment_admin.core.security import get_password_hash  # noqa: E402
from apartment_admin.database import build_engine, build_sessionmaker, init_db  # noqa: E402
from apartment_admin.models import (  # noqa: E402
    Apartment,
    Booking,
    BookingStatus,
    Floor,
    Guest,
    PaymentType,
    PricingRule,
    Season,
    User,
    UserRole,
)

ADMIN_PASSWORD = "secret-pass"


def make_rule(**overrides):
    """Plain pricing terms, no database needed."""
    values = dict(
        rate_1_3=Decimal("100.00"),
        rate_4_6=Decimal("90.00"),
        rate_7_plus=Decimal("80.00"),
        season_regular=Decimal("1.00"),
        season_peak=Decimal("1.20"),
        season_offpeak=Decimal("0.80"),
        tax_percent=Decimal("10.00"),
        currency="USD",
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture
async def engine(database_url):
    engine = build_engine(database_url)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(session_factory):
    """Admin user, one apartment, one guest and a pricing rule effective since 2020."""
    async with session_factory() as session:
        user = User(
            name="Admin",
            email="admin@example.com",
            hashed_password=get_password_hash(ADMIN_PASSWORD),
            role=UserRole.SUPER_ADMIN,
        )
        apartment = Apartment(name="Sea View", floor=Floor.FIRST, unit="1A")
        guest = Guest(name="Jane Doe", phone="+15550001111", email="jane@example.com")
        rule = PricingRule(
            rate_1_3=Decimal("100.00"),
            rate_4_6=Decimal("90.00"),
            rate_7_plus=Decimal("80.00"),
            season_regular=Decimal("1.00"),
            season_peak=Decimal("1.20"),
            season_offpeak=Decimal("0.80"),
            tax_percent=Decimal("10.00"),
            currency="USD",
            effective_date=date(2020, 1, 1),
        )
        session.add_all([user, apartment, guest, rule])
        await session.commit()
        return SimpleNamespace(
            user_id=user.id, apartment_id=apartment.id, guest_id=guest.id, rule_id=rule.id
        )


async def insert_booking(session, seeded, start, end, status=BookingStatus.CONFIRMED, **extra):
    """Raw row insert, bypassing the service checks."""
    booking = Booking(
        guest_id=seeded.guest_id,
        apartment_id=seeded.apartment_id,
        from_datetime=start,
        to_datetime=end,
        days=max(1, (end - start).days),
        season=Season.REGULAR,
        base_rate=Decimal("100.00"),
        multiplier=Decimal("1.00"),
        subtotal=Decimal("100.00"),
        discount=Decimal("0.00"),
        tax=Decimal("10.00"),
        grand_total=Decimal("110.00"),
        currency="USD",
        payment_type=PaymentType.FULL,
        booking_status=status,
        booking_by_user=seeded.user_id,
        **extra,
    )
    session.add(booking)
    await session.commit()
    return booking


@pytest.fixture
def sample_booking_data():
    """Sample payload for booking creation"""
    return {
        "guest_name": "Test Guest",
        "guest_phone": "+15550002222",
        "guest_email": "guest@example.com",
        "apartment_id": 1,
        "from_datetime": datetime(2030, 3, 1, 14, 0).isoformat(),
        "to_datetime": datetime(2030, 3, 4, 11, 0).isoformat(),
        "season": "regular",
        "discount": "0",
        "payment_type": "full",
        "booking_status": "draft",
    }


@pytest.fixture
def test_settings(database_url):
    return Settings(
        database_url=database_url,
        admin_email="admin@example.com",
        admin_password=ADMIN_PASSWORD,
        admin_name="Admin",
        email_host="smtp.test",
        email_from="bookings@example.com",
    )
