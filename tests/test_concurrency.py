"""
Two simultaneous requests for the same stay: exactly one booking wins.
"""
import asyncio
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from apartment_admin.core.errors import ConflictError, StorageError
from apartment_admin.models import Booking
from apartment_admin.schemas.booking import BookingCreate
from apartment_admin.services.booking_service import BookingService


@pytest.mark.asyncio
async def test_concurrent_creates_for_same_stay(session_factory, seeded):
    service = BookingService()

    async def attempt(phone):
        payload = BookingCreate(
            guest_name=f"Guest {phone}",
            guest_phone=phone,
            apartment_id=seeded.apartment_id,
            from_datetime=datetime(2030, 5, 1, 14, 0),
            to_datetime=datetime(2030, 5, 3, 11, 0),
            discount=Decimal("0"),
        )
        async with session_factory() as session:
            return await service.create_booking(session, payload, seeded.user_id)

    results = await asyncio.gather(
        attempt("+15551110001"), attempt("+15551110002"), return_exceptions=True
    )

    successes = [r for r in results if isinstance(r, Booking)]
    failures = [r for r in results if not isinstance(r, Booking)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], (ConflictError, StorageError))

    async with session_factory() as session:
        total = (await session.execute(select(func.count(Booking.id)))).scalar_one()
    assert total == 1


@pytest.mark.asyncio
async def test_sequential_creates_for_same_stay(session_factory, seeded):
    service = BookingService()
    payload = BookingCreate(
        guest_id=seeded.guest_id,
        apartment_id=seeded.apartment_id,
        from_datetime=datetime(2030, 6, 1),
        to_datetime=datetime(2030, 6, 4),
    )
    async with session_factory() as first:
        await service.create_booking(first, payload, seeded.user_id)
    async with session_factory() as second:
        with pytest.raises(ConflictError):
            await service.create_booking(second, payload, seeded.user_id)
