"""
Availability checks against a real SQLite database
"""
from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError
from unittest.mock import AsyncMock

from apartment_admin.core.errors import StorageError, ValidationError
from apartment_admin.models import BookingStatus
from apartment_admin.services.availability_service import AvailabilityChecker

from conftest import insert_booking

A_FROM = datetime(2030, 1, 10, 14, 0)
A_TO = datetime(2030, 1, 12, 11, 0)


@pytest.mark.asyncio
async def test_free_apartment(db, seeded):
    result = await AvailabilityChecker.check_overlap(db, seeded.apartment_id, A_FROM, A_TO)
    assert result.is_available
    assert result.conflicts == []


@pytest.mark.asyncio
async def test_touching_boundary_is_a_conflict(db, seeded):
    existing = await insert_booking(db, seeded, A_FROM, A_TO)

    result = await AvailabilityChecker.check_overlap(
        db, seeded.apartment_id, datetime(2030, 1, 12, 11, 0), datetime(2030, 1, 14, 11, 0)
    )

    assert not result.is_available
    assert [b.id for b in result.conflicts] == [existing.id]


@pytest.mark.asyncio
async def test_stay_inside_existing_booking(db, seeded):
    await insert_booking(db, seeded, datetime(2030, 1, 1), datetime(2030, 1, 20))
    result = await AvailabilityChecker.check_overlap(db, seeded.apartment_id, A_FROM, A_TO)
    assert not result.is_available


@pytest.mark.asyncio
async def test_returns_every_conflict_in_start_order(db, seeded):
    second = await insert_booking(db, seeded, datetime(2030, 1, 15), datetime(2030, 1, 17))
    first = await insert_booking(db, seeded, datetime(2030, 1, 5), datetime(2030, 1, 7))

    result = await AvailabilityChecker.check_overlap(
        db, seeded.apartment_id, datetime(2030, 1, 6), datetime(2030, 1, 16)
    )
    assert [b.id for b in result.conflicts] == [first.id, second.id]


@pytest.mark.asyncio
async def test_cancelled_bookings_are_ignored(db, seeded):
    await insert_booking(db, seeded, A_FROM, A_TO, status=BookingStatus.CANCELLED)
    result = await AvailabilityChecker.check_overlap(db, seeded.apartment_id, A_FROM, A_TO)
    assert result.is_available


@pytest.mark.asyncio
async def test_excludes_own_booking(db, seeded):
    existing = await insert_booking(db, seeded, A_FROM, A_TO)
    result = await AvailabilityChecker.check_overlap(
        db, seeded.apartment_id, A_FROM, datetime(2030, 1, 13, 11, 0), exclude_booking_id=existing.id
    )
    assert result.is_available


@pytest.mark.asyncio
async def test_other_apartment_is_not_a_conflict(db, seeded):
    await insert_booking(db, seeded, A_FROM, A_TO)
    result = await AvailabilityChecker.check_overlap(db, seeded.apartment_id + 1, A_FROM, A_TO)
    assert result.is_available


@pytest.mark.asyncio
async def test_inverted_range(db, seeded):
    with pytest.raises(ValidationError):
        await AvailabilityChecker.check_overlap(db, seeded.apartment_id, A_TO, A_FROM)


@pytest.mark.asyncio
async def test_storage_failure_is_never_available():
    broken = AsyncMock()
    broken.execute.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))

    with pytest.raises(StorageError):
        await AvailabilityChecker.check_overlap(broken, 1, A_FROM, A_TO)


@pytest.mark.asyncio
async def test_available_apartments(db, seeded):
    await insert_booking(db, seeded, A_FROM, A_TO)
    free = await AvailabilityChecker.get_available_apartments(
        db, datetime(2030, 2, 1), datetime(2030, 2, 3)
    )
    busy = await AvailabilityChecker.get_available_apartments(db, A_FROM, A_TO)
    assert [a.id for a in free] == [seeded.apartment_id]
    assert busy == []
