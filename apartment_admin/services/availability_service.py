import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from apartment_admin.core.errors import StorageError
from apartment_admin.domain.availability import validate_stay
from apartment_admin.models import Apartment, Booking, BookingStatus

logger = logging.getLogger(__name__)


@dataclass
class AvailabilityResult:
    apartment_id: int
    from_datetime: datetime
    to_datetime: datetime
    conflicts: List[Booking] = field(default_factory=list)

    @property
    def is_available(self) -> bool:
        return not self.conflicts


class AvailabilityChecker:
    """Finds non-cancelled bookings of an apartment that overlap a stay."""

    @staticmethod
    def overlap_query(
        apartment_id: int,
        from_datetime: datetime,
        to_datetime: datetime,
        exclude_booking_id: Optional[int] = None,
    ):
        # Inclusive bounds: touching stays conflict
        query = select(Booking).where(
            Booking.apartment_id == apartment_id,
            Booking.booking_status != BookingStatus.CANCELLED,
            Booking.from_datetime <= to_datetime,
            Booking.to_datetime >= from_datetime,
        )
        if exclude_booking_id is not None:
            query = query.where(Booking.id != exclude_booking_id)
        return query.order_by(Booking.from_datetime, Booking.id)

    @staticmethod
    async def check_overlap(
        db: AsyncSession,
        apartment_id: int,
        from_datetime: datetime,
        to_datetime: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> AvailabilityResult:
        """
        Conflicting bookings for the stay, in start order.

        An unreachable store is an error, never "available".
        """
        start, end = validate_stay(from_datetime, to_datetime)
        query = AvailabilityChecker.overlap_query(apartment_id, start, end, exclude_booking_id)
        try:
            result = await db.execute(query)
            conflicts = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error checking availability for apartment {apartment_id}: {e}")
            raise StorageError("Could not check availability, try again") from e

        if conflicts:
            logger.info(
                f"Apartment {apartment_id}: {len(conflicts)} conflict(s) for "
                f"{start.isoformat()} - {end.isoformat()}"
            )
        return AvailabilityResult(
            apartment_id=apartment_id,
            from_datetime=start,
            to_datetime=end,
            conflicts=conflicts,
        )

    @staticmethod
    async def get_available_apartments(
        db: AsyncSession, from_datetime: datetime, to_datetime: datetime
    ) -> List[Apartment]:
        """Active apartments with no overlapping booking for the stay."""
        start, end = validate_stay(from_datetime, to_datetime)
        busy = select(Booking.apartment_id).where(
            Booking.booking_status != BookingStatus.CANCELLED,
            Booking.from_datetime <= end,
            Booking.to_datetime >= start,
        )
        query = (
            select(Apartment)
            .where(Apartment.is_active.is_(True), Apartment.id.not_in(busy))
            .order_by(Apartment.name)
        )
        try:
            result = await db.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Error getting available apartments: {e}")
            raise StorageError("Could not check availability, try again") from e
        return list(result.scalars().all())
