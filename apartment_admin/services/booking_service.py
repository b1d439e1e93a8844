import logging
from datetime import date, datetime, time
from typing import List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from apartment_admin.core.errors import (
    BookingAdminError,
    ConflictError,
    NotFoundError,
    NotificationError,
    StorageError,
    ValidationError,
)
from apartment_admin.domain import pricing
from apartment_admin.domain.availability import stay_days, validate_stay
from apartment_admin.domain.lifecycle import (
    PERMISSIVE_POLICY,
    BookingStatusPolicy,
    enters_confirmed,
)
from apartment_admin.models import (
    Apartment,
    Booking,
    BookingStatus,
    Guest,
    GuestType,
    PaymentStatus,
)
from apartment_admin.schemas.booking import BookingBase, BookingConflictOut
from apartment_admin.services.availability_service import (
    AvailabilityChecker,
    AvailabilityResult,
)
from apartment_admin.services.guest_service import GuestService
from apartment_admin.services.notification_service import EmailNotifier
from apartment_admin.services.pricing_service import PricingService

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "created_at": Booking.created_at,
    "from_datetime": Booking.from_datetime,
    "guest_name": Guest.name,
}

GUEST_FIELDS = {
    "guest_name": "name",
    "guest_phone": "phone",
    "guest_email": "email",
    "guest_address": "address",
    "guest_type": "guest_type",
    "place_or_country": "place_or_country",
    "introduced": "introduced",
    "introduced_by": "introduced_by",
}


def serialize_conflicts(conflicts: List[Booking]) -> List[dict]:
    return [BookingConflictOut.model_validate(b).model_dump(mode="json") for b in conflicts]


class BookingService:
    """Сервис бизнес-логики для бронирований"""

    def __init__(
        self,
        notifier: Optional[EmailNotifier] = None,
        status_policy: BookingStatusPolicy = PERMISSIVE_POLICY,
        clamp_negative: bool = False,
    ):
        self.notifier = notifier
        self.status_policy = status_policy
        self.clamp_negative = clamp_negative

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_bookings(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        apartment_id: Optional[int] = None,
        guest_type: Optional[GuestType] = None,
        payment_status: Optional[PaymentStatus] = None,
        booking_status: Optional[BookingStatus] = None,
        sort: str = "created_at",
        order: str = "desc",
    ) -> tuple[List[Booking], int]:
        filters = []
        if search:
            like = f"%{search}%"
            filters.append(or_(Guest.name.ilike(like), Guest.phone.ilike(like)))
        if date_from:
            filters.append(Booking.from_datetime >= datetime.combine(date_from, time.min))
        if date_to:
            filters.append(Booking.to_datetime <= datetime.combine(date_to, time.max))
        if apartment_id:
            filters.append(Booking.apartment_id == apartment_id)
        if guest_type:
            filters.append(Guest.guest_type == guest_type)
        if payment_status:
            filters.append(Booking.payment_status == payment_status)
        if booking_status:
            filters.append(Booking.booking_status == booking_status)

        count_query = (
            select(func.count(Booking.id))
            .select_from(Booking)
            .join(Guest, Booking.guest_id == Guest.id)
            .where(*filters)
        )
        total = (await db.execute(count_query)).scalar_one()

        column = SORT_FIELDS.get(sort, Booking.created_at)
        ordering = column.asc() if order.lower() == "asc" else column.desc()
        query = (
            select(Booking)
            .join(Guest, Booking.guest_id == Guest.id)
            .options(selectinload(Booking.guest), selectinload(Booking.apartment))
            .where(*filters)
            .order_by(ordering, Booking.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await db.execute(query)
        return list(result.scalars().all()), total

    async def get_booking(self, db: AsyncSession, booking_id: int) -> Booking:
        result = await db.execute(
            select(Booking)
            .options(selectinload(Booking.guest), selectinload(Booking.apartment))
            .where(Booking.id == booking_id)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking not found", booking_id=booking_id)
        return booking

    async def check_availability(
        self,
        db: AsyncSession,
        apartment_id: int,
        from_datetime: datetime,
        to_datetime: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> AvailabilityResult:
        return await AvailabilityChecker.check_overlap(
            db, apartment_id, from_datetime, to_datetime, exclude_booking_id
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def _lock_apartment(db: AsyncSession, apartment_id: int) -> Apartment:
        """
        Bump the apartment's booking_revision. The UPDATE holds the row (or,
        on SQLite, database) write lock until commit, so a concurrent writer
        for the same apartment runs its overlap check only after ours commits.
        """
        result = await db.execute(
            update(Apartment)
            .where(Apartment.id == apartment_id, Apartment.is_active.is_(True))
            .values(booking_revision=Apartment.booking_revision + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("Apartment not found", apartment_id=apartment_id)
        return await db.get(Apartment, apartment_id)

    @staticmethod
    def _apply_guest_details(guest: Guest, booking_in: BookingBase) -> None:
        data = booking_in.model_dump(include=set(GUEST_FIELDS), exclude_unset=True)
        for field, attr in GUEST_FIELDS.items():
            if field in data and data[field] is not None:
                setattr(guest, attr, data[field])

    async def _resolve_guest(self, db: AsyncSession, booking_in: BookingBase) -> Guest:
        """Existing guest by id, else by phone, else a new guest from the inline details."""
        if booking_in.guest_id is not None:
            guest = await db.get(Guest, booking_in.guest_id)
            if not guest:
                raise NotFoundError("Guest not found", guest_id=booking_in.guest_id)
        else:
            guest = await GuestService.find_by_phone(db, booking_in.guest_phone)
            if not guest:
                guest = Guest(
                    name=booking_in.guest_name,
                    phone=booking_in.guest_phone,
                    guest_type=booking_in.guest_type,
                    introduced=booking_in.introduced,
                )
                db.add(guest)
        self._apply_guest_details(guest, booking_in)
        await db.flush()
        return guest

    async def _ensure_available(
        self,
        db: AsyncSession,
        apartment_id: int,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> None:
        availability = await AvailabilityChecker.check_overlap(
            db, apartment_id, start, end, exclude_booking_id
        )
        if not availability.is_available:
            logger.warning(
                f"Cannot book apartment {apartment_id}: {start} - {end} overlaps "
                f"{[b.id for b in availability.conflicts]}"
            )
            raise ConflictError(
                "Apartment is already booked for the selected dates",
                conflicts=serialize_conflicts(availability.conflicts),
            )

    def _fill_booking(
        self,
        booking: Booking,
        booking_in: BookingBase,
        apartment: Apartment,
        guest: Guest,
        start: datetime,
        end: datetime,
        quote: pricing.PriceQuote,
    ) -> None:
        booking.guest_id = guest.id
        booking.guest = guest
        booking.apartment_id = apartment.id
        booking.apartment = apartment
        booking.floor = booking_in.floor or apartment.floor
        booking.unit_no = booking_in.unit_no or apartment.unit
        booking.from_datetime = start
        booking.to_datetime = end
        booking.days = quote.days
        booking.season = booking_in.season
        booking.base_rate = quote.base_rate
        booking.multiplier = quote.multiplier
        booking.subtotal = quote.subtotal
        booking.discount = quote.discount
        booking.tax = quote.tax
        booking.grand_total = quote.grand_total
        booking.currency = quote.currency
        booking.payment_type = booking_in.payment_type
        booking.amount_paid = pricing.to_money(booking_in.amount_paid)
        booking.payment_status = booking_in.payment_status
        booking.payment_method = booking_in.payment_method
        booking.booking_status = booking_in.booking_status

    async def _quote(self, db: AsyncSession, booking_in: BookingBase, days: int):
        rule = await PricingService.get_current_rule(db)
        return pricing.calculate(
            days,
            booking_in.season,
            booking_in.discount,
            rule,
            clamp_negative=self.clamp_negative,
        )

    async def create_booking(
        self, db: AsyncSession, booking_in: BookingBase, user_id: int
    ) -> Booking:
        """
        Lock the apartment, check overlaps, price the stay and insert, all in
        one transaction.
        """
        start, end = validate_stay(booking_in.from_datetime, booking_in.to_datetime)
        days = stay_days(start, end)

        try:
            apartment = await self._lock_apartment(db, booking_in.apartment_id)
            guest = await self._resolve_guest(db, booking_in)
            await self._ensure_available(db, apartment.id, start, end)
            quote = await self._quote(db, booking_in, days)

            booking = Booking(booking_by_user=user_id, email_sent=False)
            self._fill_booking(booking, booking_in, apartment, guest, start, end, quote)
            db.add(booking)
            await db.commit()
        except BookingAdminError:
            await db.rollback()
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error creating booking: {e}")
            raise StorageError("Could not save booking, try again") from e

        logger.info(
            f"✅ Booking {booking.id} created: apartment {apartment.id}, "
            f"{start} - {end}, total {booking.grand_total} {booking.currency}"
        )
        booking = await self.get_booking(db, booking.id)
        await self._notify_if_confirmed(db, booking, previous_status=None)
        return booking

    async def update_booking(
        self, db: AsyncSession, booking_id: int, booking_in: BookingBase
    ) -> Booking:
        """
        Full update. Totals are recomputed from the current pricing rule; the
        booking itself is excluded from the conflict check, and a booking
        being cancelled skips it.
        """
        start, end = validate_stay(booking_in.from_datetime, booking_in.to_datetime)
        days = stay_days(start, end)

        try:
            booking = await self.get_booking(db, booking_id)
            previous_status = booking.booking_status
            self.status_policy.ensure_transition(previous_status, booking_in.booking_status)

            apartment = await self._lock_apartment(db, booking_in.apartment_id)
            guest = await self._resolve_guest(db, booking_in)
            if booking_in.booking_status != BookingStatus.CANCELLED:
                await self._ensure_available(
                    db, apartment.id, start, end, exclude_booking_id=booking.id
                )
            quote = await self._quote(db, booking_in, days)

            self._fill_booking(booking, booking_in, apartment, guest, start, end, quote)
            await db.commit()
        except BookingAdminError:
            await db.rollback()
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error updating booking {booking_id}: {e}")
            raise StorageError("Could not save booking, try again") from e

        logger.info(f"Booking {booking_id} updated, status {booking.booking_status.value}")
        booking = await self.get_booking(db, booking_id)
        await self._notify_if_confirmed(db, booking, previous_status=previous_status)
        return booking

    async def delete_booking(self, db: AsyncSession, booking_id: int) -> Booking:
        booking = await self.get_booking(db, booking_id)
        try:
            await db.delete(booking)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error deleting booking {booking_id}: {e}")
            raise StorageError("Could not delete booking, try again") from e
        logger.info(f"🗑 Booking {booking_id} deleted")
        return booking

    # ------------------------------------------------------------------
    # Email
    # ------------------------------------------------------------------

    async def _mark_email_sent(self, db: AsyncSession, booking: Booking) -> None:
        booking.email_sent = True
        await db.commit()

    async def _notify_if_confirmed(
        self,
        db: AsyncSession,
        booking: Booking,
        previous_status: Optional[BookingStatus],
    ) -> None:
        """Send the confirmation on entering confirmed. Failures never undo the write."""
        if not enters_confirmed(previous_status, booking.booking_status):
            return
        if booking.email_sent or not booking.guest or not booking.guest.email:
            return
        if self.notifier is None or not self.notifier.enabled:
            logger.info(f"Email not configured, skipping confirmation for booking {booking.id}")
            return

        try:
            await self.notifier.send_booking_confirmation(booking)
            await self._mark_email_sent(db, booking)
        except NotificationError as e:
            logger.warning(f"⚠️ Booking {booking.id} saved but confirmation email failed: {e}")
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Email sent but could not flag booking {booking.id}: {e}")
        except Exception as e:
            logger.error(f"❌ Unexpected error sending confirmation for booking {booking.id}: {e}")

    async def send_confirmation(self, db: AsyncSession, booking_id: int) -> Booking:
        """Explicit send. Unlike the automatic trigger, failures propagate."""
        booking = await self.get_booking(db, booking_id)
        if booking.booking_status != BookingStatus.CONFIRMED:
            raise ValidationError(
                "Only confirmed bookings can be emailed",
                booking_status=booking.booking_status.value,
            )
        if booking.email_sent:
            raise ValidationError("Confirmation email already sent", booking_id=booking_id)
        if not booking.guest or not booking.guest.email:
            raise ValidationError("Guest has no email address", booking_id=booking_id)
        if self.notifier is None:
            raise NotificationError("Email sending is not configured", booking_id=booking_id)

        await self.notifier.send_booking_confirmation(booking)
        try:
            await self._mark_email_sent(db, booking)
        except SQLAlchemyError as e:
            await db.rollback()
            raise StorageError("Email sent but booking could not be updated") from e
        return booking
