"""
Unit tests for booking service logic
"""
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import delete, func, select

from apartment_admin.core.errors import (
    ConflictError,
    NoPricingRuleError,
    NotFoundError,
    NotificationError,
    ValidationError,
)
from apartment_admin.domain.lifecycle import STRICT_POLICY
from apartment_admin.models import Booking, BookingStatus, Guest, PricingRule
from apartment_admin.schemas.booking import BookingCreate, BookingUpdate
from apartment_admin.services.booking_service import BookingService

from conftest import insert_booking

START = datetime(2030, 3, 1, 14, 0)
END = datetime(2030, 3, 4, 11, 0)  # 2 days 21 hours -> 3 billable days


def make_notifier(side_effect=None):
    notifier = MagicMock()
    notifier.enabled = True
    notifier.send_booking_confirmation = AsyncMock(side_effect=side_effect)
    return notifier


def booking_payload(seeded, **overrides):
    data = dict(
        guest_id=seeded.guest_id,
        apartment_id=seeded.apartment_id,
        from_datetime=START,
        to_datetime=END,
        season="regular",
        discount=Decimal("0"),
        payment_type="full",
        booking_status="draft",
    )
    data.update(overrides)
    return data


async def count_bookings(db):
    return (await db.execute(select(func.count(Booking.id)))).scalar_one()


class TestCreateBooking:
    @pytest.mark.asyncio
    async def test_prices_and_persists(self, db, seeded):
        service = BookingService()
        booking = await service.create_booking(db, BookingCreate(**booking_payload(seeded)), seeded.user_id)

        assert booking.id is not None
        assert booking.days == 3
        assert booking.base_rate == Decimal("100.00")
        assert booking.subtotal == Decimal("300.00")
        assert booking.tax == Decimal("30.00")
        assert booking.grand_total == Decimal("330.00")
        assert booking.currency == "USD"
        assert booking.booking_by_user == seeded.user_id
        assert booking.unit_no == "1A"  # defaults from the apartment
        assert booking.email_sent is False

    @pytest.mark.asyncio
    async def test_creates_guest_inline(self, db, seeded):
        service = BookingService()
        payload = booking_payload(
            seeded, guest_id=None, guest_name="New Guest", guest_phone="+15559990000",
            guest_email="NEW@Example.com",
        )
        booking = await service.create_booking(db, BookingCreate(**payload), seeded.user_id)

        assert booking.guest.name == "New Guest"
        assert booking.guest.email == "new@example.com"
        assert booking.guest_id != seeded.guest_id

    @pytest.mark.asyncio
    async def test_reuses_guest_by_phone(self, db, seeded):
        service = BookingService()
        payload = booking_payload(
            seeded, guest_id=None, guest_name="Jane D.", guest_phone="+15550001111"
        )
        booking = await service.create_booking(db, BookingCreate(**payload), seeded.user_id)

        assert booking.guest_id == seeded.guest_id
        assert booking.guest.name == "Jane D."

    @pytest.mark.asyncio
    async def test_overlap_is_rejected(self, db, seeded):
        existing = await insert_booking(db, seeded, datetime(2030, 2, 27), START)
        existing_id = existing.id
        service = BookingService()
        payload = booking_payload(
            seeded, guest_id=None, guest_name="Late Guest", guest_phone="+15553334444"
        )

        with pytest.raises(ConflictError) as exc:
            await service.create_booking(db, BookingCreate(**payload), seeded.user_id)

        assert [c["id"] for c in exc.value.conflicts] == [existing_id]
        assert await count_bookings(db) == 1
        # The inline guest was rolled back with the booking
        guests = (await db.execute(select(Guest).where(Guest.phone == "+15553334444"))).all()
        assert guests == []

    @pytest.mark.asyncio
    async def test_cancelled_booking_does_not_block(self, db, seeded):
        await insert_booking(db, seeded, START, END, status=BookingStatus.CANCELLED)
        booking = await BookingService().create_booking(
            db, BookingCreate(**booking_payload(seeded)), seeded.user_id
        )
        assert booking.id is not None

    @pytest.mark.asyncio
    async def test_no_pricing_rule(self, db, seeded):
        await db.execute(delete(PricingRule))
        await db.commit()

        with pytest.raises(NoPricingRuleError):
            await BookingService().create_booking(
                db, BookingCreate(**booking_payload(seeded)), seeded.user_id
            )
        assert await count_bookings(db) == 0

    @pytest.mark.asyncio
    async def test_future_rule_is_not_in_effect(self, db, seeded):
        await db.execute(delete(PricingRule))
        db.add(
            PricingRule(
                rate_1_3=Decimal("1"), rate_4_6=Decimal("1"), rate_7_plus=Decimal("1"),
                effective_date=datetime(2999, 1, 1).date(),
            )
        )
        await db.commit()

        with pytest.raises(NoPricingRuleError):
            await BookingService().create_booking(
                db, BookingCreate(**booking_payload(seeded)), seeded.user_id
            )

    @pytest.mark.asyncio
    async def test_unknown_apartment(self, db, seeded):
        with pytest.raises(NotFoundError):
            await BookingService().create_booking(
                db, BookingCreate(**booking_payload(seeded, apartment_id=999)), seeded.user_id
            )


class TestUpdateBooking:
    @pytest.mark.asyncio
    async def test_recomputes_totals_and_excludes_self(self, db, seeded):
        service = BookingService()
        booking = await service.create_booking(db, BookingCreate(**booking_payload(seeded)), seeded.user_id)

        updated = await service.update_booking(
            db,
            booking.id,
            BookingUpdate(**booking_payload(
                seeded, to_datetime=datetime(2030, 3, 8, 14, 0), season="peak", discount=Decimal("50")
            )),
        )

        assert updated.days == 7
        assert updated.base_rate == Decimal("80.00")
        assert updated.subtotal == Decimal("622.00")
        assert updated.grand_total == Decimal("684.20")

    @pytest.mark.asyncio
    async def test_update_into_conflict(self, db, seeded):
        service = BookingService()
        booking = await service.create_booking(db, BookingCreate(**booking_payload(seeded)), seeded.user_id)
        await insert_booking(db, seeded, datetime(2030, 3, 10), datetime(2030, 3, 12))
        booking_id = booking.id

        with pytest.raises(ConflictError):
            await service.update_booking(
                db, booking_id,
                BookingUpdate(**booking_payload(seeded, to_datetime=datetime(2030, 3, 11))),
            )

        reloaded = await service.get_booking(db, booking_id)
        assert reloaded.to_datetime == END

    @pytest.mark.asyncio
    async def test_cancelling_skips_conflict_check(self, db, seeded):
        service = BookingService()
        await service.create_booking(db, BookingCreate(**booking_payload(seeded)), seeded.user_id)
        legacy = await insert_booking(db, seeded, START, END, status=BookingStatus.CANCELLED)

        updated = await service.update_booking(
            db, legacy.id,
            BookingUpdate(**booking_payload(seeded, booking_status="cancelled")),
        )
        assert updated.booking_status == BookingStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_strict_policy(self, db, seeded):
        service = BookingService(status_policy=STRICT_POLICY)
        booking = await service.create_booking(
            db, BookingCreate(**booking_payload(seeded, booking_status="cancelled")), seeded.user_id
        )
        with pytest.raises(ValidationError):
            await service.update_booking(
                db, booking.id, BookingUpdate(**booking_payload(seeded, booking_status="confirmed"))
            )

    @pytest.mark.asyncio
    async def test_missing_booking(self, db, seeded):
        with pytest.raises(NotFoundError):
            await BookingService().update_booking(db, 999, BookingUpdate(**booking_payload(seeded)))


class TestConfirmationEmail:
    @pytest.mark.asyncio
    async def test_sent_on_entering_confirmed(self, db, seeded):
        notifier = make_notifier()
        service = BookingService(notifier=notifier)

        booking = await service.create_booking(
            db, BookingCreate(**booking_payload(seeded, booking_status="confirmed")), seeded.user_id
        )

        notifier.send_booking_confirmation.assert_awaited_once()
        assert booking.email_sent is True

    @pytest.mark.asyncio
    async def test_failure_does_not_fail_the_write(self, db, seeded):
        notifier = make_notifier(side_effect=NotificationError("SMTP down"))
        service = BookingService(notifier=notifier)

        booking = await service.create_booking(
            db, BookingCreate(**booking_payload(seeded, booking_status="confirmed")), seeded.user_id
        )

        assert booking.id is not None
        assert booking.email_sent is False
        assert await count_bookings(db) == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_fail_the_write(self, db, seeded):
        notifier = make_notifier(side_effect=RuntimeError("template exploded"))
        service = BookingService(notifier=notifier)

        booking = await service.create_booking(
            db, BookingCreate(**booking_payload(seeded, booking_status="confirmed")), seeded.user_id
        )

        notifier.send_booking_confirmation.assert_awaited_once()
        assert booking.email_sent is False
        assert await count_bookings(db) == 1

    @pytest.mark.asyncio
    async def test_not_sent_again_while_confirmed(self, db, seeded):
        notifier = make_notifier()
        service = BookingService(notifier=notifier)
        booking = await service.create_booking(
            db, BookingCreate(**booking_payload(seeded, booking_status="confirmed")), seeded.user_id
        )
        await service.update_booking(
            db, booking.id,
            BookingUpdate(**booking_payload(seeded, booking_status="confirmed", discount=Decimal("10"))),
        )
        assert notifier.send_booking_confirmation.await_count == 1

    @pytest.mark.asyncio
    async def test_draft_does_not_send(self, db, seeded):
        notifier = make_notifier()
        await BookingService(notifier=notifier).create_booking(
            db, BookingCreate(**booking_payload(seeded)), seeded.user_id
        )
        notifier.send_booking_confirmation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_explicit_send_propagates_failure(self, db, seeded):
        notifier = make_notifier()
        notifier.enabled = False  # keep the automatic trigger quiet
        service = BookingService(notifier=notifier)
        booking = await service.create_booking(
            db, BookingCreate(**booking_payload(seeded, booking_status="confirmed")), seeded.user_id
        )
        notifier.send_booking_confirmation.side_effect = NotificationError("SMTP down")

        with pytest.raises(NotificationError):
            await service.send_confirmation(db, booking.id)

    @pytest.mark.asyncio
    async def test_explicit_send_refuses_when_already_sent(self, db, seeded):
        service = BookingService(notifier=make_notifier())
        booking = await service.create_booking(
            db, BookingCreate(**booking_payload(seeded, booking_status="confirmed")), seeded.user_id
        )
        assert booking.email_sent
        with pytest.raises(ValidationError):
            await service.send_confirmation(db, booking.id)

    @pytest.mark.asyncio
    async def test_explicit_send_requires_confirmed(self, db, seeded):
        service = BookingService(notifier=make_notifier())
        booking = await service.create_booking(
            db, BookingCreate(**booking_payload(seeded)), seeded.user_id
        )
        with pytest.raises(ValidationError):
            await service.send_confirmation(db, booking.id)


class TestListBookings:
    @pytest.mark.asyncio
    async def test_filters_and_pagination(self, db, seeded):
        service = BookingService()
        await service.create_booking(db, BookingCreate(**booking_payload(seeded)), seeded.user_id)
        await service.create_booking(
            db,
            BookingCreate(**booking_payload(
                seeded, from_datetime=datetime(2030, 4, 1), to_datetime=datetime(2030, 4, 3),
                booking_status="confirmed",
            )),
            seeded.user_id,
        )

        everything, total = await service.list_bookings(db)
        confirmed, confirmed_total = await service.list_bookings(db, booking_status=BookingStatus.CONFIRMED)
        by_name, _ = await service.list_bookings(db, search="jane")
        page_two, _ = await service.list_bookings(db, page=2, limit=1, sort="from_datetime", order="asc")

        assert total == 2 and len(everything) == 2
        assert confirmed_total == 1
        assert len(by_name) == 2
        assert page_two[0].from_datetime == datetime(2030, 4, 1)
