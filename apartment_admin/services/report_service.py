"""
Dashboard figures and reports.

Bookings are loaded with plain range filters and aggregated in Python, so the
same code runs on SQLite and server databases alike.
"""
import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from apartment_admin.core.errors import ValidationError
from apartment_admin.domain.pricing import to_money
from apartment_admin.models import (
    Apartment,
    Booking,
    BookingStatus,
    Guest,
    PaymentStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

GROUP_BY_FORMATS = {
    "day": "%Y-%m-%d",
    "month": "%Y-%m",
    "year": "%Y",
}

UPCOMING_STATUSES = (BookingStatus.TENTATIVE, BookingStatus.CONFIRMED)


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min)


def _day_end(d: date) -> datetime:
    return datetime.combine(d, time.max)


def _default_range(
    start_date: Optional[date], end_date: Optional[date]
) -> tuple[date, date]:
    """Defaults to the current month up to today."""
    today = utcnow().date()
    start_date = start_date or today.replace(day=1)
    end_date = end_date or today
    if start_date > end_date:
        raise ValidationError("startDate must not be after endDate")
    return start_date, end_date


def _balance(booking: Booking) -> Decimal:
    return to_money(booking.grand_total - booking.amount_paid)


def _total(values: Iterable) -> Decimal:
    return to_money(sum(values, Decimal("0")))


def _booking_row(booking: Booking) -> dict:
    return {
        "id": booking.id,
        "guest_name": booking.guest.name if booking.guest else None,
        "guest_phone": booking.guest.phone if booking.guest else None,
        "apartment_name": booking.apartment.name if booking.apartment else None,
        "from_datetime": booking.from_datetime,
        "to_datetime": booking.to_datetime,
        "days": booking.days,
        "grand_total": booking.grand_total,
        "amount_paid": booking.amount_paid,
        "balance": _balance(booking),
        "currency": booking.currency,
        "payment_status": booking.payment_status.value,
        "booking_status": booking.booking_status.value,
    }


class ReportService:
    @staticmethod
    async def _bookings(db: AsyncSession, *filters) -> List[Booking]:
        result = await db.execute(
            select(Booking)
            .options(selectinload(Booking.guest), selectinload(Booking.apartment))
            .where(Booking.booking_status != BookingStatus.CANCELLED, *filters)
            .order_by(Booking.from_datetime)
        )
        return list(result.scalars().all())

    @staticmethod
    async def _bookings_starting(db: AsyncSession, start: date, end: date) -> List[Booking]:
        return await ReportService._bookings(
            db,
            Booking.from_datetime >= _day_start(start),
            Booking.from_datetime <= _day_end(end),
        )

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    @staticmethod
    async def get_dashboard_stats(db: AsyncSession) -> dict:
        now = utcnow()
        today = now.date()

        bookings = await ReportService._bookings(db)
        total_guests = (await db.execute(select(func.count(Guest.id)))).scalar_one()
        apartments = (
            await db.execute(
                select(func.count(Apartment.id)).where(Apartment.is_active.is_(True))
            )
        ).scalar_one()

        occupied = {
            b.apartment_id for b in bookings if b.from_datetime <= now <= b.to_datetime
        }
        month_start = _day_start(today.replace(day=1))

        return {
            "total_bookings": len(bookings),
            "active_bookings": sum(
                1 for b in bookings if b.booking_status == BookingStatus.CHECKED_IN
            ),
            "upcoming_bookings": sum(
                1
                for b in bookings
                if b.booking_status in UPCOMING_STATUSES and b.from_datetime >= now
            ),
            "today_arrivals": sum(1 for b in bookings if b.from_datetime.date() == today),
            "today_departures": sum(1 for b in bookings if b.to_datetime.date() == today),
            "total_revenue": _total(b.grand_total for b in bookings),
            "monthly_revenue": _total(
                b.grand_total for b in bookings if b.from_datetime >= month_start
            ),
            "outstanding_balance": _total(
                _balance(b) for b in bookings if b.payment_status != PaymentStatus.PAID
            ),
            "total_guests": total_guests,
            "total_apartments": apartments,
            "occupancy_rate": round(len(occupied) * 100 / apartments, 2) if apartments else 0,
        }

    @staticmethod
    async def get_recent_activity(db: AsyncSession, limit: int = 10) -> List[dict]:
        result = await db.execute(
            select(Booking)
            .options(selectinload(Booking.guest), selectinload(Booking.apartment))
            .order_by(Booking.updated_at.desc(), Booking.id.desc())
            .limit(limit)
        )
        return [
            {**_booking_row(b), "created_at": b.created_at, "updated_at": b.updated_at}
            for b in result.scalars().all()
        ]

    @staticmethod
    async def get_monthly_revenue(db: AsyncSession, year: int) -> List[dict]:
        bookings = await ReportService._bookings_starting(db, date(year, 1, 1), date(year, 12, 31))
        months = {m: {"revenue": Decimal("0"), "collected": Decimal("0"), "bookings": 0} for m in range(1, 13)}
        for b in bookings:
            bucket = months[b.from_datetime.month]
            bucket["revenue"] += b.grand_total
            bucket["collected"] += b.amount_paid
            bucket["bookings"] += 1
        return [
            {
                "month": f"{year}-{m:02d}",
                "revenue": to_money(v["revenue"]),
                "collected": to_money(v["collected"]),
                "bookings": v["bookings"],
            }
            for m, v in months.items()
        ]

    @staticmethod
    async def get_booking_status_distribution(db: AsyncSession) -> List[dict]:
        result = await db.execute(
            select(Booking.booking_status, func.count(Booking.id)).group_by(Booking.booking_status)
        )
        return [{"status": status.value, "count": count} for status, count in result.all()]

    @staticmethod
    async def get_guest_type_distribution(db: AsyncSession) -> List[dict]:
        result = await db.execute(
            select(Guest.guest_type, func.count(Guest.id)).group_by(Guest.guest_type)
        )
        return [{"guest_type": gt.value, "count": count} for gt, count in result.all()]

    @staticmethod
    async def get_upcoming_schedule(db: AsyncSession, days: int = 7) -> dict:
        today = utcnow().date()
        end = today + timedelta(days=max(1, days))
        arrivals = await ReportService._bookings(
            db,
            Booking.from_datetime >= _day_start(today),
            Booking.from_datetime <= _day_end(end),
        )
        departures = await ReportService._bookings(
            db,
            Booking.to_datetime >= _day_start(today),
            Booking.to_datetime <= _day_end(end),
        )
        return {
            "from_date": today,
            "to_date": end,
            "arrivals": [_booking_row(b) for b in arrivals],
            "departures": [_booking_row(b) for b in sorted(departures, key=lambda b: b.to_datetime)],
        }

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    @staticmethod
    async def revenue_report(
        db: AsyncSession,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        group_by: str = "day",
    ) -> dict:
        if group_by not in GROUP_BY_FORMATS:
            raise ValidationError("groupBy must be one of day, month, year", group_by=group_by)
        start_date, end_date = _default_range(start_date, end_date)
        bookings = await ReportService._bookings_starting(db, start_date, end_date)

        fmt = GROUP_BY_FORMATS[group_by]
        periods: dict[str, dict] = defaultdict(
            lambda: {"bookings": 0, "subtotal": Decimal("0"), "tax": Decimal("0"),
                     "revenue": Decimal("0"), "collected": Decimal("0")}
        )
        for b in bookings:
            bucket = periods[b.from_datetime.strftime(fmt)]
            bucket["bookings"] += 1
            bucket["subtotal"] += b.subtotal
            bucket["tax"] += b.tax
            bucket["revenue"] += b.grand_total
            bucket["collected"] += b.amount_paid

        rows = [
            {"period": period, "bookings": v["bookings"],
             **{k: to_money(v[k]) for k in ("subtotal", "tax", "revenue", "collected")}}
            for period, v in sorted(periods.items())
        ]
        return {
            "start_date": start_date,
            "end_date": end_date,
            "group_by": group_by,
            "periods": rows,
            "totals": {
                "bookings": len(bookings),
                "revenue": _total(b.grand_total for b in bookings),
                "tax": _total(b.tax for b in bookings),
                "collected": _total(b.amount_paid for b in bookings),
            },
        }

    @staticmethod
    async def occupancy_report(
        db: AsyncSession,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> dict:
        start_date, end_date = _default_range(start_date, end_date)
        range_start, range_end = _day_start(start_date), _day_start(end_date + timedelta(days=1))
        period_days = (end_date - start_date).days + 1

        apartments = list(
            (
                await db.execute(
                    select(Apartment).where(Apartment.is_active.is_(True)).order_by(Apartment.name)
                )
            ).scalars().all()
        )
        bookings = await ReportService._bookings(
            db, Booking.from_datetime < range_end, Booking.to_datetime > range_start
        )

        occupied_seconds: dict[int, float] = defaultdict(float)
        counts: dict[int, int] = defaultdict(int)
        for b in bookings:
            overlap = min(b.to_datetime, range_end) - max(b.from_datetime, range_start)
            occupied_seconds[b.apartment_id] += max(overlap.total_seconds(), 0)
            counts[b.apartment_id] += 1

        rows = []
        for apt in apartments:
            booked_days = round(occupied_seconds[apt.id] / 86400, 2)
            rows.append({
                "apartment_id": apt.id,
                "apartment_name": apt.name,
                "bookings": counts[apt.id],
                "booked_days": booked_days,
                "available_days": period_days,
                "occupancy_rate": round(booked_days * 100 / period_days, 2),
            })

        total_available = period_days * len(apartments)
        total_booked = sum(r["booked_days"] for r in rows)
        return {
            "start_date": start_date,
            "end_date": end_date,
            "apartments": rows,
            "overall_occupancy_rate": (
                round(total_booked * 100 / total_available, 2) if total_available else 0
            ),
        }

    @staticmethod
    async def arrivals_departures(db: AsyncSession, on_date: Optional[date] = None) -> dict:
        on_date = on_date or utcnow().date()
        start, end = _day_start(on_date), _day_end(on_date)
        arrivals = await ReportService._bookings(
            db, Booking.from_datetime >= start, Booking.from_datetime <= end
        )
        departures = await ReportService._bookings(
            db, Booking.to_datetime >= start, Booking.to_datetime <= end
        )
        in_house = await ReportService._bookings(
            db, Booking.from_datetime < start, Booking.to_datetime > end
        )
        return {
            "date": on_date,
            "arrivals": [_booking_row(b) for b in arrivals],
            "departures": [_booking_row(b) for b in departures],
            "in_house": [_booking_row(b) for b in in_house],
        }

    @staticmethod
    async def outstanding_balances(db: AsyncSession) -> dict:
        bookings = await ReportService._bookings(
            db, Booking.payment_status != PaymentStatus.PAID
        )
        rows = [_booking_row(b) for b in bookings if _balance(b) > 0]
        return {
            "bookings": rows,
            "count": len(rows),
            "total_outstanding": _total(r["balance"] for r in rows),
        }

    @staticmethod
    async def guest_statistics(
        db: AsyncSession,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> dict:
        start_date, end_date = _default_range(start_date, end_date)
        bookings = await ReportService._bookings_starting(db, start_date, end_date)

        per_guest: dict[int, dict] = {}
        by_type: dict[str, int] = defaultdict(int)
        for b in bookings:
            entry = per_guest.get(b.guest_id)
            if entry is None:
                entry = per_guest[b.guest_id] = {
                    "guest_id": b.guest_id,
                    "name": b.guest.name,
                    "phone": b.guest.phone,
                    "guest_type": b.guest.guest_type.value,
                    "bookings": 0,
                    "total_spent": Decimal("0"),
                }
                by_type[b.guest.guest_type.value] += 1
            entry["bookings"] += 1
            entry["total_spent"] += b.grand_total

        top = sorted(per_guest.values(), key=lambda g: g["total_spent"], reverse=True)[:10]
        for g in top:
            g["total_spent"] = to_money(g["total_spent"])
        return {
            "start_date": start_date,
            "end_date": end_date,
            "unique_guests": len(per_guest),
            "repeat_guests": sum(1 for g in per_guest.values() if g["bookings"] > 1),
            "by_guest_type": dict(by_type),
            "top_guests": top,
        }

    @staticmethod
    async def apartment_performance(
        db: AsyncSession,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[dict]:
        start_date, end_date = _default_range(start_date, end_date)
        bookings = await ReportService._bookings_starting(db, start_date, end_date)
        apartments = (
            await db.execute(
                select(Apartment).where(Apartment.is_active.is_(True)).order_by(Apartment.name)
            )
        ).scalars().all()

        grouped: dict[int, List[Booking]] = defaultdict(list)
        for b in bookings:
            grouped[b.apartment_id].append(b)

        rows = []
        for apt in apartments:
            items = grouped[apt.id]
            total_days = sum(b.days for b in items)
            revenue = _total(b.grand_total for b in items)
            rows.append({
                "apartment_id": apt.id,
                "apartment_name": apt.name,
                "bookings": len(items),
                "total_days": total_days,
                "revenue": revenue,
                "average_stay": round(total_days / len(items), 2) if items else 0,
                "average_daily_rate": to_money(revenue / total_days) if total_days else Decimal("0.00"),
            })
        return sorted(rows, key=lambda r: r["revenue"], reverse=True)

    @staticmethod
    async def payment_analytics(
        db: AsyncSession,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> dict:
        start_date, end_date = _default_range(start_date, end_date)
        bookings = await ReportService._bookings_starting(db, start_date, end_date)

        by_method: dict[str, dict] = defaultdict(lambda: {"count": 0, "amount": Decimal("0")})
        by_status: dict[str, dict] = defaultdict(lambda: {"count": 0, "amount": Decimal("0")})
        for b in bookings:
            by_method[b.payment_method.value]["count"] += 1
            by_method[b.payment_method.value]["amount"] += b.amount_paid
            by_status[b.payment_status.value]["count"] += 1
            by_status[b.payment_status.value]["amount"] += b.grand_total

        billed = _total(b.grand_total for b in bookings)
        collected = _total(b.amount_paid for b in bookings)
        return {
            "start_date": start_date,
            "end_date": end_date,
            "by_payment_method": {
                k: {"count": v["count"], "amount": to_money(v["amount"])} for k, v in by_method.items()
            },
            "by_payment_status": {
                k: {"count": v["count"], "amount": to_money(v["amount"])} for k, v in by_status.items()
            },
            "total_billed": billed,
            "total_collected": collected,
            "total_outstanding": to_money(billed - collected),
            "collection_rate": round(float(collected * 100 / billed), 2) if billed else 0,
        }
