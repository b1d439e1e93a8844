import logging
from typing import List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from apartment_admin.core.errors import NotFoundError, ValidationError
from apartment_admin.models import Booking, Guest, GuestType
from apartment_admin.schemas.guest import GuestCreate, GuestUpdate

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "name": Guest.name,
    "created_at": Guest.created_at,
    "guest_type": Guest.guest_type,
}


class GuestService:
    @staticmethod
    async def list_guests(
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        guest_type: Optional[GuestType] = None,
        sort: str = "created_at",
        order: str = "desc",
    ) -> tuple[List[Guest], int]:
        filters = []
        if search:
            like = f"%{search}%"
            filters.append(
                or_(Guest.name.ilike(like), Guest.phone.ilike(like), Guest.email.ilike(like))
            )
        if guest_type:
            filters.append(Guest.guest_type == guest_type)

        total = (await db.execute(select(func.count(Guest.id)).where(*filters))).scalar_one()

        column = SORT_FIELDS.get(sort, Guest.created_at)
        ordering = column.asc() if order.lower() == "asc" else column.desc()
        result = await db.execute(
            select(Guest)
            .where(*filters)
            .order_by(ordering, Guest.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    @staticmethod
    async def get_guest(db: AsyncSession, guest_id: int) -> Guest:
        guest = await db.get(Guest, guest_id)
        if not guest:
            raise NotFoundError("Guest not found", guest_id=guest_id)
        return guest

    @staticmethod
    async def find_by_phone(db: AsyncSession, phone: str) -> Optional[Guest]:
        result = await db.execute(select(Guest).where(Guest.phone == phone).limit(1))
        return result.scalars().first()

    @staticmethod
    async def _ensure_unique_phone(
        db: AsyncSession, phone: str, exclude_id: Optional[int] = None
    ) -> None:
        existing = await GuestService.find_by_phone(db, phone)
        if existing and existing.id != exclude_id:
            raise ValidationError("Guest with this phone number already exists", phone=phone)

    @staticmethod
    async def create_guest(db: AsyncSession, guest_in: GuestCreate) -> Guest:
        await GuestService._ensure_unique_phone(db, guest_in.phone)
        guest = Guest(**guest_in.model_dump())
        db.add(guest)
        await db.commit()
        await db.refresh(guest)
        logger.info(f"Guest {guest.id} created")
        return guest

    @staticmethod
    async def update_guest(db: AsyncSession, guest_id: int, guest_in: GuestUpdate) -> Guest:
        guest = await GuestService.get_guest(db, guest_id)
        await GuestService._ensure_unique_phone(db, guest_in.phone, exclude_id=guest_id)
        for key, value in guest_in.model_dump(exclude_unset=True).items():
            setattr(guest, key, value)
        await db.commit()
        await db.refresh(guest)
        return guest

    @staticmethod
    async def delete_guest(db: AsyncSession, guest_id: int) -> Guest:
        guest = await GuestService.get_guest(db, guest_id)
        count = (
            await db.execute(select(func.count(Booking.id)).where(Booking.guest_id == guest_id))
        ).scalar_one()
        if count:
            raise ValidationError(
                "Cannot delete guest with existing bookings", guest_id=guest_id, bookings=count
            )
        await db.delete(guest)
        await db.commit()
        logger.info(f"Guest {guest_id} deleted")
        return guest

    @staticmethod
    async def get_guest_bookings(db: AsyncSession, guest_id: int) -> List[Booking]:
        await GuestService.get_guest(db, guest_id)
        result = await db.execute(
            select(Booking)
            .options(selectinload(Booking.guest), selectinload(Booking.apartment))
            .where(Booking.guest_id == guest_id)
            .order_by(Booking.from_datetime.desc())
        )
        return list(result.scalars().all())
