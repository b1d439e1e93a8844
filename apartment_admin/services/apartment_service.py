import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from apartment_admin.core.errors import NotFoundError, ValidationError
from apartment_admin.models import Apartment, Booking
from apartment_admin.schemas.apartment import ApartmentCreate, ApartmentUpdate

logger = logging.getLogger(__name__)


class ApartmentService:
    @staticmethod
    async def get_all_apartments(db: AsyncSession) -> List[Apartment]:
        result = await db.execute(
            select(Apartment).where(Apartment.is_active.is_(True)).order_by(Apartment.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_apartment_by_id(db: AsyncSession, apartment_id: int) -> Apartment:
        result = await db.execute(
            select(Apartment).where(Apartment.id == apartment_id, Apartment.is_active.is_(True))
        )
        apartment = result.scalar_one_or_none()
        if not apartment:
            raise NotFoundError("Apartment not found", apartment_id=apartment_id)
        return apartment

    @staticmethod
    async def _ensure_unique_name(
        db: AsyncSession, name: str, exclude_id: Optional[int] = None
    ) -> None:
        query = select(Apartment.id).where(
            func.lower(Apartment.name) == name.lower(), Apartment.is_active.is_(True)
        )
        if exclude_id is not None:
            query = query.where(Apartment.id != exclude_id)
        if (await db.execute(query)).first():
            raise ValidationError("Apartment with this name already exists", name=name)

    @staticmethod
    async def create_apartment(db: AsyncSession, apartment_in: ApartmentCreate) -> Apartment:
        await ApartmentService._ensure_unique_name(db, apartment_in.name)
        db_apartment = Apartment(**apartment_in.model_dump())
        db.add(db_apartment)
        await db.commit()
        await db.refresh(db_apartment)
        logger.info(f"🏠 Apartment {db_apartment.id} '{db_apartment.name}' created")
        return db_apartment

    @staticmethod
    async def update_apartment(
        db: AsyncSession, apartment_id: int, apartment_in: ApartmentUpdate
    ) -> Apartment:
        db_apartment = await ApartmentService.get_apartment_by_id(db, apartment_id)
        await ApartmentService._ensure_unique_name(db, apartment_in.name, exclude_id=apartment_id)

        for key, value in apartment_in.model_dump(exclude_unset=True).items():
            setattr(db_apartment, key, value)

        await db.commit()
        await db.refresh(db_apartment)
        return db_apartment

    @staticmethod
    async def delete_apartment(db: AsyncSession, apartment_id: int) -> Apartment:
        """Soft delete; refused while any booking references the apartment."""
        db_apartment = await ApartmentService.get_apartment_by_id(db, apartment_id)
        count = (
            await db.execute(
                select(func.count(Booking.id)).where(Booking.apartment_id == apartment_id)
            )
        ).scalar_one()
        if count:
            raise ValidationError(
                "Cannot delete apartment with existing bookings",
                apartment_id=apartment_id,
                bookings=count,
            )
        db_apartment.is_active = False
        await db.commit()
        await db.refresh(db_apartment)
        logger.info(f"Apartment {apartment_id} deactivated")
        return db_apartment
