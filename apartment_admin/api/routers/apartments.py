from datetime import date, datetime, time, timedelta
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from apartment_admin.api.deps import get_booking_service, get_current_user
from apartment_admin.database import get_db
from apartment_admin.models import User
from apartment_admin.schemas.apartment import ApartmentCreate, ApartmentOut, ApartmentUpdate
from apartment_admin.schemas.booking import AvailabilityOut, BookingConflictOut
from apartment_admin.schemas.common import Message
from apartment_admin.services.apartment_service import ApartmentService
from apartment_admin.services.audit_service import AuditService, entity_snapshot
from apartment_admin.services.booking_service import BookingService

router = APIRouter(prefix="/api/apartments", tags=["apartments"])


@router.get("", response_model=List[ApartmentOut])
async def list_apartments(
    db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)
):
    return await ApartmentService.get_all_apartments(db)


@router.get("/{apartment_id}", response_model=ApartmentOut)
async def get_apartment(
    apartment_id: int, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)
):
    return await ApartmentService.get_apartment_by_id(db, apartment_id)


@router.get("/{apartment_id}/availability", response_model=AvailabilityOut)
async def apartment_availability(
    apartment_id: int,
    start_date: date = Query(alias="startDate"),
    end_date: date = Query(alias="endDate"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Whole-day window: startDate 00:00 up to the end of endDate."""
    await ApartmentService.get_apartment_by_id(db, apartment_id)
    result = await service.check_availability(
        db,
        apartment_id,
        datetime.combine(start_date, time.min),
        datetime.combine(end_date + timedelta(days=1), time.min),
    )
    return AvailabilityOut(
        apartment_id=apartment_id,
        from_datetime=result.from_datetime,
        to_datetime=result.to_datetime,
        is_available=result.is_available,
        conflicts=[BookingConflictOut.model_validate(b) for b in result.conflicts],
    )


@router.post("", response_model=ApartmentOut, status_code=status.HTTP_201_CREATED)
async def create_apartment(
    payload: ApartmentCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    apartment = await ApartmentService.create_apartment(db, payload)
    await AuditService.log_audit(
        db, "apartment", "create", entity_id=apartment.id,
        new_value=entity_snapshot(apartment), user_id=user.id,
    )
    return apartment


@router.put("/{apartment_id}", response_model=ApartmentOut)
async def update_apartment(
    apartment_id: int,
    payload: ApartmentUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    old_value = entity_snapshot(await ApartmentService.get_apartment_by_id(db, apartment_id))
    apartment = await ApartmentService.update_apartment(db, apartment_id, payload)
    await AuditService.log_audit(
        db, "apartment", "update", entity_id=apartment.id,
        old_value=old_value, new_value=entity_snapshot(apartment), user_id=user.id,
    )
    return apartment


@router.delete("/{apartment_id}", response_model=Message)
async def delete_apartment(
    apartment_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    apartment = await ApartmentService.delete_apartment(db, apartment_id)
    await AuditService.log_audit(
        db, "apartment", "delete", entity_id=apartment_id,
        old_value={"name": apartment.name, "is_active": True},
        new_value={"is_active": False}, user_id=user.id,
    )
    return Message(message="Apartment deleted successfully")
