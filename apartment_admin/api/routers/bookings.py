from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from apartment_admin.api.deps import get_booking_service, get_current_user
from apartment_admin.database import get_db
from apartment_admin.models import BookingStatus, GuestType, PaymentStatus, User
from apartment_admin.schemas.booking import (
    AvailabilityOut,
    BookingConflictOut,
    BookingCreate,
    BookingListOut,
    BookingOut,
    BookingUpdate,
)
from apartment_admin.schemas.common import Message, Pagination
from apartment_admin.services.audit_service import AuditService, entity_snapshot
from apartment_admin.services.booking_service import BookingService

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.get("", response_model=BookingListOut)
async def list_bookings(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: Optional[str] = Query(default=None),
    date_from: Optional[date] = Query(default=None, alias="dateFrom"),
    date_to: Optional[date] = Query(default=None, alias="dateTo"),
    apartment: Optional[int] = Query(default=None),
    guest_type: Optional[GuestType] = Query(default=None, alias="guestType"),
    payment_status: Optional[PaymentStatus] = Query(default=None, alias="paymentStatus"),
    booking_status: Optional[BookingStatus] = Query(default=None, alias="bookingStatus"),
    sort: str = Query(default="created_at"),
    order: str = Query(default="desc", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    bookings, total = await service.list_bookings(
        db,
        page=page,
        limit=limit,
        search=search,
        date_from=date_from,
        date_to=date_to,
        apartment_id=apartment,
        guest_type=guest_type,
        payment_status=payment_status,
        booking_status=booking_status,
        sort=sort,
        order=order,
    )
    return BookingListOut(
        bookings=[BookingOut.model_validate(b) for b in bookings],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/availability", response_model=AvailabilityOut)
async def check_availability(
    apartment_id: int = Query(ge=1),
    from_datetime: datetime = Query(alias="from"),
    to_datetime: datetime = Query(alias="to"),
    exclude_booking_id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    result = await service.check_availability(
        db, apartment_id, from_datetime, to_datetime, exclude_booking_id
    )
    return AvailabilityOut(
        apartment_id=result.apartment_id,
        from_datetime=result.from_datetime,
        to_datetime=result.to_datetime,
        is_available=result.is_available,
        conflicts=[BookingConflictOut.model_validate(b) for b in result.conflicts],
    )


@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return await service.get_booking(db, booking_id)


@router.post("", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.create_booking(db, payload, user_id=user.id)
    await AuditService.log_audit(
        db, "booking", "create", entity_id=booking.id,
        new_value=entity_snapshot(booking), user_id=user.id,
    )
    return booking


@router.put("/{booking_id}", response_model=BookingOut)
async def update_booking(
    booking_id: int,
    payload: BookingUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    old_value = entity_snapshot(await service.get_booking(db, booking_id))
    booking = await service.update_booking(db, booking_id, payload)
    await AuditService.log_audit(
        db, "booking", "update", entity_id=booking.id,
        old_value=old_value, new_value=entity_snapshot(booking), user_id=user.id,
    )
    return booking


@router.delete("/{booking_id}", response_model=Message)
async def delete_booking(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.get_booking(db, booking_id)
    old_value = entity_snapshot(booking)
    await service.delete_booking(db, booking_id)
    await AuditService.log_audit(
        db, "booking", "delete", entity_id=booking_id, old_value=old_value, user_id=user.id
    )
    return Message(message="Booking deleted successfully")


@router.post("/{booking_id}/send-email", response_model=Message)
async def send_booking_email(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    await service.send_confirmation(db, booking_id)
    await AuditService.log_audit(
        db, "booking", "send_email", entity_id=booking_id,
        new_value={"email_sent": True}, user_id=user.id,
    )
    return Message(message="Confirmation email sent")
