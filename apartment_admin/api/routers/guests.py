from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from apartment_admin.api.deps import get_current_user
from apartment_admin.database import get_db
from apartment_admin.models import GuestType, User
from apartment_admin.schemas.booking import BookingOut
from apartment_admin.schemas.common import Message, Pagination
from apartment_admin.schemas.guest import GuestCreate, GuestListOut, GuestOut, GuestUpdate
from apartment_admin.services.audit_service import AuditService, entity_snapshot
from apartment_admin.services.guest_service import GuestService

router = APIRouter(prefix="/api/guests", tags=["guests"])


@router.get("", response_model=GuestListOut)
async def list_guests(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: Optional[str] = Query(default=None),
    guest_type: Optional[GuestType] = Query(default=None, alias="guestType"),
    sort: str = Query(default="created_at"),
    order: str = Query(default="desc", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    guests, total = await GuestService.list_guests(
        db, page=page, limit=limit, search=search, guest_type=guest_type, sort=sort, order=order
    )
    return GuestListOut(
        guests=[GuestOut.model_validate(g) for g in guests],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/{guest_id}", response_model=GuestOut)
async def get_guest(
    guest_id: int, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)
):
    return await GuestService.get_guest(db, guest_id)


@router.get("/{guest_id}/bookings", response_model=List[BookingOut])
async def get_guest_bookings(
    guest_id: int, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)
):
    return await GuestService.get_guest_bookings(db, guest_id)


@router.post("", response_model=GuestOut, status_code=status.HTTP_201_CREATED)
async def create_guest(
    payload: GuestCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    guest = await GuestService.create_guest(db, payload)
    await AuditService.log_audit(
        db, "guest", "create", entity_id=guest.id,
        new_value=entity_snapshot(guest), user_id=user.id,
    )
    return guest


@router.put("/{guest_id}", response_model=GuestOut)
async def update_guest(
    guest_id: int,
    payload: GuestUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    old_value = entity_snapshot(await GuestService.get_guest(db, guest_id))
    guest = await GuestService.update_guest(db, guest_id, payload)
    await AuditService.log_audit(
        db, "guest", "update", entity_id=guest.id,
        old_value=old_value, new_value=entity_snapshot(guest), user_id=user.id,
    )
    return guest


@router.delete("/{guest_id}", response_model=Message)
async def delete_guest(
    guest_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    guest = await GuestService.delete_guest(db, guest_id)
    await AuditService.log_audit(
        db, "guest", "delete", entity_id=guest_id,
        old_value=entity_snapshot(guest), user_id=user.id,
    )
    return Message(message="Guest deleted successfully")
