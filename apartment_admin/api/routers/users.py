from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from apartment_admin.api.deps import require_super_admin
from apartment_admin.database import get_db
from apartment_admin.models import User
from apartment_admin.schemas.audit import AuditLogListOut, AuditLogOut
from apartment_admin.schemas.common import Message, Pagination
from apartment_admin.schemas.user import PasswordReset, UserCreate, UserOut, UserUpdate
from apartment_admin.services.audit_service import AuditService, audit_row
from apartment_admin.services.user_service import UserService

router = APIRouter(prefix="/api/users", tags=["users"])

USER_AUDIT_FIELDS = ("name", "email", "role", "is_active")


def _user_value(user: User) -> dict:
    # hashed_password stays out of the audit trail
    return {field: getattr(user, field) for field in USER_AUDIT_FIELDS}


@router.get("", response_model=List[UserOut])
async def list_users(
    db: AsyncSession = Depends(get_db), admin: User = Depends(require_super_admin)
):
    return await UserService.list_users(db)


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: int, db: AsyncSession = Depends(get_db), admin: User = Depends(require_super_admin)
):
    return await UserService.get_user(db, user_id)


@router.get("/{user_id}/activity", response_model=AuditLogListOut)
async def get_user_activity(
    user_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
):
    await UserService.get_user(db, user_id)
    logs, total = await AuditService.get_user_activity(db, user_id, page=page, limit=limit)
    return AuditLogListOut(
        audit_logs=[AuditLogOut.model_validate(audit_row(log)) for log in logs],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
):
    user = await UserService.create_user(db, payload)
    await AuditService.log_audit(
        db, "user", "create", entity_id=user.id, new_value=_user_value(user), user_id=admin.id
    )
    return user


@router.put("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
):
    old_value = _user_value(await UserService.get_user(db, user_id))
    user = await UserService.update_user(db, user_id, payload, current_user=admin)
    await AuditService.log_audit(
        db, "user", "update", entity_id=user.id,
        old_value=old_value, new_value=_user_value(user), user_id=admin.id,
    )
    return user


@router.delete("/{user_id}", response_model=Message)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
):
    user = await UserService.delete_user(db, user_id, current_user=admin)
    await AuditService.log_audit(
        db, "user", "delete", entity_id=user_id, old_value=_user_value(user), user_id=admin.id
    )
    return Message(message="User deleted successfully")


@router.post("/{user_id}/reset-password", response_model=Message)
async def reset_password(
    user_id: int,
    payload: PasswordReset,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
):
    user = await UserService.get_user(db, user_id)
    await UserService.set_password(db, user, payload.new_password)
    await AuditService.log_audit(db, "user", "reset_password", entity_id=user_id, user_id=admin.id)
    return Message(message="Password reset successfully")
