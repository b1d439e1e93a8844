from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from apartment_admin.api.deps import require_super_admin
from apartment_admin.database import get_db
from apartment_admin.models import User
from apartment_admin.schemas.audit import AuditLogListOut, AuditLogOut
from apartment_admin.schemas.common import Pagination
from apartment_admin.services.audit_service import AuditService, audit_row

router = APIRouter(prefix="/api/audit-logs", tags=["audit"])


@router.get("", response_model=AuditLogListOut)
async def list_audit_logs(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    entity: Optional[str] = Query(default=None),
    entity_id: Optional[int] = Query(default=None, alias="entityId"),
    action: Optional[str] = Query(default=None),
    user_id: Optional[int] = Query(default=None, alias="userId"),
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
):
    logs, total = await AuditService.get_audit_logs(
        db,
        page=page,
        limit=limit,
        entity=entity,
        entity_id=entity_id,
        action=action,
        user_id=user_id,
        start_date=start_date,
        end_date=end_date,
    )
    return AuditLogListOut(
        audit_logs=[AuditLogOut.model_validate(audit_row(log)) for log in logs],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/summary/{entity}/{entity_id}")
async def get_entity_summary(
    entity: str,
    entity_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
):
    summary = await AuditService.get_entity_summary(db, entity, entity_id)
    summary["history"] = [
        AuditLogOut.model_validate(row).model_dump(mode="json") for row in summary["history"]
    ]
    return summary


@router.get("/statistics")
async def get_statistics(
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
):
    return await AuditService.get_statistics(db, start_date=start_date, end_date=end_date)


@router.get("/recent", response_model=List[AuditLogOut])
async def get_recent(
    hours: int = Query(default=24, ge=1, le=24 * 30),
    limit: int = Query(default=50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
):
    logs = await AuditService.get_recent(db, hours=hours, limit=limit)
    return [AuditLogOut.model_validate(audit_row(log)) for log in logs]


@router.get("/user/{user_id}", response_model=AuditLogListOut)
async def get_user_logs(
    user_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
):
    logs, total = await AuditService.get_user_activity(db, user_id, page=page, limit=limit)
    return AuditLogListOut(
        audit_logs=[AuditLogOut.model_validate(audit_row(log)) for log in logs],
        pagination=Pagination.build(page, limit, total),
    )
