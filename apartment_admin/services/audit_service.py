import json
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from apartment_admin.models import AuditLog, User, utcnow

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500


def _json_default(value: Any):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def dump_value(value: Optional[Any]) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, default=_json_default)


def entity_snapshot(obj: Any) -> dict:
    """Column values of an ORM row, for old_value/new_value."""
    return {column.key: getattr(obj, column.key) for column in obj.__table__.columns}


def audit_row(log: AuditLog) -> dict:
    return {
        "id": log.id,
        "entity": log.entity,
        "entity_id": log.entity_id,
        "action": log.action,
        "old_value": log.old_value,
        "new_value": log.new_value,
        "user_id": log.user_id,
        "user_name": log.user.name if log.user else None,
        "user_email": log.user.email if log.user else None,
        "created_at": log.created_at,
    }


class AuditService:
    @staticmethod
    async def log_audit(
        db: AsyncSession,
        entity: str,
        action: str,
        entity_id: Optional[int] = None,
        old_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
        user_id: Optional[int] = None,
    ) -> None:
        """
        Append an audit record in its own commit.

        Audit failures never fail the operation being audited: they are
        logged and dropped.
        """
        try:
            db.add(
                AuditLog(
                    entity=entity,
                    entity_id=entity_id,
                    action=action,
                    old_value=dump_value(old_value),
                    new_value=dump_value(new_value),
                    user_id=user_id,
                )
            )
            await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to write audit log {entity}/{action}/{entity_id}: {e}")
            await db.rollback()

    @staticmethod
    def _filtered(
        stmt,
        entity: Optional[str] = None,
        entity_id: Optional[int] = None,
        action: Optional[str] = None,
        user_id: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ):
        if entity:
            stmt = stmt.where(AuditLog.entity == entity)
        if entity_id is not None:
            stmt = stmt.where(AuditLog.entity_id == entity_id)
        if action:
            stmt = stmt.where(AuditLog.action == action)
        if user_id is not None:
            stmt = stmt.where(AuditLog.user_id == user_id)
        if start_date:
            stmt = stmt.where(AuditLog.created_at >= start_date)
        if end_date:
            stmt = stmt.where(AuditLog.created_at <= end_date)
        return stmt

    @staticmethod
    async def get_audit_logs(
        db: AsyncSession,
        page: int = 1,
        limit: int = 50,
        **filters,
    ) -> tuple[List[AuditLog], int]:
        limit = min(MAX_PAGE_SIZE, max(1, limit))
        page = max(1, page)

        count_stmt = AuditService._filtered(select(func.count(AuditLog.id)), **filters)
        total = (await db.execute(count_stmt)).scalar_one()

        stmt = AuditService._filtered(
            select(AuditLog).options(selectinload(AuditLog.user)), **filters
        )
        stmt = (
            stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all()), total

    @staticmethod
    async def get_entity_summary(db: AsyncSession, entity: str, entity_id: int) -> dict:
        logs, total = await AuditService.get_audit_logs(
            db, page=1, limit=MAX_PAGE_SIZE, entity=entity, entity_id=entity_id
        )
        actions: dict[str, int] = {}
        for log in logs:
            actions[log.action] = actions.get(log.action, 0) + 1

        return {
            "entity": entity,
            "entity_id": entity_id,
            "total_changes": total,
            "actions": actions,
            "first_change": logs[-1].created_at if logs else None,
            "last_change": logs[0].created_at if logs else None,
            "history": [audit_row(log) for log in logs],
        }

    @staticmethod
    async def get_statistics(
        db: AsyncSession,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> dict:
        def scoped(stmt):
            return AuditService._filtered(stmt, start_date=start_date, end_date=end_date)

        total = (await db.execute(scoped(select(func.count(AuditLog.id))))).scalar_one()

        by_action = await db.execute(
            scoped(select(AuditLog.action, func.count(AuditLog.id))).group_by(AuditLog.action)
        )
        by_entity = await db.execute(
            scoped(select(AuditLog.entity, func.count(AuditLog.id))).group_by(AuditLog.entity)
        )
        by_user = await db.execute(
            scoped(
                select(User.id, User.name, User.email, func.count(AuditLog.id).label("cnt"))
                .select_from(AuditLog)
                .join(User, AuditLog.user_id == User.id)
            )
            .group_by(User.id, User.name, User.email)
            .order_by(func.count(AuditLog.id).desc())
            .limit(10)
        )

        return {
            "total": total,
            "by_action": {action: count for action, count in by_action.all()},
            "by_entity": {entity: count for entity, count in by_entity.all()},
            "top_users": [
                {"user_id": uid, "name": name, "email": email, "count": cnt}
                for uid, name, email, cnt in by_user.all()
            ],
        }

    @staticmethod
    async def get_recent(db: AsyncSession, hours: int = 24, limit: int = 50) -> List[AuditLog]:
        since = utcnow() - timedelta(hours=max(1, hours))
        logs, _ = await AuditService.get_audit_logs(db, page=1, limit=limit, start_date=since)
        return logs

    @staticmethod
    async def get_user_activity(
        db: AsyncSession, user_id: int, page: int = 1, limit: int = 50
    ) -> tuple[List[AuditLog], int]:
        return await AuditService.get_audit_logs(db, page=page, limit=limit, user_id=user_id)
