import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from apartment_admin.core.errors import NotFoundError, StorageError, ValidationError
from apartment_admin.domain import pricing
from apartment_admin.models import PricingRule, Season, utcnow
from apartment_admin.schemas.pricing import PricingRuleCreate, PricingRuleUpdate

logger = logging.getLogger(__name__)


def _today() -> date:
    return utcnow().date()


class PricingService:
    @staticmethod
    async def get_current_rule(
        db: AsyncSession, on_date: Optional[date] = None
    ) -> Optional[PricingRule]:
        """Rule with the latest effective_date not after on_date (default: today)."""
        on_date = on_date or _today()
        query = (
            select(PricingRule)
            .where(PricingRule.effective_date <= on_date)
            .order_by(PricingRule.effective_date.desc(), PricingRule.id.desc())
            .limit(1)
        )
        try:
            result = await db.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Error loading current pricing rule: {e}")
            raise StorageError("Could not load pricing rules, try again") from e
        return result.scalars().first()

    @staticmethod
    async def quote(
        db: AsyncSession,
        days: int,
        season: Season,
        discount: Decimal,
        *,
        clamp_negative: bool = False,
        on_date: Optional[date] = None,
    ) -> pricing.PriceQuote:
        rule = await PricingService.get_current_rule(db, on_date)
        return pricing.calculate(days, season, discount, rule, clamp_negative=clamp_negative)

    @staticmethod
    async def list_rules(db: AsyncSession) -> List[PricingRule]:
        result = await db.execute(
            select(PricingRule).order_by(PricingRule.effective_date.desc(), PricingRule.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_history(db: AsyncSession) -> List[dict]:
        """Every rule, newest first, labelled active / scheduled / superseded."""
        rules = await PricingService.list_rules(db)
        current = await PricingService.get_current_rule(db)
        today = _today()
        history = []
        for rule in rules:
            if current is not None and rule.id == current.id:
                status = "active"
            elif rule.effective_date > today:
                status = "scheduled"
            else:
                status = "superseded"
            history.append({"rule": rule, "status": status})
        return history

    @staticmethod
    async def get_rule(db: AsyncSession, rule_id: int) -> PricingRule:
        rule = await db.get(PricingRule, rule_id)
        if not rule:
            raise NotFoundError("Pricing rule not found", rule_id=rule_id)
        return rule

    @staticmethod
    def _ensure_not_backdated(effective_date: date) -> None:
        if effective_date < _today():
            raise ValidationError(
                "effective_date cannot be in the past",
                effective_date=effective_date.isoformat(),
            )

    @staticmethod
    async def create_rule(
        db: AsyncSession, rule_in: PricingRuleCreate, user_id: Optional[int] = None
    ) -> PricingRule:
        PricingService._ensure_not_backdated(rule_in.effective_date)
        rule = PricingRule(**rule_in.model_dump(), updated_by=user_id)
        db.add(rule)
        await db.commit()
        await db.refresh(rule)
        logger.info(f"💰 Pricing rule {rule.id} created, effective {rule.effective_date}")
        return rule

    @staticmethod
    async def update_rule(
        db: AsyncSession,
        rule_id: int,
        rule_in: PricingRuleUpdate,
        user_id: Optional[int] = None,
    ) -> PricingRule:
        rule = await PricingService.get_rule(db, rule_id)
        PricingService._ensure_not_backdated(rule_in.effective_date)
        for key, value in rule_in.model_dump(exclude_unset=True).items():
            setattr(rule, key, value)
        rule.updated_by = user_id
        await db.commit()
        await db.refresh(rule)
        logger.info(f"Pricing rule {rule.id} updated")
        return rule

    @staticmethod
    async def delete_rule(db: AsyncSession, rule_id: int) -> PricingRule:
        rule = await PricingService.get_rule(db, rule_id)
        current = await PricingService.get_current_rule(db)
        if current is not None and current.id == rule.id:
            raise ValidationError("Cannot delete the active pricing rule", rule_id=rule_id)
        await db.delete(rule)
        await db.commit()
        logger.info(f"Pricing rule {rule_id} deleted")
        return rule
