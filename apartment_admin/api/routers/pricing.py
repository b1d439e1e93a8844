from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from apartment_admin.api.deps import get_current_user, get_settings, require_super_admin
from apartment_admin.core.config import Settings
from apartment_admin.core.errors import NotFoundError
from apartment_admin.database import get_db
from apartment_admin.models import User
from apartment_admin.schemas.common import Message
from apartment_admin.schemas.pricing import (
    PriceCalculationRequest,
    PriceQuoteOut,
    PricingRuleCreate,
    PricingRuleOut,
    PricingRuleUpdate,
)
from apartment_admin.services.audit_service import AuditService, entity_snapshot
from apartment_admin.services.pricing_service import PricingService

router = APIRouter(prefix="/api/pricing-rules", tags=["pricing"])


@router.get("", response_model=List[PricingRuleOut])
async def list_pricing_rules(
    db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)
):
    return await PricingService.list_rules(db)


@router.get("/current", response_model=PricingRuleOut)
async def get_current_pricing_rule(
    db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)
):
    rule = await PricingService.get_current_rule(db)
    if not rule:
        raise NotFoundError("No active pricing rule found")
    return rule


@router.get("/history")
async def get_pricing_history(
    limit: int = Query(default=10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    history = await PricingService.get_history(db)
    return [
        {**PricingRuleOut.model_validate(item["rule"]).model_dump(mode="json"), "status": item["status"]}
        for item in history[:limit]
    ]


@router.post("/calculate", response_model=PriceQuoteOut)
async def calculate_price(
    payload: PriceCalculationRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    return await PricingService.quote(
        db,
        payload.days,
        payload.season,
        payload.discount,
        clamp_negative=settings.clamp_negative_subtotal,
    )


@router.get("/{rule_id}", response_model=PricingRuleOut)
async def get_pricing_rule(
    rule_id: int, db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)
):
    return await PricingService.get_rule(db, rule_id)


@router.post("", response_model=PricingRuleOut, status_code=status.HTTP_201_CREATED)
async def create_pricing_rule(
    payload: PricingRuleCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_super_admin),
):
    rule = await PricingService.create_rule(db, payload, user_id=user.id)
    await AuditService.log_audit(
        db, "pricing_rule", "create", entity_id=rule.id,
        new_value=entity_snapshot(rule), user_id=user.id,
    )
    return rule


@router.put("/{rule_id}", response_model=PricingRuleOut)
async def update_pricing_rule(
    rule_id: int,
    payload: PricingRuleUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_super_admin),
):
    old_value = entity_snapshot(await PricingService.get_rule(db, rule_id))
    rule = await PricingService.update_rule(db, rule_id, payload, user_id=user.id)
    await AuditService.log_audit(
        db, "pricing_rule", "update", entity_id=rule.id,
        old_value=old_value, new_value=entity_snapshot(rule), user_id=user.id,
    )
    return rule


@router.delete("/{rule_id}", response_model=Message)
async def delete_pricing_rule(
    rule_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_super_admin),
):
    rule = await PricingService.delete_rule(db, rule_id)
    await AuditService.log_audit(
        db, "pricing_rule", "delete", entity_id=rule_id,
        old_value=entity_snapshot(rule), user_id=user.id,
    )
    return Message(message="Pricing rule deleted successfully")
