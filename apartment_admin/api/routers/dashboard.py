from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from apartment_admin.api.deps import get_current_user
from apartment_admin.database import get_db
from apartment_admin.models import User, utcnow
from apartment_admin.services.report_service import ReportService

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats")
async def get_stats(db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)):
    return await ReportService.get_dashboard_stats(db)


@router.get("/recent-activity")
async def get_recent_activity(
    limit: int = Query(default=10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await ReportService.get_recent_activity(db, limit=limit)


@router.get("/monthly-revenue")
async def get_monthly_revenue(
    year: Optional[int] = Query(default=None, ge=2000, le=2100),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await ReportService.get_monthly_revenue(db, year or utcnow().year)


@router.get("/booking-status-distribution")
async def get_booking_status_distribution(
    db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)
):
    return await ReportService.get_booking_status_distribution(db)


@router.get("/guest-type-distribution")
async def get_guest_type_distribution(
    db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)
):
    return await ReportService.get_guest_type_distribution(db)


@router.get("/upcoming-schedule")
async def get_upcoming_schedule(
    days: int = Query(default=7, ge=1, le=90),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await ReportService.get_upcoming_schedule(db, days=days)
