from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from apartment_admin.api.deps import get_current_user
from apartment_admin.database import get_db
from apartment_admin.models import User
from apartment_admin.services.report_service import ReportService

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/revenue")
async def revenue_report(
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    group_by: str = Query(default="day", alias="groupBy", pattern="^(day|month|year)$"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await ReportService.revenue_report(db, start_date, end_date, group_by)


@router.get("/occupancy")
async def occupancy_report(
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await ReportService.occupancy_report(db, start_date, end_date)


@router.get("/arrivals-departures")
async def arrivals_departures(
    on_date: Optional[date] = Query(default=None, alias="date"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await ReportService.arrivals_departures(db, on_date)


@router.get("/outstanding-balances")
async def outstanding_balances(
    db: AsyncSession = Depends(get_db), user: User = Depends(get_current_user)
):
    return await ReportService.outstanding_balances(db)


@router.get("/guest-statistics")
async def guest_statistics(
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await ReportService.guest_statistics(db, start_date, end_date)


@router.get("/apartment-performance")
async def apartment_performance(
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await ReportService.apartment_performance(db, start_date, end_date)


@router.get("/payment-analytics")
async def payment_analytics(
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await ReportService.payment_analytics(db, start_date, end_date)
