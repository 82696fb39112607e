"""
trackd - Analytics Router

Dashboard aggregations for the current user. Every view returns zeroed or
empty results when the user has no data.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.analytics import (
    CompetitorComparison,
    CustomerValue,
    DashboardMetrics,
    EfficiencyPoint,
    MonthlyTrend,
)
from app.services.analytics_service import AnalyticsService


router = APIRouter()


@router.get(
    "/dashboard",
    response_model=DashboardMetrics,
    summary="Dashboard metrics",
    description="Revenue, expenses, profit, hours and rates across all jobs.",
)
async def dashboard_metrics(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await AnalyticsService(db).get_dashboard_metrics(current_user.id)


@router.get(
    "/efficiency",
    response_model=List[EfficiencyPoint],
    summary="Efficiency matrix",
    description="Hours against revenue for each completed job.",
)
async def efficiency_matrix(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await AnalyticsService(db).get_efficiency_matrix(current_user.id)


@router.get(
    "/customers",
    response_model=List[CustomerValue],
    summary="Customer value ranking",
    description="Customers ranked by lifetime revenue with value quartiles (1 = top).",
)
async def customer_value_ranking(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await AnalyticsService(db).get_customer_value_ranking(current_user.id)


@router.get(
    "/trends",
    response_model=List[MonthlyTrend],
    summary="Seasonal trends",
    description="Monthly revenue and hours for the trailing twelve months.",
)
async def seasonal_trends(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await AnalyticsService(db).get_seasonal_trends(current_user.id)


@router.get(
    "/competitors",
    response_model=List[CompetitorComparison],
    summary="Competitor comparison",
    description="Active competitors' rates against the user's average completed-job rate.",
)
async def competitor_comparison(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await AnalyticsService(db).get_competitor_comparison(current_user.id)
