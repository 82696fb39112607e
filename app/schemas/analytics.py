"""
trackd - Analytics Schemas

Response shapes for the five dashboard aggregations.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from app.schemas.base import APIModel, Money


class DashboardMetrics(APIModel):
    total_revenue: Money
    total_expenses: Money
    total_profit: Money
    total_hours: Money
    total_jobs: int
    completed_jobs: int
    average_hourly_rate: Money
    profit_margin: Money
    active_customers: int
    monthly_revenue: Money


class EfficiencyPoint(APIModel):
    customer_name: str
    job_type: str
    hours: Money
    revenue: Money
    hourly_rate: Money
    date: Optional[datetime] = None


class CustomerValue(APIModel):
    customer_id: Optional[UUID] = None
    customer_name: str
    total_jobs: int
    lifetime_revenue: Money
    average_job_value: Money
    last_job_date: Optional[datetime] = None
    value_quartile: int


class MonthlyTrend(APIModel):
    month: str  # YYYY-MM
    revenue: Money
    hours: Money
    job_count: int
    average_hourly_rate: Money


class CompetitorComparison(APIModel):
    name: str
    their_hourly_rate: Money
    their_emergency_callout_fee: Optional[Money] = None
    user_average_rate: Money
    price_difference: Money
