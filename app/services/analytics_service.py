"""
trackd - Analytics Service

Read-only reporting views over a single user's jobs, customers and
competitors, plus the write-side customer aggregate recomputation that
shares the same arithmetic.

Every view:
- filters on user_id
- treats NULL sums as 0
- returns 0 for any division by a zero denominator
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import case, extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.competitor import Competitor
from app.models.customer import Customer, CustomerStatus
from app.models.job import Job, JobStatus
from app.schemas.analytics import (
    CompetitorComparison,
    CustomerValue,
    DashboardMetrics,
    EfficiencyPoint,
    MonthlyTrend,
)
from app.services.entitlement_service import month_bounds
from app.utils.currency import quantize_money, safe_divide, to_decimal

logger = logging.getLogger(__name__)


def value_quartile(position: int, total: int) -> int:
    """
    Quartile (1 = top) for a 0-based rank position among ``total`` customers.
    
    Bucketed by the rank fraction ``(position + 1) / total``: <= 25% -> 1,
    <= 50% -> 2, <= 75% -> 3, else 4.
    """
    if total <= 0:
        return 4
    rank = position + 1
    if rank * 4 <= total:
        return 1
    if rank * 2 <= total:
        return 2
    if rank * 4 <= total * 3:
        return 3
    return 4


def months_back(now: datetime, count: int) -> datetime:
    """First day of the month ``count`` months before ``now``'s month."""
    month_index = now.year * 12 + (now.month - 1) - count
    return datetime(month_index // 12, month_index % 12 + 1, 1)


@dataclass
class CustomerAggregate:
    """Aggregate of one customer's jobs."""
    total_jobs: int
    total_revenue: Decimal
    average_job_value: Decimal
    first_job_date: Optional[datetime]
    last_job_date: Optional[datetime]


class AnalyticsService:
    """Service for dashboard aggregations."""
    
    def __init__(self, db: AsyncSession, clock=utcnow):
        self.db = db
        self._clock = clock
    
    # =========================================================================
    # DASHBOARD
    # =========================================================================
    
    async def get_dashboard_metrics(self, user_id: uuid.UUID) -> DashboardMetrics:
        """Totals over all of the user's jobs regardless of status."""
        job_result = await self.db.execute(
            select(
                func.coalesce(func.sum(Job.revenue), 0),
                func.coalesce(func.sum(Job.expenses), 0),
                func.coalesce(func.sum(Job.hours), 0),
                func.count(Job.id),
                func.count(case((Job.status == JobStatus.COMPLETED, 1))),
            ).where(Job.user_id == user_id)
        )
        revenue, expenses, hours, total_jobs, completed_jobs = job_result.one()
        revenue = to_decimal(revenue)
        expenses = to_decimal(expenses)
        hours = to_decimal(hours)
        profit = revenue - expenses
        
        start, end = month_bounds(self._clock())
        monthly_result = await self.db.execute(
            select(func.coalesce(func.sum(Job.revenue), 0)).where(
                Job.user_id == user_id,
                Job.date >= start,
                Job.date < end,
            )
        )
        monthly_revenue = to_decimal(monthly_result.scalar())
        
        customer_result = await self.db.execute(
            select(func.count(Customer.id)).where(
                Customer.user_id == user_id,
                Customer.status == CustomerStatus.ACTIVE,
            )
        )
        active_customers = int(customer_result.scalar() or 0)
        
        return DashboardMetrics(
            total_revenue=quantize_money(revenue),
            total_expenses=quantize_money(expenses),
            total_profit=quantize_money(profit),
            total_hours=quantize_money(hours),
            total_jobs=int(total_jobs or 0),
            completed_jobs=int(completed_jobs or 0),
            average_hourly_rate=quantize_money(safe_divide(revenue, hours)),
            profit_margin=quantize_money(safe_divide(profit, revenue) * 100),
            active_customers=active_customers,
            monthly_revenue=quantize_money(monthly_revenue),
        )
    
    # =========================================================================
    # EFFICIENCY MATRIX
    # =========================================================================
    
    async def get_efficiency_matrix(self, user_id: uuid.UUID) -> List[EfficiencyPoint]:
        """Completed jobs as (hours, revenue) points, newest first."""
        result = await self.db.execute(
            select(
                Job.customer_name,
                Job.job_type,
                Job.hours,
                Job.revenue,
                Job.hourly_rate,
                Job.date,
            )
            .where(Job.user_id == user_id, Job.status == JobStatus.COMPLETED)
            .order_by(Job.date.desc(), Job.id)
        )
        return [
            EfficiencyPoint(
                customer_name=row.customer_name,
                job_type=row.job_type,
                hours=quantize_money(row.hours),
                revenue=quantize_money(row.revenue),
                hourly_rate=quantize_money(row.hourly_rate),
                date=row.date,
            )
            for row in result.all()
        ]
    
    # =========================================================================
    # CUSTOMER VALUE RANKING
    # =========================================================================
    
    async def get_customer_value_ranking(self, user_id: uuid.UUID) -> List[CustomerValue]:
        """
        Customers ranked by lifetime revenue across all job statuses.
        
        Jobs linked to a customer record group by customer id, the same
        grouping recompute_customer_stats uses. Unlinked jobs group by
        name. Ties on revenue are broken by customer id, then name.
        """
        name_key = case((Job.customer_id.is_(None), Job.customer_name), else_=None).label("name_key")
        lifetime_revenue = func.coalesce(func.sum(Job.revenue), 0).label("lifetime_revenue")
        result = await self.db.execute(
            select(
                Job.customer_id,
                name_key,
                func.max(Job.customer_name).label("customer_name"),
                func.count(Job.id).label("total_jobs"),
                lifetime_revenue,
                func.max(Job.date).label("last_job_date"),
            )
            .where(Job.user_id == user_id)
            .group_by(Job.customer_id, name_key)
            .order_by(lifetime_revenue.desc(), Job.customer_id, name_key)
        )
        rows = result.all()
        
        ranking = []
        for position, row in enumerate(rows):
            revenue = to_decimal(row.lifetime_revenue)
            ranking.append(
                CustomerValue(
                    customer_id=row.customer_id,
                    customer_name=row.customer_name,
                    total_jobs=int(row.total_jobs),
                    lifetime_revenue=quantize_money(revenue),
                    average_job_value=quantize_money(safe_divide(revenue, row.total_jobs)),
                    last_job_date=row.last_job_date,
                    value_quartile=value_quartile(position, len(rows)),
                )
            )
        return ranking
    
    # =========================================================================
    # SEASONAL TRENDS
    # =========================================================================
    
    async def get_seasonal_trends(self, user_id: uuid.UUID) -> List[MonthlyTrend]:
        """Monthly revenue/hours for the trailing 12 months, oldest first."""
        now = self._clock()
        start = months_back(now, 11)
        _, end = month_bounds(now)
        
        year = extract("year", Job.date)
        month = extract("month", Job.date)
        result = await self.db.execute(
            select(
                year.label("year"),
                month.label("month"),
                func.coalesce(func.sum(Job.revenue), 0).label("revenue"),
                func.coalesce(func.sum(Job.hours), 0).label("hours"),
                func.count(Job.id).label("job_count"),
            )
            .where(Job.user_id == user_id, Job.date >= start, Job.date < end)
            .group_by(year, month)
            .order_by(year, month)
        )
        
        trends = []
        for row in result.all():
            revenue = to_decimal(row.revenue)
            hours = to_decimal(row.hours)
            trends.append(
                MonthlyTrend(
                    month=f"{int(row.year):04d}-{int(row.month):02d}",
                    revenue=quantize_money(revenue),
                    hours=quantize_money(hours),
                    job_count=int(row.job_count),
                    average_hourly_rate=quantize_money(safe_divide(revenue, hours)),
                )
            )
        return trends
    
    # =========================================================================
    # COMPETITOR COMPARISON
    # =========================================================================
    
    async def get_user_average_rate(self, user_id: uuid.UUID) -> Decimal:
        """Revenue / hours over completed jobs."""
        result = await self.db.execute(
            select(
                func.coalesce(func.sum(Job.revenue), 0),
                func.coalesce(func.sum(Job.hours), 0),
            ).where(Job.user_id == user_id, Job.status == JobStatus.COMPLETED)
        )
        revenue, hours = result.one()
        return safe_divide(revenue, hours)
    
    async def get_competitor_comparison(self, user_id: uuid.UUID) -> List[CompetitorComparison]:
        user_rate = quantize_money(await self.get_user_average_rate(user_id))
        
        result = await self.db.execute(
            select(Competitor)
            .where(Competitor.user_id == user_id, Competitor.is_active.is_(True))
            .order_by(Competitor.name, Competitor.id)
        )
        
        comparison = []
        for competitor in result.scalars().all():
            if competitor.hourly_rate is None:
                their_rate = Decimal("0")
                difference = Decimal("0")
            else:
                their_rate = quantize_money(competitor.hourly_rate)
                difference = user_rate - their_rate
            comparison.append(
                CompetitorComparison(
                    name=competitor.name,
                    their_hourly_rate=their_rate,
                    their_emergency_callout_fee=(
                        quantize_money(competitor.emergency_callout_fee)
                        if competitor.emergency_callout_fee is not None else None
                    ),
                    user_average_rate=user_rate,
                    price_difference=quantize_money(difference),
                )
            )
        return comparison
    
    # =========================================================================
    # CUSTOMER AGGREGATES (write side)
    # =========================================================================
    
    async def aggregate_customer_jobs(self, user_id: uuid.UUID, customer_id: uuid.UUID) -> CustomerAggregate:
        result = await self.db.execute(
            select(
                func.count(Job.id),
                func.coalesce(func.sum(Job.revenue), 0),
                func.min(Job.date),
                func.max(Job.date),
            ).where(Job.user_id == user_id, Job.customer_id == customer_id)
        )
        total_jobs, total_revenue, first_date, last_date = result.one()
        total_revenue = to_decimal(total_revenue)
        return CustomerAggregate(
            total_jobs=int(total_jobs or 0),
            total_revenue=quantize_money(total_revenue),
            average_job_value=quantize_money(safe_divide(total_revenue, total_jobs)),
            first_job_date=first_date,
            last_job_date=last_date,
        )
    
    async def recompute_customer_stats(
        self,
        user_id: uuid.UUID,
        customer_id: Optional[uuid.UUID],
    ) -> Optional[Customer]:
        """
        Rewrite a customer's aggregate columns from all of its jobs.
        
        Flushes pending job changes first so the aggregate sees them.
        """
        if customer_id is None:
            return None
        
        await self.db.flush()
        result = await self.db.execute(
            select(Customer).where(Customer.id == customer_id, Customer.user_id == user_id)
        )
        customer = result.scalar_one_or_none()
        if customer is None:
            return None
        
        aggregate = await self.aggregate_customer_jobs(user_id, customer_id)
        customer.total_jobs = aggregate.total_jobs
        customer.total_revenue = aggregate.total_revenue
        customer.average_job_value = aggregate.average_job_value
        customer.lifetime_value = aggregate.total_revenue
        customer.first_job_date = aggregate.first_job_date
        customer.last_job_date = aggregate.last_job_date
        await self.db.flush()
        
        logger.debug(
            f"Recomputed customer {customer_id}: jobs={aggregate.total_jobs} revenue={aggregate.total_revenue}"
        )
        return customer
