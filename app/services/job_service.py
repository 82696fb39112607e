"""
trackd - Job Service

Business logic for job management. Every write keeps the derived job
columns and the linked customers' aggregates in step.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.customer import Customer
from app.models.job import Job
from app.schemas.job import JobCreateRequest, JobUpdateRequest
from app.services.analytics_service import AnalyticsService
from app.utils.currency import quantize_money, safe_divide, to_decimal
from app.utils.error_handling import NotFoundException

logger = logging.getLogger(__name__)


def derive_hourly_rate(revenue: Any, hours: Any) -> Decimal:
    """revenue / hours, or 0 when no hours were logged."""
    return quantize_money(safe_divide(revenue, hours))


def derive_profit_margin(revenue: Any, expenses: Any) -> Decimal:
    """Profit as a percentage of revenue, or 0 when revenue is 0."""
    revenue = to_decimal(revenue)
    return quantize_money(safe_divide(revenue - to_decimal(expenses), revenue) * 100)


class JobService:
    """Service for job operations."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
        self.analytics = AnalyticsService(db)
    
    async def get_jobs(self, user_id: uuid.UUID) -> List[Job]:
        """Get all jobs for a user, newest job date first."""
        result = await self.db.execute(
            select(Job)
            .where(Job.user_id == user_id)
            .order_by(Job.date.desc(), Job.created_at.desc())
        )
        return list(result.scalars().all())
    
    async def get_job(self, user_id: uuid.UUID, job_id: uuid.UUID) -> Job:
        result = await self.db.execute(
            select(Job).where(Job.id == job_id, Job.user_id == user_id)
        )
        job = result.scalar_one_or_none()
        if job is None:
            raise NotFoundException("Job", job_id)
        return job
    
    async def _ensure_customer(self, user_id: uuid.UUID, customer_id: Optional[uuid.UUID]) -> None:
        """A job may only link to one of the same user's customers."""
        if customer_id is None:
            return
        result = await self.db.execute(
            select(Customer.id).where(Customer.id == customer_id, Customer.user_id == user_id)
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundException("Customer", customer_id)
    
    @staticmethod
    def _apply_derived(job: Job) -> None:
        job.hourly_rate = derive_hourly_rate(job.revenue, job.hours)
        job.profit_margin = derive_profit_margin(job.revenue, job.expenses)
    
    @staticmethod
    def _column_values(data: Dict[str, Any]) -> Dict[str, Any]:
        data.pop("hourly_rate", None)
        if data.get("materials") is not None:
            data["materials"] = [
                {"name": m["name"], "cost": float(m["cost"]), "quantity": m["quantity"]}
                for m in data["materials"]
            ]
        for key in ("revenue", "expenses", "hours"):
            if data.get(key) is not None:
                data[key] = quantize_money(data[key])
        return data
    
    async def create_job(self, user_id: uuid.UUID, request: JobCreateRequest) -> Job:
        """Create a job and refresh the linked customer's aggregates."""
        await self._ensure_customer(user_id, request.customer_id)
        
        job = Job(user_id=user_id, **self._column_values(request.model_dump()))
        self._apply_derived(job)
        self.db.add(job)
        
        await self.analytics.recompute_customer_stats(user_id, job.customer_id)
        await self.db.commit()
        await self.db.refresh(job)
        
        logger.info(f"Job created: {job.id} for user {user_id}")
        return job
    
    async def update_job(
        self,
        user_id: uuid.UUID,
        job_id: uuid.UUID,
        request: JobUpdateRequest,
    ) -> Job:
        """Update a job; both the previous and the new customer are recomputed."""
        job = await self.get_job(user_id, job_id)
        previous_customer_id = job.customer_id
        
        changes = self._column_values(request.model_dump(exclude_unset=True))
        if "customer_id" in changes:
            await self._ensure_customer(user_id, changes["customer_id"])
        for key in ("customer_name", "job_type", "revenue", "hours", "date", "status"):
            # Required columns cannot be cleared
            if key in changes and changes[key] is None:
                changes.pop(key)
        if "expenses" in changes and changes["expenses"] is None:
            changes["expenses"] = Decimal("0")
        if "materials" in changes and changes["materials"] is None:
            changes["materials"] = []
        
        for key, value in changes.items():
            setattr(job, key, value)
        self._apply_derived(job)
        
        await self.analytics.recompute_customer_stats(user_id, job.customer_id)
        if previous_customer_id != job.customer_id:
            await self.analytics.recompute_customer_stats(user_id, previous_customer_id)
        
        await self.db.commit()
        await self.db.refresh(job)
        return job
    
    async def delete_job(self, user_id: uuid.UUID, job_id: uuid.UUID) -> None:
        job = await self.get_job(user_id, job_id)
        customer_id = job.customer_id
        
        await self.db.delete(job)
        await self.analytics.recompute_customer_stats(user_id, customer_id)
        await self.db.commit()
        
        logger.info(f"Job deleted: {job_id} for user {user_id}")
