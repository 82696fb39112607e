"""
trackd - Insight Service

Business logic for insights: manual CRUD, the status lifecycle and
AI regeneration from the user's recent activity.
"""

import logging
import uuid
from collections import OrderedDict
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.competitor import Competitor
from app.models.customer import Customer
from app.models.insight import Insight, InsightPriority, InsightStatus, InsightType
from app.models.job import Job
from app.models.user import User
from app.schemas.insight import InsightCreateRequest
from app.services.ai_service import AIService
from app.utils.currency import safe_divide, to_decimal
from app.utils.error_handling import InvalidStatusTransitionException, NotFoundException

logger = logging.getLogger(__name__)


RECENT_ACTIVITY_DAYS = 30
TOP_CUSTOMER_COUNT = 5


def _enum_or_default(enum_cls, value: Any, default):
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


def _truncate(value: Any, length: int) -> Optional[str]:
    if value is None:
        return None
    return str(value)[:length]


class InsightService:
    """Service for insight operations."""
    
    def __init__(self, db: AsyncSession, ai_service: Optional[AIService] = None, clock=utcnow):
        self.db = db
        self.ai_service = ai_service or AIService(db)
        self._clock = clock
    
    # =========================================================================
    # CRUD
    # =========================================================================
    
    async def get_insights(self, user_id: uuid.UUID) -> List[Insight]:
        result = await self.db.execute(
            select(Insight)
            .where(Insight.user_id == user_id)
            .order_by(Insight.created_at.desc(), Insight.id)
        )
        return list(result.scalars().all())
    
    async def get_insight(self, user_id: uuid.UUID, insight_id: uuid.UUID) -> Insight:
        result = await self.db.execute(
            select(Insight).where(Insight.id == insight_id, Insight.user_id == user_id)
        )
        insight = result.scalar_one_or_none()
        if insight is None:
            raise NotFoundException("Insight", insight_id)
        return insight
    
    async def create_insight(self, user_id: uuid.UUID, request: InsightCreateRequest) -> Insight:
        insight = Insight(user_id=user_id, **request.model_dump())
        
        self.db.add(insight)
        await self.db.commit()
        await self.db.refresh(insight)
        
        return insight
    
    async def update_status(
        self,
        user_id: uuid.UUID,
        insight_id: uuid.UUID,
        status: InsightStatus,
    ) -> Insight:
        """
        Move an insight through its lifecycle.
        
        Once completed or dismissed an insight cannot become active again.
        """
        insight = await self.get_insight(user_id, insight_id)
        
        if status == InsightStatus.ACTIVE and insight.status != InsightStatus.ACTIVE:
            raise InvalidStatusTransitionException("Insight", insight.status.value, status.value)
        
        insight.status = status
        if status == InsightStatus.COMPLETED:
            insight.action_taken = True
        
        await self.db.commit()
        await self.db.refresh(insight)
        return insight
    
    async def mark_viewed(self, user_id: uuid.UUID, insight_id: uuid.UUID, viewed: bool) -> Insight:
        insight = await self.get_insight(user_id, insight_id)
        insight.viewed = viewed
        
        await self.db.commit()
        await self.db.refresh(insight)
        return insight
    
    async def delete_insight(self, user_id: uuid.UUID, insight_id: uuid.UUID) -> None:
        insight = await self.get_insight(user_id, insight_id)
        await self.db.delete(insight)
        await self.db.commit()
    
    async def count_unviewed(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(Insight.id)).where(
                Insight.user_id == user_id,
                Insight.viewed.is_(False),
            )
        )
        return int(result.scalar() or 0)
    
    # =========================================================================
    # REGENERATION
    # =========================================================================
    
    async def build_regeneration_prompt(self, user_id: uuid.UUID) -> str:
        """Summarise the last 30 days of jobs, top customers and competitor rates."""
        since = self._clock() - timedelta(days=RECENT_ACTIVITY_DAYS)
        
        job_result = await self.db.execute(
            select(Job)
            .where(Job.user_id == user_id, Job.date >= since)
            .order_by(Job.date)
        )
        recent_jobs = list(job_result.scalars().all())
        
        by_type: Dict[str, Dict[str, Decimal]] = OrderedDict()
        for job in recent_jobs:
            bucket = by_type.setdefault(
                job.job_type,
                {"revenue": Decimal("0"), "hours": Decimal("0"), "count": Decimal("0")},
            )
            bucket["revenue"] += to_decimal(job.revenue)
            bucket["hours"] += to_decimal(job.hours)
            bucket["count"] += 1
        
        customer_result = await self.db.execute(
            select(Customer)
            .where(Customer.user_id == user_id)
            .order_by(Customer.total_revenue.desc(), Customer.name)
            .limit(TOP_CUSTOMER_COUNT)
        )
        top_customers = list(customer_result.scalars().all())
        
        competitor_result = await self.db.execute(
            select(Competitor).where(Competitor.user_id == user_id).order_by(Competitor.name)
        )
        competitors = list(competitor_result.scalars().all())
        
        total_revenue = sum((to_decimal(j.revenue) for j in recent_jobs), Decimal("0"))
        total_hours = sum((to_decimal(j.hours) for j in recent_jobs), Decimal("0"))
        
        job_lines = "\n".join(
            f"- {job_type}: {int(data['count'])} jobs, "
            f"avg rate £{safe_divide(data['revenue'], data['hours']):.2f}/hr"
            for job_type, data in by_type.items()
        )
        customer_lines = "\n".join(
            f"- {c.name}: £{to_decimal(c.total_revenue):.2f} ({c.total_jobs} jobs)"
            for c in top_customers
        )
        competitor_lines = "\n".join(
            f"- {c.name}: £{to_decimal(c.hourly_rate)}/hr" for c in competitors
        )
        
        return f"""You are a business analyst for a trades business (plumbing, electrical, HVAC, or handyman). Analyze the following data and provide 3-5 actionable business insights.

**Business Data (Last 30 Days):**

**Jobs by Type:**
{job_lines}

**Top Customers by Revenue:**
{customer_lines}

**Competitor Rates:**
{competitor_lines}

**Total Jobs:** {len(recent_jobs)}
**Total Revenue:** £{total_revenue:.2f}
**Total Hours:** {total_hours:.1f}

Provide 3-5 insights focusing on:
1. Pricing opportunities (undercharging or overcharging)
2. Customer value analysis (which customers to prioritize)
3. Efficiency gaps (where time is wasted)
4. Competitive positioning

For each insight, return a JSON object with:
- title (string, max 60 chars)
- description (string, max 200 chars)
- action (string, specific recommendation, max 100 chars)
- impact (string, quantifiable benefit, max 80 chars)
- priority ("high", "medium", or "low")
- type ("pricing", "customer", "efficiency", or "market")
- category (string, max 40 chars)

Return ONLY a valid JSON array of insights, no additional text."""
    
    async def regenerate(self, user: User) -> List[Insight]:
        """
        Replace the user's insights with a fresh AI-generated set.
        
        Existing insights are only removed once the model has produced at
        least one valid replacement.
        """
        prompt = await self.build_regeneration_prompt(user.id)
        generated = await self.ai_service.generate_insights(user, prompt)
        
        await self.db.execute(delete(Insight).where(Insight.user_id == user.id))
        
        insights = []
        for item in generated:
            insight = Insight(
                user_id=user.id,
                type=_enum_or_default(InsightType, item.get("type"), InsightType.PRICING),
                priority=_enum_or_default(InsightPriority, item.get("priority"), InsightPriority.MEDIUM),
                title=_truncate(item["title"], 255),
                description=_truncate(item.get("description"), 2000),
                action=_truncate(item["action"], 2000),
                impact=_truncate(item["impact"], 255),
                category=_truncate(item.get("category") or "Business Analysis", 100),
                status=InsightStatus.ACTIVE,
                ai_generated=True,
            )
            self.db.add(insight)
            insights.append(insight)
        
        await self.db.commit()
        for insight in insights:
            await self.db.refresh(insight)
        
        logger.info(f"Regenerated {len(insights)} insights for user {user.id}")
        return insights
