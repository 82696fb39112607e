"""
trackd - Entitlement Service

Decides whether a user's tier permits an action by comparing the tier quota
with the user's usage in the current calendar month.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.ai_request import AIRequest
from app.models.base import utcnow
from app.models.competitor import Competitor
from app.models.job import Job
from app.models.user import User
from app.schemas.tier import LimitCheckResult, LimitKind, TierConfig
from app.services.tier_config_service import TierConfigProvider, tier_config_provider
from app.utils.error_handling import (
    AuthorizationException,
    QuotaExceededException,
    ValidationException,
)

logger = logging.getLogger(__name__)


def month_bounds(now: datetime) -> Tuple[datetime, datetime]:
    """Start of the current calendar month and start of the next."""
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def parse_limit_kind(value: str) -> LimitKind:
    try:
        return LimitKind((value or "").strip().lower())
    except ValueError:
        raise ValidationException("Unknown limit type", field="limitType")


def describe_limit(kind: LimitKind, tier: TierConfig) -> Tuple[Optional[int], str]:
    """Quota for ``kind`` and the message shown to the user."""
    if kind == LimitKind.JOBS:
        limit = tier.max_jobs_per_month
        if limit is None:
            return None, "Unlimited jobs"
        return limit, f"You can create up to {limit} jobs per month"
    if kind == LimitKind.AI:
        limit = tier.ai_credits_per_month
        return limit, f"You have {limit} AI credits per month"
    limit = tier.max_competitors
    return limit, f"You can track up to {limit} competitors"


class EntitlementService:
    """Service for tier quota checks."""
    
    def __init__(
        self,
        db: AsyncSession,
        tier_provider: Optional[TierConfigProvider] = None,
        clock=utcnow,
    ):
        self.db = db
        self.tier_provider = tier_provider or tier_config_provider
        self._clock = clock
    
    # =========================================================================
    # USAGE
    # =========================================================================
    
    async def current_usage(self, user_id: uuid.UUID, kind: LimitKind) -> int:
        """Usage in the current period (calendar month for jobs and AI)."""
        start, end = month_bounds(self._clock())
        
        if kind == LimitKind.JOBS:
            query = select(func.count(Job.id)).where(
                Job.user_id == user_id,
                Job.created_at >= start,
                Job.created_at < end,
            )
        elif kind == LimitKind.AI:
            query = select(func.count(AIRequest.id)).where(
                AIRequest.user_id == user_id,
                AIRequest.success.is_(True),
                AIRequest.created_at >= start,
                AIRequest.created_at < end,
            )
        else:
            query = select(func.count(Competitor.id)).where(
                Competitor.user_id == user_id,
                Competitor.is_active.is_(True),
            )
        
        result = await self.db.execute(query)
        return int(result.scalar() or 0)
    
    # =========================================================================
    # CHECKS
    # =========================================================================
    
    async def check_limit(
        self,
        user_id: uuid.UUID,
        tier_name: str,
        limit_kind: LimitKind,
    ) -> LimitCheckResult:
        tier = await self.tier_provider.get_tier(tier_name)
        if tier is None:
            return LimitCheckResult(allowed=False, limit=0, current=0, message="Invalid tier")
        
        limit, message = describe_limit(limit_kind, tier)
        current = await self.current_usage(user_id, limit_kind)
        allowed = limit is None or current < limit
        
        return LimitCheckResult(allowed=allowed, limit=limit, current=current, message=message)
    
    async def enforce(self, user: User, limit_kind: LimitKind) -> LimitCheckResult:
        """Raise if the user may not perform one more ``limit_kind`` action."""
        if await self.tier_provider.get_tier(user.subscription_tier) is None:
            raise AuthorizationException(
                message="Your plan does not include this feature. Please choose a subscription.",
                details={"tier": user.subscription_tier, "limit_type": limit_kind.value},
            )
        
        result = await self.check_limit(user.id, user.subscription_tier, limit_kind)
        if result.allowed:
            return result
        
        logger.info(
            f"Entitlement denied: user={user.id} tier={user.subscription_tier} "
            f"kind={limit_kind.value} current={result.current} limit={result.limit}"
        )
        raise QuotaExceededException(
            limit_kind=limit_kind.value,
            limit=result.limit,
            current=result.current,
            tier=user.subscription_tier,
        )
