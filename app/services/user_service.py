"""
trackd - User Service

Local user records keyed by the auth provider's subject id. A user is
provisioned on first authentication together with a trial subscription.
"""

import logging
import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.subscription import SubscriptionEvent, SubscriptionStatus, UserSubscription
from app.models.user import Currency, User
from app.schemas.user import UserProfileUpdateRequest
from app.services.tier_config_service import (
    TierConfigProvider,
    get_tier_price,
    tier_config_provider,
)
from app.utils.error_handling import NotFoundException

logger = logging.getLogger(__name__)


TRIAL_TIER = "trial"
DEFAULT_TRIAL_DAYS = 30


class UserService:
    """Service for user provisioning and profile updates."""
    
    def __init__(self, db: AsyncSession, tier_provider: Optional[TierConfigProvider] = None):
        self.db = db
        self.tier_provider = tier_provider or tier_config_provider
    
    async def get_by_id(self, user_id: uuid.UUID) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundException("User", user_id)
        return user
    
    async def get_by_auth_id(self, auth_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.auth_id == auth_id))
        return result.scalar_one_or_none()
    
    async def get_or_create(self, auth_id: str, email: Optional[str] = None) -> User:
        """Return the user for ``auth_id``, provisioning one on first sight."""
        user = await self.get_by_auth_id(auth_id)
        if user is not None:
            return user
        
        try:
            user = await self._provision(auth_id, email)
        except IntegrityError:
            # Concurrent first request provisioned the same subject
            await self.db.rollback()
            user = await self.get_by_auth_id(auth_id)
            if user is None:
                raise
        return user
    
    async def _provision(self, auth_id: str, email: Optional[str]) -> User:
        trial = await self.tier_provider.require_tier(TRIAL_TIER)
        now = utcnow()
        trial_days = trial.trial_duration_days or DEFAULT_TRIAL_DAYS
        
        user = User(
            auth_id=auth_id,
            email=email,
            subscription_tier=TRIAL_TIER,
            preferred_currency=Currency.GBP.value,
        )
        self.db.add(user)
        await self.db.flush()
        
        subscription = UserSubscription(
            user_id=user.id,
            subscription_tier=TRIAL_TIER,
            subscription_status=SubscriptionStatus.TRIALING.value,
            monthly_price=get_tier_price(trial, user.preferred_currency),
            currency=user.preferred_currency,
            trial_active=True,
            trial_start_date=now,
            trial_end_date=now + timedelta(days=trial_days),
            max_jobs_per_month=trial.max_jobs_per_month,
            max_competitors=trial.max_competitors,
            ai_credits_monthly=trial.ai_credits_per_month,
        )
        self.db.add(subscription)
        await self.db.flush()
        
        self.db.add(
            SubscriptionEvent(
                user_id=user.id,
                subscription_id=subscription.id,
                event_type="trial_started",
                new_tier=TRIAL_TIER,
                new_monthly_price=subscription.monthly_price,
                triggered_by="system",
            )
        )
        await self.db.commit()
        await self.db.refresh(user)
        
        logger.info(f"Provisioned user {user.id} with a {trial_days}-day trial")
        return user
    
    async def update_profile(self, user: User, request: UserProfileUpdateRequest) -> User:
        """Apply a partial profile update."""
        for key, value in request.model_dump(exclude_unset=True).items():
            if value is None and key in ("specializations", "team_size", "notifications",
                                         "preferred_currency", "onboarding_status", "onboarding_step"):
                continue
            if key == "preferred_currency":
                value = value.value
            elif key == "notifications":
                value = {**(user.notifications or {}), **value}
            setattr(user, key, value)
        
        await self.db.commit()
        await self.db.refresh(user)
        return user
