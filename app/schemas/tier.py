"""
trackd - Tier Configuration Schemas

Subscription tier definitions and entitlement check payloads.
"""

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import Field

from app.schemas.base import APIModel, Money


class InsightSchedule(str, Enum):
    DAILY = "daily"
    EVERY_3_DAYS = "every_3_days"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class LimitKind(str, Enum):
    JOBS = "jobs"
    AI = "ai"
    COMPETITORS = "competitors"


class TierPricing(APIModel):
    """Monthly price per currency."""
    gbp: Money = Decimal("0")
    eur: Money = Decimal("0")
    usd: Money = Decimal("0")


class TierFeatures(APIModel):
    advanced_analytics: bool = False
    competitor_alerts: bool = False
    export_reports: bool = False
    api_access: bool = False
    whatsapp_integration: bool = False
    priority_support: bool = False


class TierConfig(APIModel):
    """
    A subscription tier.
    
    max_jobs_per_month is None for unlimited; 0 means no jobs allowed.
    """
    tier_name: str
    display_name: str
    pricing: TierPricing = Field(default_factory=TierPricing)
    trial_duration_days: Optional[int] = None
    max_jobs_per_month: Optional[int] = None
    max_competitors: int = 3
    ai_credits_per_month: int = 0
    insight_generation_schedule: InsightSchedule = InsightSchedule.WEEKLY
    insight_generation_time: str = "09:00"
    ai_model: str = "gpt-4o-mini"
    features: TierFeatures = Field(default_factory=TierFeatures)


class TierListResponse(APIModel):
    tiers: List[TierConfig]


class TierResponse(APIModel):
    tier: TierConfig


class CheckLimitRequest(APIModel):
    """Fields are optional so missing ones surface as a single 400."""
    user_id: Optional[str] = None
    tier_name: Optional[str] = None
    limit_type: Optional[str] = None


class LimitCheckResult(APIModel):
    allowed: bool
    limit: Optional[int] = None
    current: int = 0
    message: str
