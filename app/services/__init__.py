"""
trackd - Services Package

Business logic services.
"""

from app.services.tier_config_service import TierConfigProvider, TierCache, tier_config_provider
from app.services.entitlement_service import EntitlementService
from app.services.analytics_service import AnalyticsService
from app.services.job_service import JobService
from app.services.customer_service import CustomerService
from app.services.competitor_service import CompetitorService
from app.services.ai_service import AIService
from app.services.insight_service import InsightService
from app.services.user_service import UserService
from app.services.billing_service import BillingService, StripeProvider

__all__ = [
    "TierConfigProvider",
    "TierCache",
    "tier_config_provider",
    "EntitlementService",
    "AnalyticsService",
    "JobService",
    "CustomerService",
    "CompetitorService",
    "AIService",
    "InsightService",
    "UserService",
    "BillingService",
    "StripeProvider",
]
