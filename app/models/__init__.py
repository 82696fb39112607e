"""
trackd - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from app.models.base import BaseModel, TimestampMixin, utcnow
from app.models.user import User, Currency, DEFAULT_NOTIFICATIONS
from app.models.customer import Customer, CustomerStatus
from app.models.job import Job, JobStatus
from app.models.competitor import Competitor
from app.models.insight import Insight, InsightType, InsightPriority, InsightStatus
from app.models.subscription import (
    UserSubscription,
    SubscriptionEvent,
    ProcessedWebhookEvent,
    SubscriptionStatus,
    BillingCycle,
    FREE_TIER,
)
from app.models.ai_request import AIRequest, AIRequestType

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "utcnow",
    "User",
    "Currency",
    "DEFAULT_NOTIFICATIONS",
    "Customer",
    "CustomerStatus",
    "Job",
    "JobStatus",
    "Competitor",
    "Insight",
    "InsightType",
    "InsightPriority",
    "InsightStatus",
    "UserSubscription",
    "SubscriptionEvent",
    "ProcessedWebhookEvent",
    "SubscriptionStatus",
    "BillingCycle",
    "FREE_TIER",
    "AIRequest",
    "AIRequestType",
]
