"""
trackd - Subscription Models

Local mirror of the user's Stripe subscription plus an audit trail of
tier/status transitions and the webhook events already applied.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, BaseModel, utcnow


class SubscriptionStatus(str, Enum):
    """Known Stripe subscription statuses (other values are stored verbatim)."""
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    PAUSED = "paused"


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"


# Tier applied once a subscription has fully terminated
FREE_TIER = "free"


class UserSubscription(BaseModel):
    """
    One row per user, created when the account is provisioned.
    
    Written by direct billing calls and by webhook delivery; every writer
    touches only the columns its event concerns.
    """
    
    __tablename__ = "user_subscriptions"
    
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    
    # Stripe integration
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    
    # Tier & status
    subscription_tier: Mapped[str] = mapped_column(String(50), default="trial", nullable=False)
    subscription_status: Mapped[str] = mapped_column(
        String(30),
        default=SubscriptionStatus.TRIALING.value,
        nullable=False,
    )
    
    # Pricing (canonical monthly price in the subscription currency)
    monthly_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    billing_cycle: Mapped[str] = mapped_column(String(20), default=BillingCycle.MONTHLY.value, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="GBP", nullable=False)
    
    # Trial
    trial_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    trial_start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    trial_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    trial_converted_to_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    trial_conversion_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    
    # Billing dates
    subscription_start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    current_period_start: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    current_period_end: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_payment_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    
    # Cancellation
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    canceled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    # Quotas copied from the tier at provisioning/checkout (NULL jobs = unlimited)
    max_jobs_per_month: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_competitors: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    ai_credits_monthly: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class SubscriptionEvent(BaseModel):
    """Audit trail of subscription changes for MRR and churn analysis."""
    
    __tablename__ = "subscription_events"
    
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subscription_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("user_subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    # subscription_created, trial_started, upgraded, downgraded, canceled,
    # reactivated, payment_succeeded, payment_failed, status_changed
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    previous_tier: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    new_tier: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    previous_monthly_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    new_monthly_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    mrr_change: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    
    stripe_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    triggered_by: Mapped[str] = mapped_column(String(20), default="system", nullable=False)  # user, stripe, system
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class ProcessedWebhookEvent(Base):
    """Stripe event ids that have already been applied."""
    
    __tablename__ = "processed_webhook_events"
    
    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    processed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
