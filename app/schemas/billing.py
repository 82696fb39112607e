"""
trackd - Billing Schemas

Request/response bodies for the Stripe checkout and subscription endpoints.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from app.models.subscription import BillingCycle
from app.schemas.base import APIModel, Money


class CreateCustomerResponse(APIModel):
    customer_id: str


class CreateCheckoutSessionRequest(APIModel):
    """Checkout request for a paid tier."""
    tier: str = Field(..., min_length=1)
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    currency: Optional[str] = Field(None, description="Defaults to the user's preferred currency")


class CheckoutSessionResponse(APIModel):
    """Either a hosted checkout redirect or an in-place subscription update."""
    session_id: Optional[str] = None
    url: Optional[str] = None
    success: Optional[bool] = None
    message: Optional[str] = None


class CheckoutSuccessRequest(APIModel):
    session_id: str = Field(..., min_length=1)


class BillingActionResponse(APIModel):
    success: bool = True
    message: Optional[str] = None
    cancel_at: Optional[datetime] = None


class SubscriptionResponse(APIModel):
    """Local subscription record merged with live Stripe state."""
    id: UUID
    user_id: UUID
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    subscription_tier: str
    subscription_status: str
    monthly_price: Money
    billing_cycle: str
    currency: str
    trial_active: bool
    trial_start_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    subscription_start_date: Optional[datetime] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    last_payment_date: Optional[datetime] = None
    last_payment_amount: Optional[Money] = None
    cancel_at_period_end: bool
    canceled_at: Optional[datetime] = None
    max_jobs_per_month: Optional[int] = None
    max_competitors: int
    ai_credits_monthly: int
    stripe_status: Optional[str] = None


class SubscriptionEnvelope(APIModel):
    subscription: Optional[SubscriptionResponse] = None
