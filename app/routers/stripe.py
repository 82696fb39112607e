"""
trackd - Stripe Billing Router

Checkout, subscription management and the Stripe webhook endpoint.
"""

import json
import logging
from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_async_session
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.billing import (
    BillingActionResponse,
    CheckoutSessionResponse,
    CheckoutSuccessRequest,
    CreateCheckoutSessionRequest,
    CreateCustomerResponse,
    SubscriptionEnvelope,
)
from app.services.billing_service import BillingService, StripeProvider
from app.services.tier_config_service import TierConfigProvider, get_tier_config_provider
from app.utils.error_handling import AuthorizationException, ValidationException
from app.utils.security import verify_stripe_signature

logger = logging.getLogger(__name__)

router = APIRouter()


def get_stripe_provider() -> StripeProvider:
    """FastAPI dependency returning a Stripe client built from settings."""
    return StripeProvider()


def get_billing_service(
    db: AsyncSession = Depends(get_async_session),
    stripe: StripeProvider = Depends(get_stripe_provider),
    tier_provider: TierConfigProvider = Depends(get_tier_config_provider),
) -> BillingService:
    return BillingService(db, stripe=stripe, tier_provider=tier_provider)


@router.post(
    "/create-customer",
    response_model=CreateCustomerResponse,
    summary="Create Stripe customer",
    description="Return the user's Stripe customer id, creating the customer on first use.",
)
async def create_customer(
    current_user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    return CreateCustomerResponse(customer_id=await billing.create_customer(current_user))


@router.post(
    "/create-checkout-session",
    response_model=CheckoutSessionResponse,
    response_model_exclude_none=True,
    summary="Subscribe or change plan",
    description=(
        "Start a hosted checkout for basic or pro. When a live subscription exists "
        "the plan is switched in place and invoiced immediately."
    ),
)
async def create_checkout_session(
    request: CreateCheckoutSessionRequest,
    current_user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    return await billing.create_checkout_session(current_user, request)


@router.post(
    "/checkout-success",
    response_model=BillingActionResponse,
    response_model_exclude_none=True,
    summary="Complete checkout",
)
async def checkout_success(
    request: CheckoutSuccessRequest,
    current_user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    return await billing.complete_checkout(current_user, request.session_id)


@router.post(
    "/cancel-subscription",
    response_model=BillingActionResponse,
    response_model_exclude_none=True,
    summary="Cancel subscription",
    description="Cancel at the end of the current period. Access continues until then.",
)
async def cancel_subscription(
    current_user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    return await billing.cancel_subscription(current_user)


@router.post(
    "/reactivate-subscription",
    response_model=BillingActionResponse,
    response_model_exclude_none=True,
    summary="Reactivate subscription",
)
async def reactivate_subscription(
    current_user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    return await billing.reactivate_subscription(current_user)


@router.get(
    "/subscription/{user_id}",
    response_model=SubscriptionEnvelope,
    summary="Get subscription",
)
async def get_subscription(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    if user_id != current_user.id:
        raise AuthorizationException(message="Cannot view another user's subscription")
    return await billing.get_subscription(current_user.id)


@router.post(
    "/webhook",
    summary="Stripe webhook",
    description="Receives Stripe events. The Stripe-Signature header is verified when a webhook secret is configured.",
)
async def stripe_webhook(
    request: Request,
    billing: BillingService = Depends(get_billing_service),
) -> Dict[str, Any]:
    if billing.stripe.is_stub:
        return {"received": True}
    
    payload = await request.body()
    
    if settings.stripe_webhook_secret:
        signature = request.headers.get("stripe-signature", "")
        if not verify_stripe_signature(
            payload,
            signature,
            settings.stripe_webhook_secret,
            tolerance_seconds=settings.stripe_webhook_tolerance_seconds,
        ):
            logger.warning("Stripe webhook signature verification failed")
            raise ValidationException("Invalid webhook signature", field="Stripe-Signature")
    else:
        logger.warning("STRIPE_WEBHOOK_SECRET not set - accepting unsigned webhook")
    
    try:
        event = json.loads(payload)
    except ValueError:
        raise ValidationException("Invalid webhook payload")
    if not isinstance(event, dict):
        raise ValidationException("Invalid webhook payload")
    
    return await billing.process_webhook(event)
