"""
trackd - Billing Service

Service for managing subscriptions and payments.
Payment provider: Stripe (hosted checkout, subscriptions and webhooks).

Subscription lifecycle per user:
    trial -> basic|pro -> canceling (cancel_at_period_end) -> canceled
    canceling -> active again on reactivation
    canceled  -> new subscription through checkout

Direct API calls and webhook deliveries both write the local
UserSubscription row, so every writer touches only the columns its event
concerns. Webhook events are applied at most once, keyed by Stripe event id.

Without a Stripe secret key every operation returns a harmless stub result.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.base import utcnow
from app.models.subscription import (
    FREE_TIER,
    BillingCycle,
    ProcessedWebhookEvent,
    SubscriptionEvent,
    SubscriptionStatus,
    UserSubscription,
)
from app.models.user import User
from app.schemas.billing import (
    BillingActionResponse,
    CheckoutSessionResponse,
    CreateCheckoutSessionRequest,
    SubscriptionEnvelope,
    SubscriptionResponse,
)
from app.schemas.tier import TierConfig
from app.services.tier_config_service import (
    TierConfigProvider,
    get_tier_price,
    tier_config_provider,
)
from app.utils.currency import (
    SUPPORTED_CURRENCIES,
    annual_amount,
    from_minor_units,
    monthly_from_annual_minor_units,
    to_minor_units,
)
from app.utils.error_handling import (
    AuthorizationException,
    BusinessRuleException,
    ErrorCode,
    NotFoundException,
    StripeAPIException,
    ValidationException,
)

logger = logging.getLogger(__name__)


# Tiers that can be bought through checkout
PURCHASABLE_TIERS = ("basic", "pro")

STUB_CUSTOMER_ID = "stub_customer"
STUB_SESSION_ID = "stub_session"


# =============================================================================
# HELPERS
# =============================================================================

def encode_form(data: Dict[str, Any], prefix: str = "") -> List[Tuple[str, str]]:
    """
    Flatten nested dicts/lists into Stripe's bracketed form encoding.
    
    {"items": [{"price": "p_1"}]} -> [("items[0][price]", "p_1")]
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            pairs.extend(encode_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, dict):
                    pairs.extend(encode_form(item, item_name))
                else:
                    pairs.append((item_name, str(item)))
        elif isinstance(value, bool):
            pairs.append((name, "true" if value else "false"))
        else:
            pairs.append((name, str(value)))
    return pairs


def from_timestamp(value: Any) -> Optional[datetime]:
    """Stripe epoch seconds to naive UTC."""
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)


def subscription_period(subscription: Dict[str, Any]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Current period bounds; newer API versions carry them on the first item."""
    start = subscription.get("current_period_start")
    end = subscription.get("current_period_end")
    if start is None or end is None:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            start = start if start is not None else items[0].get("current_period_start")
            end = end if end is not None else items[0].get("current_period_end")
    return from_timestamp(start), from_timestamp(end)


def first_item(subscription: Dict[str, Any]) -> Dict[str, Any]:
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        raise StripeAPIException("Subscription has no items")
    return items[0]


def product_name(tier: TierConfig) -> str:
    return f"TrackD {tier.display_name} Plan"


# =============================================================================
# STRIPE PROVIDER
# =============================================================================

class StripeProvider:
    """
    Stripe REST API client.
    
    Stripe API docs: https://docs.stripe.com/api
    """
    
    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.secret_key = settings.stripe_secret_key if secret_key is None else secret_key
        self.base_url = (base_url or settings.stripe_base_url).rstrip("/")
        self.timeout = timeout or settings.stripe_timeout_seconds
        
        if not self.secret_key:
            logger.warning("StripeProvider initialized without secret key - using stub mode")
            self._is_stub = True
        else:
            self._is_stub = False
            logger.info(f"StripeProvider initialized (live={self.secret_key.startswith('sk_live_')})")
    
    @property
    def is_stub(self) -> bool:
        return self._is_stub
    
    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/x-www-form-urlencoded",
        }
    
    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make an HTTP request to the Stripe API.
        
        Raises:
            StripeAPIException: carrying Stripe's own error message
        """
        url = f"{self.base_url}{endpoint}"
        
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self._get_headers(),
                    content=urlencode(encode_form(data)) if data else None,
                    params=encode_form(params) if params else None,
                )
        except httpx.TimeoutException as e:
            logger.error(f"Stripe API timeout: {method} {endpoint}")
            raise StripeAPIException("Request to Stripe timed out. Please try again.", original_error=e)
        except httpx.RequestError as e:
            logger.error(f"Stripe API request error: {e}")
            raise StripeAPIException(f"Network error: {e}", original_error=e)
        
        logger.debug(f"Stripe {method} {endpoint}: status={response.status_code}")
        
        try:
            result = response.json()
        except ValueError as e:
            raise StripeAPIException(f"Invalid response from Stripe (HTTP {response.status_code})", original_error=e)
        
        if response.status_code >= 400:
            error = result.get("error") or {}
            message = error.get("message") or f"HTTP {response.status_code}"
            logger.error(f"Stripe API error: {message}")
            raise StripeAPIException(message, stripe_code=error.get("code"))
        
        return result
    
    async def create_customer(
        self,
        email: Optional[str],
        name: Optional[str],
        metadata: Dict[str, str],
    ) -> Dict[str, Any]:
        return await self._make_request(
            "POST",
            "/customers",
            data={"email": email, "name": name or None, "metadata": metadata},
        )
    
    async def create_price(
        self,
        currency: str,
        unit_amount: int,
        interval: str,
        name: str,
    ) -> Dict[str, Any]:
        return await self._make_request(
            "POST",
            "/prices",
            data={
                "currency": currency.lower(),
                "unit_amount": unit_amount,
                "recurring": {"interval": interval},
                "product_data": {"name": name},
            },
        )
    
    async def create_checkout_session(
        self,
        customer_id: str,
        currency: str,
        unit_amount: int,
        interval: str,
        name: str,
        description: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
    ) -> Dict[str, Any]:
        return await self._make_request(
            "POST",
            "/checkout/sessions",
            data={
                "customer": customer_id,
                "mode": "subscription",
                "payment_method_types": ["card"],
                "line_items": [
                    {
                        "price_data": {
                            "currency": currency.lower(),
                            "product_data": {"name": name, "description": description},
                            "unit_amount": unit_amount,
                            "recurring": {"interval": interval},
                        },
                        "quantity": 1,
                    }
                ],
                "success_url": success_url,
                "cancel_url": cancel_url,
                "metadata": metadata,
                "subscription_data": {"metadata": metadata},
            },
        )
    
    async def retrieve_checkout_session(self, session_id: str) -> Dict[str, Any]:
        return await self._make_request(
            "GET",
            f"/checkout/sessions/{session_id}",
            params={"expand": ["subscription"]},
        )
    
    async def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return await self._make_request("GET", f"/subscriptions/{subscription_id}")
    
    async def update_subscription(self, subscription_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return await self._make_request("POST", f"/subscriptions/{subscription_id}", data=fields)


# =============================================================================
# BILLING SERVICE
# =============================================================================

class BillingService:
    """
    Service for managing subscriptions and billing.
    
    Usage:
        service = BillingService(db)
        
        # Start checkout, or switch tier in place when already subscribed
        result = await service.create_checkout_session(user, request)
        
        # Apply a verified webhook event
        await service.process_webhook(event)
    """
    
    def __init__(
        self,
        db: AsyncSession,
        stripe: Optional[StripeProvider] = None,
        tier_provider: Optional[TierConfigProvider] = None,
        clock=utcnow,
    ):
        self.db = db
        self.stripe = stripe or StripeProvider()
        self.tier_provider = tier_provider or tier_config_provider
        self._clock = clock
    
    # ===========================================
    # LOCAL RECORD
    # ===========================================
    
    async def get_subscription_record(self, user_id) -> Optional[UserSubscription]:
        result = await self.db.execute(
            select(UserSubscription).where(UserSubscription.user_id == user_id)
        )
        return result.scalar_one_or_none()
    
    async def _get_or_create_record(self, user: User) -> UserSubscription:
        subscription = await self.get_subscription_record(user.id)
        if subscription is None:
            subscription = UserSubscription(
                user_id=user.id,
                subscription_tier=user.subscription_tier,
                subscription_status=SubscriptionStatus.TRIALING.value,
                currency=user.preferred_currency,
            )
            self.db.add(subscription)
            await self.db.flush()
        return subscription
    
    def _record_event(
        self,
        subscription: UserSubscription,
        event_type: str,
        previous_tier: Optional[str] = None,
        new_tier: Optional[str] = None,
        previous_price: Optional[Decimal] = None,
        new_price: Optional[Decimal] = None,
        stripe_event_id: Optional[str] = None,
        triggered_by: str = "user",
        notes: Optional[str] = None,
    ) -> None:
        mrr_change = None
        if previous_price is not None and new_price is not None:
            mrr_change = new_price - previous_price
        self.db.add(
            SubscriptionEvent(
                user_id=subscription.user_id,
                subscription_id=subscription.id,
                event_type=event_type,
                previous_tier=previous_tier,
                new_tier=new_tier,
                previous_monthly_price=previous_price,
                new_monthly_price=new_price,
                mrr_change=mrr_change,
                stripe_event_id=stripe_event_id,
                triggered_by=triggered_by,
                notes=notes,
            )
        )
    
    @staticmethod
    def _apply_quotas(subscription: UserSubscription, tier: TierConfig) -> None:
        subscription.max_jobs_per_month = tier.max_jobs_per_month
        subscription.max_competitors = tier.max_competitors
        subscription.ai_credits_monthly = tier.ai_credits_per_month
    
    # ===========================================
    # CUSTOMERS
    # ===========================================
    
    async def create_customer(self, user: User) -> str:
        """Return the user's Stripe customer id, creating the customer once."""
        if self.stripe.is_stub:
            return STUB_CUSTOMER_ID
        
        subscription = await self._get_or_create_record(user)
        if subscription.stripe_customer_id:
            return subscription.stripe_customer_id
        
        customer = await self.stripe.create_customer(
            email=user.email,
            name=user.display_name,
            metadata={"userId": str(user.id), "businessType": user.business_type or "unknown"},
        )
        subscription.stripe_customer_id = customer["id"]
        await self.db.commit()
        
        logger.info(f"Created Stripe customer {customer['id']} for user {user.id}")
        return customer["id"]
    
    # ===========================================
    # CHECKOUT / TIER CHANGE
    # ===========================================
    
    def _resolve_currency(self, user: User, requested: Optional[str]) -> str:
        currency = (requested or user.preferred_currency or "GBP").strip().upper()
        if currency not in SUPPORTED_CURRENCIES:
            raise ValidationException(
                f"Unsupported currency '{currency}'",
                field="currency",
                details={"supported": list(SUPPORTED_CURRENCIES)},
            )
        return currency
    
    async def create_checkout_session(
        self,
        user: User,
        request: CreateCheckoutSessionRequest,
    ) -> CheckoutSessionResponse:
        """
        Start a hosted checkout, or switch tier in place.
        
        A user with a live Stripe subscription never gets a second one: the
        existing subscription's price is replaced and invoiced immediately.
        """
        if self.stripe.is_stub:
            return CheckoutSessionResponse(session_id=STUB_SESSION_ID, url=None)
        
        tier_name = request.tier.strip().lower()
        if tier_name not in PURCHASABLE_TIERS:
            raise ValidationException("Invalid tier - must be 'basic' or 'pro'", field="tier")
        
        subscription = await self._get_or_create_record(user)
        if subscription.subscription_tier == tier_name:
            raise BusinessRuleException(
                "You are already on this plan",
                rule="tier_unchanged",
                code=ErrorCode.ALREADY_ON_PLAN,
            )
        
        tier = await self.tier_provider.require_tier(tier_name)
        currency = self._resolve_currency(user, request.currency)
        billing_cycle = request.billing_cycle
        monthly_price = get_tier_price(tier, currency)
        if billing_cycle == BillingCycle.ANNUAL:
            unit_amount = to_minor_units(annual_amount(monthly_price))
            interval = "year"
        else:
            unit_amount = to_minor_units(monthly_price)
            interval = "month"
        metadata = {"userId": str(user.id), "tier": tier_name, "billingCycle": billing_cycle.value}
        
        if subscription.stripe_subscription_id:
            remote = await self.stripe.retrieve_subscription(subscription.stripe_subscription_id)
            if remote.get("status") != SubscriptionStatus.CANCELED.value:
                return await self._change_tier_in_place(
                    user, subscription, remote, tier, currency, billing_cycle,
                    monthly_price, unit_amount, interval, metadata,
                )
            # Terminated remotely; start over with a fresh checkout
            subscription.stripe_subscription_id = None
        
        customer_id = await self.create_customer(user)
        
        session = await self.stripe.create_checkout_session(
            customer_id=customer_id,
            currency=currency,
            unit_amount=unit_amount,
            interval=interval,
            name=product_name(tier),
            description=f"{'Annual' if billing_cycle == BillingCycle.ANNUAL else 'Monthly'} subscription",
            success_url=f"{settings.base_url}/subscription?success=true",
            cancel_url=f"{settings.base_url}/subscription?canceled=true",
            metadata=metadata,
        )
        await self.db.commit()
        
        logger.info(f"Checkout session {session.get('id')} created for user {user.id} ({tier_name})")
        return CheckoutSessionResponse(session_id=session.get("id"), url=session.get("url"))
    
    async def _change_tier_in_place(
        self,
        user: User,
        subscription: UserSubscription,
        remote: Dict[str, Any],
        tier: TierConfig,
        currency: str,
        billing_cycle: BillingCycle,
        monthly_price: Decimal,
        unit_amount: int,
        interval: str,
        metadata: Dict[str, str],
    ) -> CheckoutSessionResponse:
        price = await self.stripe.create_price(currency, unit_amount, interval, product_name(tier))
        updated = await self.stripe.update_subscription(
            subscription.stripe_subscription_id,
            {
                "items": [{"id": first_item(remote)["id"], "price": price["id"]}],
                "proration_behavior": "always_invoice",
                "metadata": metadata,
            },
        )
        
        previous_tier = subscription.subscription_tier
        previous_price = subscription.monthly_price
        period_start, period_end = subscription_period(updated)
        
        subscription.subscription_tier = tier.tier_name
        subscription.monthly_price = monthly_price
        subscription.billing_cycle = billing_cycle.value
        subscription.currency = currency
        if period_start is not None:
            subscription.current_period_start = period_start
        if period_end is not None:
            subscription.current_period_end = period_end
        self._apply_quotas(subscription, tier)
        user.subscription_tier = tier.tier_name
        
        self._record_event(
            subscription,
            "upgraded" if monthly_price >= (previous_price or Decimal("0")) else "downgraded",
            previous_tier=previous_tier,
            new_tier=tier.tier_name,
            previous_price=previous_price,
            new_price=monthly_price,
        )
        await self.db.commit()
        
        logger.info(f"Subscription for user {user.id} changed in place: {previous_tier} -> {tier.tier_name}")
        return CheckoutSessionResponse(success=True, message="Subscription updated")
    
    async def complete_checkout(self, user: User, session_id: str) -> BillingActionResponse:
        """Persist the subscription created by a completed checkout session."""
        if self.stripe.is_stub:
            return BillingActionResponse(success=True)
        
        session = await self.stripe.retrieve_checkout_session(session_id)
        metadata = session.get("metadata") or {}
        if not metadata.get("userId"):
            raise ValidationException("Invalid session", field="sessionId")
        if metadata["userId"] != str(user.id):
            raise AuthorizationException(message="Checkout session belongs to another user")
        
        remote = session.get("subscription")
        if not remote:
            raise BusinessRuleException("Checkout session has no subscription yet", rule="checkout_incomplete")
        if isinstance(remote, str):
            remote = await self.stripe.retrieve_subscription(remote)
        
        tier_name = (metadata.get("tier") or "").lower()
        billing_cycle = metadata.get("billingCycle") or BillingCycle.MONTHLY.value
        price = first_item(remote).get("price") or {}
        unit_amount = int(price.get("unit_amount") or 0)
        if billing_cycle == BillingCycle.ANNUAL.value:
            monthly_price = monthly_from_annual_minor_units(unit_amount)
        else:
            monthly_price = from_minor_units(unit_amount)
        period_start, period_end = subscription_period(remote)
        now = self._clock()
        
        subscription = await self._get_or_create_record(user)
        previous_tier = subscription.subscription_tier
        previous_price = subscription.monthly_price
        
        subscription.stripe_subscription_id = remote["id"]
        if session.get("customer") and not subscription.stripe_customer_id:
            subscription.stripe_customer_id = session["customer"]
        subscription.subscription_tier = tier_name
        subscription.subscription_status = SubscriptionStatus.ACTIVE.value
        subscription.monthly_price = monthly_price
        subscription.billing_cycle = billing_cycle
        if price.get("currency"):
            subscription.currency = price["currency"].upper()
        subscription.current_period_start = period_start
        subscription.current_period_end = period_end
        subscription.subscription_start_date = now
        subscription.cancel_at_period_end = False
        subscription.canceled_at = None
        if subscription.trial_active:
            subscription.trial_active = False
            subscription.trial_converted_to_paid = True
            subscription.trial_conversion_date = now
        
        tier = await self.tier_provider.get_tier(tier_name)
        if tier is not None:
            self._apply_quotas(subscription, tier)
        user.subscription_tier = tier_name
        
        self._record_event(
            subscription,
            "subscription_created",
            previous_tier=previous_tier,
            new_tier=tier_name,
            previous_price=previous_price,
            new_price=monthly_price,
        )
        await self.db.commit()
        
        logger.info(f"Checkout completed for user {user.id}: {tier_name} ({billing_cycle}) at {monthly_price}")
        return BillingActionResponse(success=True)
    
    # ===========================================
    # CANCEL / REACTIVATE
    # ===========================================
    
    async def _require_remote_subscription(self, user: User, message: str) -> UserSubscription:
        subscription = await self.get_subscription_record(user.id)
        if subscription is None or not subscription.stripe_subscription_id:
            raise NotFoundException("Subscription", message=message, code=ErrorCode.SUBSCRIPTION_NOT_FOUND)
        return subscription
    
    async def cancel_subscription(self, user: User) -> BillingActionResponse:
        """Cancel at period end; access continues until then."""
        if self.stripe.is_stub:
            return BillingActionResponse(success=True)
        
        subscription = await self._require_remote_subscription(user, "No active subscription found")
        remote = await self.stripe.update_subscription(
            subscription.stripe_subscription_id,
            {"cancel_at_period_end": True},
        )
        
        subscription.cancel_at_period_end = True
        subscription.canceled_at = self._clock()
        self._record_event(
            subscription,
            "canceled",
            previous_tier=subscription.subscription_tier,
            new_tier=subscription.subscription_tier,
            notes="Cancels at period end",
        )
        await self.db.commit()
        
        cancel_at = from_timestamp(remote.get("cancel_at")) or subscription_period(remote)[1]
        logger.info(f"Subscription for user {user.id} set to cancel at {cancel_at}")
        return BillingActionResponse(success=True, cancel_at=cancel_at)
    
    async def reactivate_subscription(self, user: User) -> BillingActionResponse:
        """Undo a pending cancellation while the subscription is still live."""
        if self.stripe.is_stub:
            return BillingActionResponse(success=True)
        
        subscription = await self._require_remote_subscription(user, "No subscription found")
        remote = await self.stripe.retrieve_subscription(subscription.stripe_subscription_id)
        if remote.get("status") == SubscriptionStatus.CANCELED.value:
            raise BusinessRuleException(
                "Subscription has already ended. Please subscribe again.",
                rule="subscription_terminated",
            )
        
        await self.stripe.update_subscription(
            subscription.stripe_subscription_id,
            {"cancel_at_period_end": False},
        )
        
        subscription.cancel_at_period_end = False
        subscription.canceled_at = None
        subscription.subscription_status = SubscriptionStatus.ACTIVE.value
        self._record_event(
            subscription,
            "reactivated",
            previous_tier=subscription.subscription_tier,
            new_tier=subscription.subscription_tier,
        )
        await self.db.commit()
        
        logger.info(f"Subscription for user {user.id} reactivated")
        return BillingActionResponse(success=True)
    
    # ===========================================
    # READ
    # ===========================================
    
    async def get_subscription(self, user_id) -> SubscriptionEnvelope:
        """Local record merged with the live Stripe status when available."""
        if self.stripe.is_stub:
            return SubscriptionEnvelope(subscription=None)
        
        subscription = await self.get_subscription_record(user_id)
        if subscription is None:
            return SubscriptionEnvelope(subscription=None)
        
        response = SubscriptionResponse.model_validate(subscription)
        if subscription.stripe_subscription_id:
            try:
                remote = await self.stripe.retrieve_subscription(subscription.stripe_subscription_id)
            except StripeAPIException as e:
                logger.warning(f"Could not fetch Stripe subscription {subscription.stripe_subscription_id}: {e.message}")
            else:
                response.stripe_status = remote.get("status")
                period_end = subscription_period(remote)[1]
                if period_end is not None:
                    response.current_period_end = period_end
        
        return SubscriptionEnvelope(subscription=response)
    
    # ===========================================
    # WEBHOOK HANDLING
    # ===========================================
    
    async def _find_subscription(
        self,
        user_id: Optional[str],
        stripe_subscription_id: Optional[str],
        stripe_customer_id: Optional[str],
    ) -> Optional[UserSubscription]:
        """Locate the local record by metadata user id, then subscription id, then customer id."""
        if user_id:
            try:
                subscription = await self.get_subscription_record(UUID(str(user_id)))
            except ValueError:
                subscription = None
            if subscription is not None:
                return subscription
        if stripe_subscription_id:
            result = await self.db.execute(
                select(UserSubscription).where(
                    UserSubscription.stripe_subscription_id == stripe_subscription_id
                )
            )
            subscription = result.scalar_one_or_none()
            if subscription is not None:
                return subscription
        if stripe_customer_id:
            result = await self.db.execute(
                select(UserSubscription).where(
                    UserSubscription.stripe_customer_id == stripe_customer_id
                )
            )
            return result.scalar_one_or_none()
        return None
    
    async def _get_user(self, user_id) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()
    
    async def process_webhook(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply a verified Stripe event.
        
        Events handled:
        - customer.subscription.created / updated: sync status and period
        - customer.subscription.deleted: drop to the free tier, status canceled
        - invoice.payment_succeeded: record last payment
        - invoice.payment_failed: status past_due
        
        Webhook setup: https://dashboard.stripe.com/webhooks
        """
        event_id = event.get("id")
        event_type = event.get("type") or ""
        
        if event_id:
            already = await self.db.get(ProcessedWebhookEvent, event_id)
            if already is not None:
                logger.info(f"Webhook {event_id} already processed, skipping")
                return {"received": True, "duplicate": True}
        
        obj = (event.get("data") or {}).get("object") or {}
        logger.info(f"Processing webhook: {event_type} ({event_id})")
        
        if event_type in ("customer.subscription.created", "customer.subscription.updated"):
            handled = await self._handle_subscription_updated(obj, event_id)
        elif event_type == "customer.subscription.deleted":
            handled = await self._handle_subscription_deleted(obj, event_id)
        elif event_type == "invoice.payment_succeeded":
            handled = await self._handle_payment_succeeded(obj, event_id)
        elif event_type == "invoice.payment_failed":
            handled = await self._handle_payment_failed(obj, event_id)
        else:
            logger.debug(f"Unhandled webhook event: {event_type}")
            handled = False
        
        if event_id:
            self.db.add(ProcessedWebhookEvent(event_id=event_id, event_type=event_type))
        await self.db.commit()
        
        return {"received": True, "handled": handled}
    
    async def _subscription_for_object(self, obj: Dict[str, Any], subscription_key: str) -> Optional[UserSubscription]:
        metadata = obj.get("metadata") or (obj.get("subscription_details") or {}).get("metadata") or {}
        subscription = await self._find_subscription(
            metadata.get("userId"),
            obj.get(subscription_key),
            obj.get("customer"),
        )
        if subscription is None:
            logger.warning(f"Webhook object {obj.get('id')} does not match any local user, ignoring")
            return None
        
        remote_id = obj.get(subscription_key)
        if remote_id and subscription.stripe_subscription_id and remote_id != subscription.stripe_subscription_id:
            logger.warning(
                f"Webhook object {obj.get('id')} refers to subscription {remote_id}, "
                f"user {subscription.user_id} is on {subscription.stripe_subscription_id}, ignoring"
            )
            return None
        return subscription
    
    async def _handle_subscription_updated(self, obj: Dict[str, Any], event_id: Optional[str]) -> bool:
        subscription = await self._subscription_for_object(obj, "id")
        if subscription is None:
            return False
        if (
            subscription.subscription_status == SubscriptionStatus.CANCELED.value
            or subscription.subscription_tier == FREE_TIER
        ):
            # A deleted Stripe subscription never becomes active again
            logger.info(f"Subscription {subscription.stripe_subscription_id} already ended, ignoring update")
            return False
        
        previous_status = subscription.subscription_status
        period_start, period_end = subscription_period(obj)
        
        if obj.get("status"):
            subscription.subscription_status = obj["status"]
        if period_start is not None:
            subscription.current_period_start = period_start
        if period_end is not None:
            subscription.current_period_end = period_end
        if "cancel_at_period_end" in obj:
            subscription.cancel_at_period_end = bool(obj["cancel_at_period_end"])
        if obj.get("id") and not subscription.stripe_subscription_id:
            subscription.stripe_subscription_id = obj["id"]
        
        if subscription.subscription_status != previous_status:
            self._record_event(
                subscription,
                "status_changed",
                previous_tier=subscription.subscription_tier,
                new_tier=subscription.subscription_tier,
                stripe_event_id=event_id,
                triggered_by="stripe",
                notes=f"{previous_status} -> {subscription.subscription_status}",
            )
        return True
    
    async def _handle_subscription_deleted(self, obj: Dict[str, Any], event_id: Optional[str]) -> bool:
        subscription = await self._subscription_for_object(obj, "id")
        if subscription is None:
            return False
        if (
            subscription.subscription_status == SubscriptionStatus.CANCELED.value
            and subscription.subscription_tier == FREE_TIER
        ):
            logger.info(f"Subscription {subscription.stripe_subscription_id} already ended")
            return False
        
        previous_tier = subscription.subscription_tier
        subscription.subscription_tier = FREE_TIER
        subscription.subscription_status = SubscriptionStatus.CANCELED.value
        subscription.cancel_at_period_end = False
        if subscription.canceled_at is None:
            subscription.canceled_at = self._clock()
        
        user = await self._get_user(subscription.user_id)
        if user is not None:
            user.subscription_tier = FREE_TIER
        
        self._record_event(
            subscription,
            "canceled",
            previous_tier=previous_tier,
            new_tier=FREE_TIER,
            previous_price=subscription.monthly_price,
            new_price=Decimal("0"),
            stripe_event_id=event_id,
            triggered_by="stripe",
        )
        return True
    
    async def _handle_payment_succeeded(self, obj: Dict[str, Any], event_id: Optional[str]) -> bool:
        subscription = await self._subscription_for_object(obj, "subscription")
        if subscription is None:
            return False
        
        paid_at = (obj.get("status_transitions") or {}).get("paid_at") or obj.get("created")
        subscription.last_payment_date = from_timestamp(paid_at) or self._clock()
        subscription.last_payment_amount = from_minor_units(obj.get("amount_paid"))
        
        self._record_event(
            subscription,
            "payment_succeeded",
            new_tier=subscription.subscription_tier,
            stripe_event_id=event_id,
            triggered_by="stripe",
        )
        return True
    
    async def _handle_payment_failed(self, obj: Dict[str, Any], event_id: Optional[str]) -> bool:
        subscription = await self._subscription_for_object(obj, "subscription")
        if subscription is None:
            return False
        
        subscription.subscription_status = SubscriptionStatus.PAST_DUE.value
        self._record_event(
            subscription,
            "payment_failed",
            new_tier=subscription.subscription_tier,
            stripe_event_id=event_id,
            triggered_by="stripe",
        )
        return True
