"""
Mock Stripe Server for Billing Tests

This module provides a configurable mock Stripe API using the respx library
so checkout, plan changes, cancellation and webhooks can be tested without
hitting the real API.
"""

import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs
from uuid import uuid4

import httpx
import respx
from respx import MockRouter

from app.utils.security import compute_stripe_signature


# 2026-10-05 00:00:00 UTC
PERIOD_START = 1791158400
PERIOD_LENGTH = 30 * 24 * 60 * 60


def _id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:14]}"


# =============================================================================
# RESPONSE FACTORIES
# =============================================================================

@dataclass
class StripePrice:
    """Represents a Stripe recurring price."""
    unit_amount: int  # In pence/cents
    currency: str = "gbp"
    interval: str = "month"
    product_name: str = ""
    id: str = field(default_factory=lambda: _id("price"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "object": "price",
            "unit_amount": self.unit_amount,
            "currency": self.currency,
            "recurring": {"interval": self.interval},
            "product_data": {"name": self.product_name},
        }


@dataclass
class StripeSubscription:
    """Represents a Stripe subscription with a single item."""
    customer: str
    price: StripePrice
    metadata: Dict[str, str] = field(default_factory=dict)
    status: str = "active"
    cancel_at_period_end: bool = False
    current_period_start: int = PERIOD_START
    current_period_end: int = PERIOD_START + PERIOD_LENGTH
    id: str = field(default_factory=lambda: _id("sub"))
    item_id: str = field(default_factory=lambda: _id("si"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "object": "subscription",
            "customer": self.customer,
            "status": self.status,
            "cancel_at_period_end": self.cancel_at_period_end,
            "cancel_at": self.current_period_end if self.cancel_at_period_end else None,
            "current_period_start": self.current_period_start,
            "current_period_end": self.current_period_end,
            "metadata": dict(self.metadata),
            "items": {
                "object": "list",
                "data": [
                    {
                        "id": self.item_id,
                        "price": self.price.to_dict(),
                        "current_period_start": self.current_period_start,
                        "current_period_end": self.current_period_end,
                    }
                ],
            },
        }


@dataclass
class StripeCheckoutSession:
    """Represents a hosted checkout session."""
    customer: str
    metadata: Dict[str, str] = field(default_factory=dict)
    subscription_id: Optional[str] = None
    line_items: Dict[str, str] = field(default_factory=dict)
    id: str = field(default_factory=lambda: _id("cs_test"))

    @property
    def url(self) -> str:
        return f"https://checkout.stripe.com/c/pay/{self.id}"


# =============================================================================
# MOCK SERVER
# =============================================================================

class MockStripeServer:
    """
    Mock Stripe API server for testing.

    Usage:
        mock_stripe = MockStripeServer()
        with mock_stripe.activate():
            # make calls to Stripe API
            ...

    Form bodies sent by the client are recorded in ``requests`` as flat
    dicts keyed by their bracketed names, e.g. ``items[0][price]``.
    """

    BASE_URL = "https://api.stripe.com/v1"

    def __init__(self, webhook_secret: str = "whsec_test_secret"):
        self.webhook_secret = webhook_secret
        self.customers: Dict[str, Dict[str, Any]] = {}
        self.prices: Dict[str, StripePrice] = {}
        self.subscriptions: Dict[str, StripeSubscription] = {}
        self.sessions: Dict[str, StripeCheckoutSession] = {}
        self.requests: List[Dict[str, Any]] = []
        self._failure: Optional[Dict[str, Any]] = None
        self._router: Optional[MockRouter] = None

    # =========================================================================
    # STATE SETUP
    # =========================================================================

    def create_subscription(
        self,
        customer: str = "cus_existing",
        unit_amount: int = 899,
        currency: str = "gbp",
        interval: str = "month",
        metadata: Optional[Dict[str, str]] = None,
        status: str = "active",
    ) -> StripeSubscription:
        price = StripePrice(unit_amount=unit_amount, currency=currency, interval=interval)
        self.prices[price.id] = price
        subscription = StripeSubscription(
            customer=customer,
            price=price,
            metadata=dict(metadata or {}),
            status=status,
        )
        self.subscriptions[subscription.id] = subscription
        return subscription

    def create_completed_session(
        self,
        user_id: str,
        tier: str = "basic",
        billing_cycle: str = "monthly",
        unit_amount: int = 899,
        currency: str = "gbp",
        customer: str = "cus_checkout",
    ) -> StripeCheckoutSession:
        """A checkout session whose payment has completed and produced a subscription."""
        metadata = {"userId": user_id, "tier": tier, "billingCycle": billing_cycle}
        subscription = self.create_subscription(
            customer=customer,
            unit_amount=unit_amount,
            currency=currency,
            interval="year" if billing_cycle == "annual" else "month",
            metadata=metadata,
        )
        session = StripeCheckoutSession(
            customer=customer,
            metadata=metadata,
            subscription_id=subscription.id,
        )
        self.sessions[session.id] = session
        return session

    def set_failure(self, message: str = "Your card was declined.", status_code: int = 402, code: str = "card_declined"):
        """Make every subsequent request fail with a Stripe error body."""
        self._failure = {"status_code": status_code, "message": message, "code": code}

    def reset(self):
        self.customers.clear()
        self.prices.clear()
        self.subscriptions.clear()
        self.sessions.clear()
        self.requests.clear()
        self._failure = None

    def requests_to(self, method: str, path: str) -> List[Dict[str, Any]]:
        return [r for r in self.requests if r["method"] == method and r["path"] == path]

    # =========================================================================
    # WEBHOOKS
    # =========================================================================

    def generate_event(
        self,
        event_type: str,
        obj: Dict[str, Any],
        event_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        return {
            "id": event_id or _id("evt"),
            "object": "event",
            "type": event_type,
            "created": int(time.time()),
            "data": {"object": obj},
        }

    def sign_payload(self, payload: bytes, timestamp: Optional[int] = None, secret: Optional[str] = None) -> str:
        """Stripe-Signature header value for ``payload``."""
        timestamp = int(time.time()) if timestamp is None else timestamp
        signature = compute_stripe_signature(payload, timestamp, secret or self.webhook_secret)
        return f"t={timestamp},v1={signature}"

    # =========================================================================
    # ROUTING
    # =========================================================================

    def activate(self) -> MockRouter:
        """Activate the mock server and return the router."""
        self._router = respx.mock(assert_all_called=False)
        self._setup_routes()
        return self._router

    def _setup_routes(self):
        """Set up all mock routes."""
        if not self._router:
            return

        base = re.escape(self.BASE_URL)

        # Customers
        self._router.post(url__regex=rf"^{base}/customers$").mock(
            side_effect=self._handle_create_customer
        )

        # Prices
        self._router.post(url__regex=rf"^{base}/prices$").mock(
            side_effect=self._handle_create_price
        )

        # Checkout sessions
        self._router.post(url__regex=rf"^{base}/checkout/sessions$").mock(
            side_effect=self._handle_create_session
        )
        self._router.get(url__regex=rf"^{base}/checkout/sessions/[^/?]+").mock(
            side_effect=self._handle_retrieve_session
        )

        # Subscriptions
        self._router.get(url__regex=rf"^{base}/subscriptions/[^/?]+").mock(
            side_effect=self._handle_retrieve_subscription
        )
        self._router.post(url__regex=rf"^{base}/subscriptions/[^/?]+$").mock(
            side_effect=self._handle_update_subscription
        )

    # =========================================================================
    # HANDLERS
    # =========================================================================

    def _record(self, request: httpx.Request) -> Dict[str, str]:
        body = request.content.decode() if request.content else ""
        form = {key: values[0] for key, values in parse_qs(body).items()}
        self.requests.append({
            "method": request.method,
            "path": request.url.path[len("/v1"):],
            "form": form,
            "query": dict(request.url.params),
        })
        return form

    def _error(self, status_code: int, message: str, code: Optional[str] = None) -> httpx.Response:
        return httpx.Response(
            status_code,
            json={"error": {"type": "invalid_request_error", "message": message, "code": code}},
        )

    def _failed(self) -> Optional[httpx.Response]:
        if self._failure is None:
            return None
        return self._error(self._failure["status_code"], self._failure["message"], self._failure["code"])

    @staticmethod
    def _metadata(form: Dict[str, str], prefix: str = "metadata") -> Dict[str, str]:
        pattern = re.compile(rf"^{re.escape(prefix)}\[([^\]]+)\]$")
        metadata = {}
        for key, value in form.items():
            match = pattern.match(key)
            if match:
                metadata[match.group(1)] = value
        return metadata

    def _handle_create_customer(self, request: httpx.Request) -> httpx.Response:
        form = self._record(request)
        failed = self._failed()
        if failed is not None:
            return failed

        customer = {
            "id": _id("cus"),
            "object": "customer",
            "email": form.get("email"),
            "name": form.get("name"),
            "metadata": self._metadata(form),
        }
        self.customers[customer["id"]] = customer
        return httpx.Response(200, json=customer)

    def _handle_create_price(self, request: httpx.Request) -> httpx.Response:
        form = self._record(request)
        failed = self._failed()
        if failed is not None:
            return failed

        price = StripePrice(
            unit_amount=int(form["unit_amount"]),
            currency=form.get("currency", "gbp"),
            interval=form.get("recurring[interval]", "month"),
            product_name=form.get("product_data[name]", ""),
        )
        self.prices[price.id] = price
        return httpx.Response(200, json=price.to_dict())

    def _handle_create_session(self, request: httpx.Request) -> httpx.Response:
        form = self._record(request)
        failed = self._failed()
        if failed is not None:
            return failed

        session = StripeCheckoutSession(
            customer=form.get("customer", ""),
            metadata=self._metadata(form),
            line_items={k: v for k, v in form.items() if k.startswith("line_items")},
        )
        self.sessions[session.id] = session
        return httpx.Response(200, json={
            "id": session.id,
            "object": "checkout.session",
            "customer": session.customer,
            "mode": form.get("mode"),
            "url": session.url,
            "metadata": session.metadata,
        })

    def _handle_retrieve_session(self, request: httpx.Request) -> httpx.Response:
        self._record(request)
        failed = self._failed()
        if failed is not None:
            return failed

        session_id = request.url.path.rsplit("/", 1)[-1]
        session = self.sessions.get(session_id)
        if session is None:
            return self._error(404, f"No such checkout.session: '{session_id}'", "resource_missing")

        subscription: Any = session.subscription_id
        expand = [value for key, value in request.url.params.multi_items() if key.startswith("expand")]
        if subscription and "subscription" in expand:
            subscription = self.subscriptions[subscription].to_dict()

        return httpx.Response(200, json={
            "id": session.id,
            "object": "checkout.session",
            "customer": session.customer,
            "status": "complete" if subscription else "open",
            "metadata": session.metadata,
            "subscription": subscription,
        })

    def _handle_retrieve_subscription(self, request: httpx.Request) -> httpx.Response:
        self._record(request)
        failed = self._failed()
        if failed is not None:
            return failed

        subscription_id = request.url.path.rsplit("/", 1)[-1]
        subscription = self.subscriptions.get(subscription_id)
        if subscription is None:
            return self._error(404, f"No such subscription: '{subscription_id}'", "resource_missing")
        return httpx.Response(200, json=subscription.to_dict())

    def _handle_update_subscription(self, request: httpx.Request) -> httpx.Response:
        form = self._record(request)
        failed = self._failed()
        if failed is not None:
            return failed

        subscription_id = request.url.path.rsplit("/", 1)[-1]
        subscription = self.subscriptions.get(subscription_id)
        if subscription is None:
            return self._error(404, f"No such subscription: '{subscription_id}'", "resource_missing")

        if "cancel_at_period_end" in form:
            subscription.cancel_at_period_end = form["cancel_at_period_end"] == "true"

        new_price = form.get("items[0][price]")
        if new_price:
            if form.get("items[0][id]") != subscription.item_id:
                return self._error(400, "Invalid subscription item", "resource_missing")
            subscription.price = self.prices[new_price]

        subscription.metadata.update(self._metadata(form))
        return httpx.Response(200, json=subscription.to_dict())


def webhook_body(event: Dict[str, Any]) -> bytes:
    return json.dumps(event).encode("utf-8")
