"""
trackd - User and Authentication Tests

Tests for token verification, first-request provisioning and profile
updates.
"""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from app.models.subscription import SubscriptionEvent, UserSubscription
from app.models.user import User
from app.utils.security import create_access_token, verify_access_token


def _headers(sub="auth|new-user", **claims):
    token = create_access_token({"sub": sub, **claims})
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# TOKEN TESTS
# =============================================================================

class TestTokens:
    """Test JWT encode/verify."""

    def test_round_trip(self):
        token = create_access_token({"sub": "auth|abc", "email": "a@example.com"})

        payload = verify_access_token(token)

        assert payload["sub"] == "auth|abc"
        assert payload["email"] == "a@example.com"
        assert "exp" in payload

    def test_expired(self):
        token = create_access_token({"sub": "auth|abc"}, expires_delta=timedelta(seconds=-30))

        assert verify_access_token(token) is None

    def test_garbage(self):
        assert verify_access_token("not.a.jwt") is None


class TestAuthentication:
    """Test get_current_user through a protected route."""

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/user/me")

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        response = await client.get("/api/user/me", headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "TOKEN_INVALID"

    @pytest.mark.asyncio
    async def test_expired_token(self, client):
        token = create_access_token({"sub": "auth|late"}, expires_delta=timedelta(minutes=-5))

        response = await client.get("/api/user/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_without_subject(self, client):
        token = create_access_token({"email": "nobody@example.com"})

        response = await client.get("/api/user/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["detail"]["message"] == "Invalid token payload"

    @pytest.mark.asyncio
    async def test_cookie_token(self, client, test_user):
        token = create_access_token({"sub": test_user.auth_id})

        response = await client.get("/api/user/me", headers={"Cookie": f"access_token={token}"})

        assert response.status_code == 200
        assert response.json()["id"] == str(test_user.id)


# =============================================================================
# PROVISIONING TESTS
# =============================================================================

class TestProvisioning:
    """Test that an unseen subject is provisioned with a trial."""

    @pytest.mark.asyncio
    async def test_first_request_creates_user_and_trial(self, client, db_session):
        response = await client.get("/api/user/me", headers=_headers(email="new@example.com"))

        assert response.status_code == 200
        body = response.json()
        assert body["authId"] == "auth|new-user"
        assert body["email"] == "new@example.com"
        assert body["subscriptionTier"] == "trial"
        assert body["preferredCurrency"] == "GBP"
        assert body["onboardingStep"] == 0
        assert body["notifications"]["competitorAlerts"] is True

        subscription = (await db_session.execute(select(UserSubscription))).scalar_one()
        assert subscription.subscription_status == "trialing"
        assert subscription.trial_active is True
        assert subscription.trial_end_date - subscription.trial_start_date == timedelta(days=30)
        assert subscription.max_jobs_per_month == 50
        assert subscription.max_competitors == 3
        assert subscription.ai_credits_monthly == 3

        event = (await db_session.execute(select(SubscriptionEvent))).scalar_one()
        assert event.event_type == "trial_started"

    @pytest.mark.asyncio
    async def test_repeat_requests_reuse_user(self, client, db_session):
        for _ in range(3):
            response = await client.get("/api/user/me", headers=_headers())
            assert response.status_code == 200

        users = (await db_session.execute(select(func.count()).select_from(User))).scalar()
        subscriptions = (await db_session.execute(select(func.count()).select_from(UserSubscription))).scalar()
        assert users == 1
        assert subscriptions == 1


# =============================================================================
# PROFILE TESTS
# =============================================================================

class TestProfileUpdate:
    """Test PUT /api/user/me/profile."""

    @pytest.mark.asyncio
    async def test_partial_update(self, client, auth_headers, test_user):
        response = await client.put(
            "/api/user/me/profile",
            json={
                "businessName": "Patel Plumbing",
                "businessType": "plumbing",
                "targetHourlyRate": 65,
                "preferredCurrency": "EUR",
                "onboardingStep": 2,
            },
            headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["businessName"] == "Patel Plumbing"
        assert body["targetHourlyRate"] == 65.0
        assert body["preferredCurrency"] == "EUR"
        assert body["onboardingStep"] == 2
        assert body["email"] == "owner@example.com"

    @pytest.mark.asyncio
    async def test_notifications_are_merged(self, client, auth_headers, test_user):
        response = await client.put(
            "/api/user/me/profile",
            json={"notifications": {"jobReminders": True, "marketingTips": False}},
            headers=auth_headers,
        )

        notifications = response.json()["notifications"]
        assert notifications["jobReminders"] is True
        assert notifications["marketingTips"] is False
        assert notifications["competitorAlerts"] is True

    @pytest.mark.asyncio
    async def test_nulls_for_required_fields_are_ignored(self, client, auth_headers, test_user):
        response = await client.put(
            "/api/user/me/profile",
            json={"teamSize": None, "preferredCurrency": None, "specializations": None},
            headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["teamSize"] == 1
        assert body["preferredCurrency"] == "GBP"
        assert body["specializations"] == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"preferredCurrency": "JPY"},
        {"onboardingStep": 5},
        {"teamSize": 0},
        {"email": "not-an-email"},
    ])
    async def test_invalid_values(self, client, auth_headers, test_user, payload):
        response = await client.put("/api/user/me/profile", json=payload, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"
