"""
trackd - Competitor and Insight Tests

Tests for competitor tracking, the insight lifecycle and AI insight
regeneration.
"""

from datetime import datetime

import pytest
from openai import OpenAIError
from sqlalchemy import select

from app.models.ai_request import AIRequest
from app.models.insight import Insight, InsightStatus
from app.services.ai_service import AIService
from app.services.insight_service import InsightService
from fixtures.factories import competitor_payload, make_competitor, make_job
from fixtures.openai_mock import GENERATED_INSIGHTS, fake_client


NOW = datetime(2026, 10, 19, 12, 0)


def insight_payload(**overrides):
    payload = {
        "type": "pricing",
        "priority": "high",
        "title": "Emergency callouts are underpriced",
        "description": "Rivals charge £120 for emergency callouts.",
        "action": "Add a £100 callout fee",
        "impact": "+£300/month",
        "category": "Pricing",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def use_fake_openai(monkeypatch):
    """Route every AIService created by the routers to a fake client."""
    def install(client):
        monkeypatch.setattr(AIService, "_get_client", lambda self: client)
        return client
    return install


# =============================================================================
# COMPETITOR TESTS
# =============================================================================

class TestCompetitorEndpoints:
    """Test /api/competitors."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, client, auth_headers):
        response = await client.post("/api/competitors", json=competitor_payload(), headers=auth_headers)

        assert response.status_code == 201
        created = response.json()
        assert created["name"] == "QuickFix Plumbing"
        assert created["hourlyRate"] == 65.0
        assert created["services"] == ["Boiler Repair", "Emergency Callout"]
        assert created["strengths"] == []

        response = await client.get(f"/api/competitors/{created['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["location"] == "Leeds"

    @pytest.mark.asyncio
    async def test_rating_out_of_range(self, client, auth_headers):
        response = await client.post(
            "/api/competitors",
            json=competitor_payload(rating=6),
            headers=auth_headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_update(self, client, auth_headers):
        created = (await client.post("/api/competitors", json=competitor_payload(), headers=auth_headers)).json()

        response = await client.put(
            f"/api/competitors/{created['id']}",
            json={"hourlyRate": 70, "isActive": False, "name": None, "weaknesses": ["Slow to quote"]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        updated = response.json()
        assert updated["hourlyRate"] == 70.0
        assert updated["isActive"] is False
        assert updated["name"] == "QuickFix Plumbing"
        assert updated["weaknesses"] == ["Slow to quote"]

    @pytest.mark.asyncio
    async def test_list_and_delete(self, client, auth_headers):
        first = (await client.post("/api/competitors", json=competitor_payload(), headers=auth_headers)).json()
        await client.post("/api/competitors", json=competitor_payload(name="Rival Heating"), headers=auth_headers)

        response = await client.delete(f"/api/competitors/{first['id']}", headers=auth_headers)
        assert response.status_code == 200

        names = [c["name"] for c in (await client.get("/api/competitors", headers=auth_headers)).json()]
        assert names == ["Rival Heating"]

    @pytest.mark.asyncio
    async def test_missing_competitor(self, client, auth_headers):
        response = await client.get(
            "/api/competitors/00000000-0000-0000-0000-000000000000",
            headers=auth_headers,
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "NOT_FOUND"


# =============================================================================
# INSIGHT LIFECYCLE TESTS
# =============================================================================

class TestInsightEndpoints:
    """Test /api/insights CRUD and status changes."""

    @pytest.mark.asyncio
    async def test_create_defaults(self, client, auth_headers):
        response = await client.post("/api/insights", json=insight_payload(), headers=auth_headers)

        assert response.status_code == 201
        insight = response.json()
        assert insight["status"] == "active"
        assert insight["viewed"] is False
        assert insight["actionTaken"] is False
        assert insight["aiGenerated"] is False
        assert insight["data"] == {}

    @pytest.mark.asyncio
    async def test_invalid_type(self, client, auth_headers):
        response = await client.post(
            "/api/insights",
            json=insight_payload(type="astrology"),
            headers=auth_headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_complete_sets_action_taken(self, client, auth_headers):
        insight = (await client.post("/api/insights", json=insight_payload(), headers=auth_headers)).json()

        response = await client.patch(
            f"/api/insights/{insight['id']}/status",
            json={"status": "completed"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert response.json()["actionTaken"] is True

    @pytest.mark.asyncio
    async def test_dismissed_cannot_reactivate(self, client, auth_headers):
        insight = (await client.post("/api/insights", json=insight_payload(), headers=auth_headers)).json()
        await client.patch(
            f"/api/insights/{insight['id']}/status",
            json={"status": "dismissed"},
            headers=auth_headers,
        )

        response = await client.patch(
            f"/api/insights/{insight['id']}/status",
            json={"status": "active"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "INVALID_STATUS_TRANSITION"
        assert detail["field"] == "status"

    @pytest.mark.asyncio
    async def test_viewed_and_unviewed_count(self, client, auth_headers):
        first = (await client.post("/api/insights", json=insight_payload(), headers=auth_headers)).json()
        await client.post("/api/insights", json=insight_payload(title="Second"), headers=auth_headers)

        response = await client.get("/api/insights/unviewed-count", headers=auth_headers)
        assert response.json() == {"count": 2}

        response = await client.patch(
            f"/api/insights/{first['id']}",
            json={"viewed": True},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["viewed"] is True

        response = await client.get("/api/insights/unviewed-count", headers=auth_headers)
        assert response.json() == {"count": 1}

    @pytest.mark.asyncio
    async def test_delete(self, client, auth_headers):
        insight = (await client.post("/api/insights", json=insight_payload(), headers=auth_headers)).json()

        response = await client.delete(f"/api/insights/{insight['id']}", headers=auth_headers)
        assert response.status_code == 200

        response = await client.get("/api/insights", headers=auth_headers)
        assert response.json() == []


# =============================================================================
# REGENERATION TESTS
# =============================================================================

class TestRegenerationPrompt:
    """Test the activity summary sent to the model."""

    @pytest.mark.asyncio
    async def test_prompt_summarises_recent_activity(self, db_session, test_user):
        db_session.add_all([
            make_job(test_user.id, date=datetime(2026, 10, 10), revenue=300, hours=4),
            make_job(test_user.id, date=datetime(2026, 10, 12), revenue=100, hours=1),
            make_job(test_user.id, job_type="Old Job", date=datetime(2026, 8, 1)),
            make_competitor(test_user.id),
        ])
        await db_session.commit()

        service = InsightService(db_session, ai_service=AIService(db_session, client=fake_client()), clock=lambda: NOW)
        prompt = await service.build_regeneration_prompt(test_user.id)

        assert "- Boiler Service: 2 jobs, avg rate £80.00/hr" in prompt
        assert "Old Job" not in prompt
        assert "- QuickFix Plumbing: £65.00/hr" in prompt
        assert "**Total Jobs:** 2" in prompt
        assert "**Total Revenue:** £400.00" in prompt
        assert "**Total Hours:** 5.0" in prompt


class TestRegenerateEndpoint:
    """Test POST /api/insights/regenerate."""

    @pytest.mark.asyncio
    async def test_replaces_existing_insights(self, client, db_session, auth_headers, use_fake_openai):
        await client.post("/api/insights", json=insight_payload(title="Stale"), headers=auth_headers)
        fake = use_fake_openai(fake_client(GENERATED_INSIGHTS + [{"title": "No action"}]))

        response = await client.post("/api/insights/regenerate", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        titles = sorted(i["title"] for i in body["insights"])
        assert titles == ["Prioritise Mrs Patel", "Raise boiler service rate"]
        assert all(i["aiGenerated"] for i in body["insights"])
        by_title = {i["title"]: i for i in body["insights"]}
        assert by_title["Prioritise Mrs Patel"]["category"] == "Business Analysis"
        assert by_title["Raise boiler service rate"]["priority"] == "high"

        listed = (await client.get("/api/insights", headers=auth_headers)).json()
        assert "Stale" not in [i["title"] for i in listed]

        call = fake.chat.completions.create.await_args
        assert call.kwargs["messages"][0]["role"] == "system"
        assert call.kwargs["max_tokens"] == 2000

        rows = (await db_session.execute(select(AIRequest))).scalars().all()
        assert [(r.request_type, r.success) for r in rows] == [("insight_generation", True)]

    @pytest.mark.asyncio
    async def test_failure_keeps_existing_insights(self, client, db_session, auth_headers, use_fake_openai):
        await client.post("/api/insights", json=insight_payload(title="Keep me"), headers=auth_headers)
        use_fake_openai(fake_client("I'm sorry, I can't help with that."))

        response = await client.post("/api/insights/regenerate", headers=auth_headers)

        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "OPENAI_API_ERROR"

        remaining = (await db_session.execute(select(Insight))).scalars().all()
        assert [i.title for i in remaining] == ["Keep me"]
        assert remaining[0].status == InsightStatus.ACTIVE

        rows = (await db_session.execute(select(AIRequest))).scalars().all()
        assert len(rows) == 1
        assert rows[0].success is False

    @pytest.mark.asyncio
    async def test_api_error_is_502(self, client, auth_headers, use_fake_openai):
        use_fake_openai(fake_client(side_effect=OpenAIError("upstream unavailable")))

        response = await client.post("/api/insights/regenerate", headers=auth_headers)

        assert response.status_code == 502
        assert "upstream unavailable" in response.json()["detail"]["message"]

    @pytest.mark.asyncio
    async def test_ai_credit_quota(self, client, auth_headers, use_fake_openai):
        """Test that the trial's three credits are spent by successful regenerations only."""
        use_fake_openai(fake_client(GENERATED_INSIGHTS))

        for _ in range(3):
            response = await client.post("/api/insights/regenerate", headers=auth_headers)
            assert response.status_code == 200

        response = await client.post("/api/insights/regenerate", headers=auth_headers)

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "QUOTA_EXCEEDED"
