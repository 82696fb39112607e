"""
trackd - Tier Configuration Tests

Tests for the Airtable-backed tier table: field mapping, TTL cache,
fallback to the built-in tiers, updates and the public config endpoints.
Airtable is mocked with respx.
"""

import json
from decimal import Decimal

import httpx
import pytest
import respx

from app.schemas.tier import InsightSchedule
from app.services.tier_config_service import (
    DEFAULT_TIERS,
    AirtableTierSource,
    TierCache,
    TierConfigProvider,
    get_tier_price,
    tier_from_airtable_fields,
)
from app.utils.error_handling import TierNotFoundException, ValidationException
from fixtures.airtable_mock import TABLE_URL, TEST_API_KEY, TEST_BASE_ID, list_response, tier_record


# =============================================================================
# FIXTURES
# =============================================================================

class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def airtable_source():
    return AirtableTierSource(api_key=TEST_API_KEY, base_id=TEST_BASE_ID)


@pytest.fixture
def configured_provider(clock, airtable_source):
    return TierConfigProvider(cache=TierCache(ttl_seconds=300, clock=clock), source=airtable_source)


AIRTABLE_ROWS = [
    tier_record("trial", "Free Trial", price_gbp=0, max_jobs=50, max_competitors=3, ai_credits=3,
                **{"Trial Duration Days": 14}),
    tier_record("basic", "Basic", price_gbp=9.49, max_jobs=60, max_competitors=5, ai_credits=7,
                **{"Monthly Price EUR": 10.99, "Competitor Alerts": True}),
    tier_record("pro", "Pro", price_gbp="17.99", max_jobs=0, max_competitors=10, ai_credits=20,
                **{"Insights Schedule": "daily", "Advanced Analytics": True}),
]


# =============================================================================
# FIELD MAPPING TESTS
# =============================================================================

class TestAirtableFieldMapping:
    """Test mapping of loosely-typed Airtable rows onto TierConfig."""

    def test_maps_prices_quotas_and_features(self):
        """Test a fully populated row."""
        tier = tier_from_airtable_fields(AIRTABLE_ROWS[1]["fields"])

        assert tier.tier_name == "basic"
        assert tier.pricing.gbp == Decimal("9.49")
        assert tier.pricing.eur == Decimal("10.99")
        assert tier.pricing.usd == Decimal("0.00")
        assert tier.max_jobs_per_month == 60
        assert tier.max_competitors == 5
        assert tier.ai_credits_per_month == 7
        assert tier.features.competitor_alerts is True
        assert tier.features.advanced_analytics is False

    def test_zero_job_quota_is_kept(self):
        """Test that a zero "Max Jobs Per Month" stays 0 rather than unlimited."""
        tier = tier_from_airtable_fields(AIRTABLE_ROWS[2]["fields"])

        assert tier.max_jobs_per_month == 0
        assert tier.insight_generation_schedule == InsightSchedule.DAILY

    def test_missing_job_quota_means_unlimited(self):
        """Test that an absent job quota is unlimited."""
        tier = tier_from_airtable_fields({"Tier Name": "Enterprise"})

        assert tier.tier_name == "enterprise"
        assert tier.display_name == "Enterprise"
        assert tier.max_jobs_per_month is None
        assert tier_from_airtable_fields({"Tier Name": "x", "Max Jobs Per Month": ""}).max_jobs_per_month is None

    def test_row_without_name_is_skipped(self):
        """Test that rows without a tier name map to None."""
        assert tier_from_airtable_fields({"Display Name": "Orphan"}) is None
        assert tier_from_airtable_fields({"Tier Name": "   "}) is None

    def test_bad_values_fall_back_to_defaults(self):
        """Test that unparseable numbers and schedules use defaults."""
        tier = tier_from_airtable_fields({
            "Tier Name": "basic",
            "Max Competitors": "lots",
            "Monthly Price GBP": "n/a",
            "Insights Schedule": "hourly",
        })

        assert tier.max_competitors == 3
        assert tier.pricing.gbp == Decimal("0")
        assert tier.insight_generation_schedule == InsightSchedule.WEEKLY

    def test_checkbox_strings(self):
        """Test that textual checkbox values are interpreted."""
        tier = tier_from_airtable_fields({
            "Tier Name": "pro",
            "API Access": "Yes",
            "Export Reports": "false",
        })

        assert tier.features.api_access is True
        assert tier.features.export_reports is False


class TestTierPrice:
    """Test currency price lookup."""

    def test_price_per_currency(self):
        basic = DEFAULT_TIERS[1]

        assert get_tier_price(basic, "GBP") == Decimal("8.99")
        assert get_tier_price(basic, "eur") == Decimal("10.99")
        assert get_tier_price(basic, "USD") == Decimal("12.99")

    def test_unknown_currency_prices_in_gbp(self):
        assert get_tier_price(DEFAULT_TIERS[2], "JPY") == Decimal("16.99")


# =============================================================================
# CACHE TESTS
# =============================================================================

class TestTierCache:
    """Test the TTL cache."""

    def test_empty_cache_misses(self, clock):
        assert TierCache(ttl_seconds=300, clock=clock).get() is None

    def test_fresh_entry_is_served(self, clock):
        cache = TierCache(ttl_seconds=300, clock=clock)
        cache.set(list(DEFAULT_TIERS))
        clock.advance(299)

        assert [t.tier_name for t in cache.get()] == ["trial", "basic", "pro"]

    def test_entry_expires_at_ttl(self, clock):
        cache = TierCache(ttl_seconds=300, clock=clock)
        cache.set(list(DEFAULT_TIERS))
        clock.advance(300)

        assert cache.get() is None

    def test_invalidate(self, clock):
        cache = TierCache(ttl_seconds=300, clock=clock)
        cache.set(list(DEFAULT_TIERS))
        cache.invalidate()

        assert cache.get() is None


# =============================================================================
# PROVIDER TESTS
# =============================================================================

class TestTierConfigProvider:
    """Test read-through loading with fallback."""

    @pytest.mark.asyncio
    async def test_unconfigured_source_serves_builtin_tiers(self, tier_provider):
        """Test that missing Airtable credentials fall back to the built-in tiers."""
        tiers = await tier_provider.get_all_tiers()

        assert [t.tier_name for t in tiers] == ["trial", "basic", "pro"]
        assert tier_provider.cache.get() is None

    @pytest.mark.asyncio
    async def test_loads_from_airtable_and_caches(self, configured_provider):
        """Test that a successful fetch is cached for the TTL."""
        with respx.mock(assert_all_called=False) as router:
            route = router.get(TABLE_URL).mock(
                return_value=httpx.Response(200, json=list_response(AIRTABLE_ROWS))
            )

            first = await configured_provider.get_all_tiers()
            second = await configured_provider.get_all_tiers()

        assert route.call_count == 1
        assert [t.tier_name for t in first] == ["trial", "basic", "pro"]
        assert second[1].pricing.gbp == Decimal("9.49")
        assert route.calls[0].request.headers["Authorization"] == f"Bearer {TEST_API_KEY}"

    @pytest.mark.asyncio
    async def test_refetches_after_ttl(self, configured_provider, clock):
        """Test that a stale cache triggers a new fetch."""
        with respx.mock(assert_all_called=False) as router:
            route = router.get(TABLE_URL).mock(
                return_value=httpx.Response(200, json=list_response(AIRTABLE_ROWS))
            )

            await configured_provider.get_all_tiers()
            clock.advance(301)
            await configured_provider.get_all_tiers()

        assert route.call_count == 2

    @pytest.mark.asyncio
    async def test_follows_pagination(self, configured_provider):
        """Test that Airtable offset pagination is followed."""
        with respx.mock(assert_all_called=False) as router:
            route = router.get(TABLE_URL).mock(side_effect=[
                httpx.Response(200, json=list_response(AIRTABLE_ROWS[:2], offset="itrNext")),
                httpx.Response(200, json=list_response(AIRTABLE_ROWS[2:])),
            ])

            tiers = await configured_provider.get_all_tiers()

        assert route.call_count == 2
        assert route.calls[1].request.url.params["offset"] == "itrNext"
        assert [t.tier_name for t in tiers] == ["trial", "basic", "pro"]

    @pytest.mark.asyncio
    async def test_http_error_falls_back_without_caching(self, configured_provider):
        """Test that an Airtable failure serves defaults and leaves the cache empty."""
        with respx.mock(assert_all_called=False) as router:
            router.get(TABLE_URL).mock(return_value=httpx.Response(503, json={"error": "down"}))

            tiers = await configured_provider.get_all_tiers()

        assert [t.tier_name for t in tiers] == [t.tier_name for t in DEFAULT_TIERS]
        assert configured_provider.cache.get() is None
        assert [(t.max_jobs_per_month, t.max_competitors, t.ai_credits_per_month) for t in tiers] == [
            (50, 3, 3),
            (50, 5, 7),
            (200, 10, 20),
        ]
        assert [t.pricing.gbp for t in tiers] == [Decimal("0"), Decimal("8.99"), Decimal("16.99")]

    @pytest.mark.asyncio
    async def test_network_error_falls_back(self, configured_provider):
        with respx.mock(assert_all_called=False) as router:
            router.get(TABLE_URL).mock(side_effect=httpx.ConnectError("connection refused"))

            tier = await configured_provider.get_tier("pro")

        assert tier.pricing.gbp == Decimal("16.99")
        assert tier.max_jobs_per_month == 200
        assert tier.max_competitors == 10
        assert tier.ai_credits_per_month == 20

    @pytest.mark.asyncio
    async def test_empty_table_falls_back(self, configured_provider):
        with respx.mock(assert_all_called=False) as router:
            router.get(TABLE_URL).mock(return_value=httpx.Response(200, json=list_response([])))

            tiers = await configured_provider.get_all_tiers()

        assert len(tiers) == len(DEFAULT_TIERS)

    @pytest.mark.asyncio
    async def test_get_tier_is_case_insensitive(self, tier_provider):
        assert (await tier_provider.get_tier(" PRO ")).tier_name == "pro"
        assert await tier_provider.get_tier("platinum") is None

    @pytest.mark.asyncio
    async def test_require_tier_raises_for_unknown(self, tier_provider):
        with pytest.raises(TierNotFoundException):
            await tier_provider.require_tier("platinum")


class TestTierUpdate:
    """Test tier updates written back to Airtable."""

    @pytest.mark.asyncio
    async def test_update_patches_record_and_clears_cache(self, configured_provider):
        """Test that an update PATCHes the matching record and drops the cache."""
        configured_provider.cache.set(list(DEFAULT_TIERS))
        row = tier_record("basic", record_id="recBasic001")

        with respx.mock(assert_all_called=False) as router:
            router.get(TABLE_URL).mock(return_value=httpx.Response(200, json=list_response([row])))
            patch_route = router.patch(f"{TABLE_URL}/recBasic001").mock(
                return_value=httpx.Response(200, json=row)
            )

            await configured_provider.update_tier("Basic", {
                "price_gbp": Decimal("9.99"),
                "insight_generation_schedule": InsightSchedule.DAILY,
            })

        body = json.loads(patch_route.calls[0].request.content)
        assert body == {"fields": {"Monthly Price GBP": 9.99, "Insights Schedule": "daily"}}
        assert configured_provider.cache.get() is None

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, configured_provider):
        with pytest.raises(ValidationException) as exc_info:
            await configured_provider.update_tier("basic", {"colour": "blue"})

        assert "colour" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_update_unknown_tier(self, configured_provider):
        with respx.mock(assert_all_called=False) as router:
            router.get(TABLE_URL).mock(return_value=httpx.Response(200, json=list_response([])))

            with pytest.raises(TierNotFoundException):
                await configured_provider.update_tier("platinum", {"max_competitors": 50})


# =============================================================================
# API TESTS
# =============================================================================

class TestConfigEndpoints:
    """Test the public tier endpoints."""

    @pytest.mark.asyncio
    async def test_list_tiers(self, client):
        response = await client.get("/api/config/tiers")

        assert response.status_code == 200
        tiers = response.json()["tiers"]
        assert [t["tierName"] for t in tiers] == ["trial", "basic", "pro"]
        assert tiers[1]["pricing"]["gbp"] == 8.99
        assert tiers[2]["maxJobsPerMonth"] == 200
        assert tiers[2]["features"]["advancedAnalytics"] is True

    @pytest.mark.asyncio
    async def test_get_single_tier(self, client):
        response = await client.get("/api/config/tiers/basic")

        assert response.status_code == 200
        tier = response.json()["tier"]
        assert tier["displayName"] == "Basic"
        assert tier["maxCompetitors"] == 5
        assert tier["aiCreditsPerMonth"] == 7

    @pytest.mark.asyncio
    async def test_unknown_tier_is_404(self, client):
        response = await client.get("/api/config/tiers/platinum")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "TIER_NOT_FOUND"
        assert response.json()["detail"]["message"] == "Tier not found"

    @pytest.mark.asyncio
    async def test_refresh_requires_auth(self, client):
        response = await client.post("/api/config/tiers/refresh")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_refresh_clears_cache(self, client, auth_headers, tier_provider):
        tier_provider.cache.set(list(DEFAULT_TIERS))

        response = await client.post("/api/config/tiers/refresh", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert tier_provider.cache.get() is None
