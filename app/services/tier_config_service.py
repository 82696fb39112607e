"""
trackd - Tier Configuration Service

Subscription tier definitions (price, quotas, feature flags) are maintained
in an Airtable table and cached in-process for a short TTL. When Airtable is
unreachable, unconfigured or empty the built-in tier table is served instead
so callers never see a configuration failure.
"""

import logging
import time
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import httpx

from app.config import settings
from app.schemas.tier import (
    InsightSchedule,
    TierConfig,
    TierFeatures,
    TierPricing,
)
from app.utils.currency import quantize_money
from app.utils.error_handling import (
    ExternalServiceException,
    TierNotFoundException,
    ValidationException,
)

logger = logging.getLogger(__name__)


# =============================================================================
# BUILT-IN TIERS
# =============================================================================

DEFAULT_TIERS: List[TierConfig] = [
    TierConfig(
        tier_name="trial",
        display_name="Free Trial",
        pricing=TierPricing(gbp=Decimal("0"), eur=Decimal("0"), usd=Decimal("0")),
        trial_duration_days=30,
        max_jobs_per_month=50,
        max_competitors=3,
        ai_credits_per_month=3,
        insight_generation_schedule=InsightSchedule.WEEKLY,
        insight_generation_time="09:00",
        ai_model="gpt-4o-mini",
        features=TierFeatures(),
    ),
    TierConfig(
        tier_name="basic",
        display_name="Basic",
        pricing=TierPricing(gbp=Decimal("8.99"), eur=Decimal("10.99"), usd=Decimal("12.99")),
        max_jobs_per_month=50,
        max_competitors=5,
        ai_credits_per_month=7,
        insight_generation_schedule=InsightSchedule.EVERY_3_DAYS,
        insight_generation_time="09:00",
        ai_model="gpt-4o-mini",
        features=TierFeatures(competitor_alerts=True),
    ),
    TierConfig(
        tier_name="pro",
        display_name="Pro",
        pricing=TierPricing(gbp=Decimal("16.99"), eur=Decimal("19.99"), usd=Decimal("23.99")),
        max_jobs_per_month=200,
        max_competitors=10,
        ai_credits_per_month=20,
        insight_generation_schedule=InsightSchedule.DAILY,
        insight_generation_time="09:00",
        ai_model="gpt-4o-mini",
        features=TierFeatures(
            advanced_analytics=True,
            competitor_alerts=True,
            export_reports=True,
            api_access=True,
            whatsapp_integration=True,
            priority_support=True,
        ),
    ),
]


# Airtable column names
FEATURE_FIELDS = {
    "advanced_analytics": "Advanced Analytics",
    "competitor_alerts": "Competitor Alerts",
    "export_reports": "Export Reports",
    "api_access": "API Access",
    "whatsapp_integration": "WhatsApp Integration",
    "priority_support": "Priority Support",
}

UPDATABLE_FIELDS = {
    "display_name": "Display Name",
    "price_gbp": "Monthly Price GBP",
    "price_eur": "Monthly Price EUR",
    "price_usd": "Monthly Price USD",
    "trial_duration_days": "Trial Duration Days",
    "max_jobs_per_month": "Max Jobs Per Month",
    "max_competitors": "Max Competitors",
    "ai_credits_per_month": "AI Credits Per Month",
    "insight_generation_schedule": "Insights Schedule",
    "insight_generation_time": "Insights Time",
    "ai_model": "AI Model",
    **FEATURE_FIELDS,
}


class TierSourceError(Exception):
    """Tier definitions could not be read from the external source."""


def get_tier_price(tier: TierConfig, currency: str = "GBP") -> Decimal:
    """Monthly price of ``tier`` in ``currency`` (unknown currencies price in GBP)."""
    code = (currency or "GBP").strip().lower()
    if code not in ("gbp", "eur", "usd"):
        code = "gbp"
    return quantize_money(getattr(tier.pricing, code))


# =============================================================================
# FIELD COERCION
# =============================================================================

def _as_int(value: Any, default: Optional[int]) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _as_price(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return quantize_money(value)
    except ArithmeticError:
        return Decimal("0")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "checked")
    return bool(value)


def _as_schedule(value: Any) -> InsightSchedule:
    try:
        return InsightSchedule(str(value).strip().lower())
    except ValueError:
        return InsightSchedule.WEEKLY


def tier_from_airtable_fields(fields: Dict[str, Any]) -> Optional[TierConfig]:
    """
    Map a loosely-typed Airtable record onto a TierConfig.
    
    Returns None for rows without a tier name. A missing or empty
    "Max Jobs Per Month" means unlimited; 0 means no jobs allowed.
    """
    tier_name = str(fields.get("Tier Name") or "").strip().lower()
    if not tier_name:
        return None
    
    return TierConfig(
        tier_name=tier_name,
        display_name=str(fields.get("Display Name") or tier_name.title()),
        pricing=TierPricing(
            gbp=_as_price(fields.get("Monthly Price GBP")),
            eur=_as_price(fields.get("Monthly Price EUR")),
            usd=_as_price(fields.get("Monthly Price USD")),
        ),
        trial_duration_days=_as_int(fields.get("Trial Duration Days"), None),
        max_jobs_per_month=_as_int(fields.get("Max Jobs Per Month"), None),
        max_competitors=_as_int(fields.get("Max Competitors"), 3),
        ai_credits_per_month=_as_int(fields.get("AI Credits Per Month"), 0),
        insight_generation_schedule=_as_schedule(fields.get("Insights Schedule", "weekly")),
        insight_generation_time=str(fields.get("Insights Time") or "09:00"),
        ai_model=str(fields.get("AI Model") or "gpt-4o-mini"),
        features=TierFeatures(**{
            attr: _as_bool(fields.get(column, False))
            for attr, column in FEATURE_FIELDS.items()
        }),
    )


# =============================================================================
# CACHE
# =============================================================================

class TierCache:
    """
    In-process TTL cache for the tier list.
    
    The clock is injectable so staleness can be simulated in tests.
    """
    
    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.tier_cache_ttl_seconds
        self._clock = clock
        self._tiers: Optional[List[TierConfig]] = None
        self._fetched_at: Optional[float] = None
    
    def get(self) -> Optional[List[TierConfig]]:
        """Cached tiers if younger than the TTL, else None."""
        if self._tiers is None or self._fetched_at is None:
            return None
        if self._clock() - self._fetched_at >= self.ttl_seconds:
            return None
        return list(self._tiers)
    
    def set(self, tiers: List[TierConfig]) -> None:
        self._tiers = list(tiers)
        self._fetched_at = self._clock()
    
    def invalidate(self) -> None:
        self._tiers = None
        self._fetched_at = None


# =============================================================================
# AIRTABLE SOURCE
# =============================================================================

class AirtableTierSource:
    """Reads and updates the "Subscription Tiers" table via the Airtable REST API."""
    
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_id: Optional[str] = None,
        table_name: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.airtable_api_key
        self.base_id = base_id if base_id is not None else settings.airtable_base_id
        self.table_name = table_name or settings.airtable_tiers_table
        self.base_url = (base_url or settings.airtable_base_url).rstrip("/")
        self.timeout = timeout or settings.airtable_timeout_seconds
    
    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.base_id)
    
    @property
    def table_url(self) -> str:
        return f"{self.base_url}/{self.base_id}/{quote(self.table_name)}"
    
    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
    
    async def _list_records(self, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Fetch all records, following Airtable's offset pagination."""
        if not self.is_configured:
            raise TierSourceError("Airtable credentials not configured")
        
        records: List[Dict[str, Any]] = []
        query = dict(params or {})
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                while True:
                    response = await client.get(self.table_url, headers=self._get_headers(), params=query)
                    if response.status_code >= 400:
                        raise TierSourceError(
                            f"Airtable returned HTTP {response.status_code} for table '{self.table_name}'"
                        )
                    payload = response.json()
                    records.extend(payload.get("records", []))
                    offset = payload.get("offset")
                    if not offset:
                        break
                    query["offset"] = offset
        except httpx.HTTPError as e:
            raise TierSourceError(f"Airtable request failed: {e}") from e
        except ValueError as e:
            raise TierSourceError(f"Airtable returned invalid JSON: {e}") from e
        
        return records
    
    async def fetch_tiers(self) -> List[TierConfig]:
        records = await self._list_records()
        tiers = [
            tier
            for tier in (tier_from_airtable_fields(record.get("fields", {})) for record in records)
            if tier is not None
        ]
        if not tiers:
            raise TierSourceError(f"No tier records found in '{self.table_name}'")
        return tiers
    
    async def update_tier(self, tier_name: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """PATCH the record whose "Tier Name" matches. Returns the updated record."""
        escaped = tier_name.replace("'", "\\'")
        records = await self._list_records({"filterByFormula": f"{{Tier Name}} = '{escaped}'"})
        if not records:
            raise TierNotFoundException(tier_name)
        
        record_id = records[0]["id"]
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.patch(
                    f"{self.table_url}/{record_id}",
                    headers=self._get_headers(),
                    json={"fields": fields},
                )
        except httpx.HTTPError as e:
            raise ExternalServiceException("Airtable", f"Tier update failed: {e}", original_error=e)
        
        if response.status_code >= 400:
            raise ExternalServiceException(
                "Airtable",
                f"Tier update failed with HTTP {response.status_code}",
            )
        return response.json()


# =============================================================================
# PROVIDER
# =============================================================================

class TierConfigProvider:
    """Read-through access to tier definitions with built-in fallback."""
    
    def __init__(
        self,
        cache: Optional[TierCache] = None,
        source: Optional[AirtableTierSource] = None,
    ):
        self.cache = cache or TierCache()
        self.source = source or AirtableTierSource()
    
    async def get_all_tiers(self) -> List[TierConfig]:
        cached = self.cache.get()
        if cached is not None:
            return cached
        
        try:
            tiers = await self.source.fetch_tiers()
        except TierSourceError as e:
            # Cache is left untouched on failure
            logger.warning(f"Using built-in tier configuration: {e}")
            return list(DEFAULT_TIERS)
        
        self.cache.set(tiers)
        logger.info(f"Loaded {len(tiers)} tiers from Airtable")
        return tiers
    
    async def get_tier(self, tier_name: str) -> Optional[TierConfig]:
        name = (tier_name or "").strip().lower()
        for tier in await self.get_all_tiers():
            if tier.tier_name == name:
                return tier
        return None
    
    async def require_tier(self, tier_name: str) -> TierConfig:
        tier = await self.get_tier(tier_name)
        if tier is None:
            raise TierNotFoundException(tier_name)
        return tier
    
    async def update_tier(self, tier_name: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update a tier in Airtable and drop the cache.
        
        Args:
            tier_name: Tier to update (case-insensitive)
            updates: Keys from UPDATABLE_FIELDS, e.g. {"price_gbp": 9.99}
        """
        unknown = set(updates) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationException(
                f"Unknown tier fields: {', '.join(sorted(unknown))}",
                details={"allowed": sorted(UPDATABLE_FIELDS)},
            )
        
        fields = {}
        for key, value in updates.items():
            if isinstance(value, Decimal):
                value = float(value)
            elif isinstance(value, InsightSchedule):
                value = value.value
            fields[UPDATABLE_FIELDS[key]] = value
        
        result = await self.source.update_tier(tier_name.strip().lower(), fields)
        self.clear_cache()
        logger.info(f"Updated tier '{tier_name}' fields: {sorted(updates)}")
        return result
    
    def clear_cache(self) -> None:
        self.cache.invalidate()


# Process-wide provider shared by all requests
tier_config_provider = TierConfigProvider()


def get_tier_config_provider() -> TierConfigProvider:
    """FastAPI dependency returning the shared provider."""
    return tier_config_provider
