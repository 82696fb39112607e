"""
Airtable record factories for tier configuration tests.
"""

from typing import Any, Dict, List, Optional
from uuid import uuid4


TEST_BASE_ID = "appTrackdTest"
TEST_API_KEY = "patTestKey"
TABLE_URL = f"https://api.airtable.com/v0/{TEST_BASE_ID}/Subscription%20Tiers"


def tier_record(
    tier_name: str,
    display_name: Optional[str] = None,
    price_gbp: Any = 0,
    max_jobs: Any = None,
    max_competitors: Any = 3,
    ai_credits: Any = 0,
    record_id: Optional[str] = None,
    **extra_fields,
) -> Dict[str, Any]:
    """A "Subscription Tiers" row as the Airtable REST API returns it."""
    fields: Dict[str, Any] = {
        "Tier Name": tier_name,
        "Display Name": display_name or tier_name.title(),
        "Monthly Price GBP": price_gbp,
        "Max Competitors": max_competitors,
        "AI Credits Per Month": ai_credits,
    }
    if max_jobs is not None:
        fields["Max Jobs Per Month"] = max_jobs
    fields.update(extra_fields)
    return {
        "id": record_id or f"rec{uuid4().hex[:14]}",
        "createdTime": "2026-01-01T00:00:00.000Z",
        "fields": fields,
    }


def list_response(records: List[Dict[str, Any]], offset: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"records": records}
    if offset:
        body["offset"] = offset
    return body
