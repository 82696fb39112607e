"""
trackd - Tier Configuration Router

Subscription tier definitions and entitlement checks.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.base import MessageResponse
from app.schemas.tier import (
    CheckLimitRequest,
    LimitCheckResult,
    TierListResponse,
    TierResponse,
)
from app.services.entitlement_service import EntitlementService, parse_limit_kind
from app.services.tier_config_service import TierConfigProvider, get_tier_config_provider
from app.utils.error_handling import AuthorizationException, ValidationException

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/tiers",
    response_model=TierListResponse,
    summary="List subscription tiers",
    description="All tiers with pricing, quotas and features. Falls back to built-in tiers when the source is unavailable.",
)
async def list_tiers(
    tier_provider: TierConfigProvider = Depends(get_tier_config_provider),
):
    return TierListResponse(tiers=await tier_provider.get_all_tiers())


@router.get(
    "/tiers/{tier_name}",
    response_model=TierResponse,
    summary="Get subscription tier",
)
async def get_tier(
    tier_name: str,
    tier_provider: TierConfigProvider = Depends(get_tier_config_provider),
):
    return TierResponse(tier=await tier_provider.require_tier(tier_name))


@router.post(
    "/tiers/refresh",
    response_model=MessageResponse,
    summary="Refresh tier cache",
    description="Drop the cached tier definitions so the next read goes to the source.",
)
async def refresh_tiers(
    current_user: User = Depends(get_current_user),
    tier_provider: TierConfigProvider = Depends(get_tier_config_provider),
):
    tier_provider.clear_cache()
    logger.info(f"Tier cache cleared by user {current_user.id}")
    return MessageResponse(message="Tier configuration cache cleared")


@router.post(
    "/check-limit",
    response_model=LimitCheckResult,
    summary="Check a tier limit",
    description="Whether the user may perform one more action of the given kind (jobs, ai, competitors).",
)
async def check_limit(
    request: CheckLimitRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    tier_provider: TierConfigProvider = Depends(get_tier_config_provider),
):
    missing = [
        name for name, value in (
            ("userId", request.user_id),
            ("tierName", request.tier_name),
            ("limitType", request.limit_type),
        )
        if not value
    ]
    if missing:
        raise ValidationException(
            "Missing required fields",
            details={"missing": missing},
        )
    
    if request.user_id not in (str(current_user.id), current_user.auth_id):
        raise AuthorizationException(message="Cannot check limits for another user")
    
    kind = parse_limit_kind(request.limit_type)
    return await EntitlementService(db, tier_provider).check_limit(
        current_user.id,
        request.tier_name,
        kind,
    )
