"""
trackd - Competitors Router

API endpoints for competitor tracking.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.base import MessageResponse
from app.schemas.competitor import (
    CompetitorCreateRequest,
    CompetitorResponse,
    CompetitorUpdateRequest,
)
from app.schemas.tier import LimitKind
from app.services.competitor_service import CompetitorService
from app.services.entitlement_service import EntitlementService
from app.services.tier_config_service import TierConfigProvider, get_tier_config_provider


router = APIRouter()


@router.get(
    "",
    response_model=List[CompetitorResponse],
    summary="List competitors",
)
async def list_competitors(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CompetitorService(db).get_competitors(current_user.id)


@router.post(
    "",
    response_model=CompetitorResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add competitor",
    description="Track a competitor. Active competitors count against the tier's competitor quota.",
)
async def create_competitor(
    request: CompetitorCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    tier_provider: TierConfigProvider = Depends(get_tier_config_provider),
):
    if request.is_active:
        await EntitlementService(db, tier_provider).enforce(current_user, LimitKind.COMPETITORS)
    return await CompetitorService(db).create_competitor(current_user.id, request)


@router.get(
    "/{competitor_id}",
    response_model=CompetitorResponse,
    summary="Get competitor",
)
async def get_competitor(
    competitor_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CompetitorService(db).get_competitor(current_user.id, competitor_id)


@router.put(
    "/{competitor_id}",
    response_model=CompetitorResponse,
    summary="Update competitor",
)
async def update_competitor(
    competitor_id: UUID,
    request: CompetitorUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await CompetitorService(db).update_competitor(current_user.id, competitor_id, request)


@router.delete(
    "/{competitor_id}",
    response_model=MessageResponse,
    summary="Delete competitor",
)
async def delete_competitor(
    competitor_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    await CompetitorService(db).delete_competitor(current_user.id, competitor_id)
    return MessageResponse(message="Competitor deleted successfully")
