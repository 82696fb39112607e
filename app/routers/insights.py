"""
trackd - Insights Router

API endpoints for business insights.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_user, require_within_limit
from app.models.user import User
from app.schemas.base import MessageResponse
from app.schemas.insight import (
    InsightCreateRequest,
    InsightRegenerateResponse,
    InsightResponse,
    InsightStatusUpdateRequest,
    InsightViewedUpdateRequest,
    UnviewedCountResponse,
)
from app.schemas.tier import LimitKind
from app.services.insight_service import InsightService


router = APIRouter()


@router.get(
    "",
    response_model=List[InsightResponse],
    summary="List insights",
    description="Get all insights for the current user, newest first.",
)
async def list_insights(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await InsightService(db).get_insights(current_user.id)


@router.get(
    "/unviewed-count",
    response_model=UnviewedCountResponse,
    summary="Count unviewed insights",
)
async def unviewed_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    count = await InsightService(db).count_unviewed(current_user.id)
    return UnviewedCountResponse(count=count)


@router.post(
    "",
    response_model=InsightResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create insight",
)
async def create_insight(
    request: InsightCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await InsightService(db).create_insight(current_user.id, request)


@router.post(
    "/regenerate",
    response_model=InsightRegenerateResponse,
    summary="Regenerate insights",
    description="Replace the current insights with a fresh AI analysis of the last 30 days. Uses one AI credit.",
)
async def regenerate_insights(
    current_user: User = Depends(require_within_limit(LimitKind.AI)),
    db: AsyncSession = Depends(get_async_session),
):
    insights = await InsightService(db).regenerate(current_user)
    return InsightRegenerateResponse(
        insights=[InsightResponse.model_validate(insight) for insight in insights],
        success=True,
    )


@router.patch(
    "/{insight_id}/status",
    response_model=InsightResponse,
    summary="Update insight status",
    description="Complete or dismiss an insight. A completed or dismissed insight cannot be made active again.",
)
async def update_insight_status(
    insight_id: UUID,
    request: InsightStatusUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await InsightService(db).update_status(current_user.id, insight_id, request.status)


@router.patch(
    "/{insight_id}",
    response_model=InsightResponse,
    summary="Mark insight viewed",
)
async def update_insight_viewed(
    insight_id: UUID,
    request: InsightViewedUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await InsightService(db).mark_viewed(current_user.id, insight_id, request.viewed)


@router.delete(
    "/{insight_id}",
    response_model=MessageResponse,
    summary="Delete insight",
)
async def delete_insight(
    insight_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    await InsightService(db).delete_insight(current_user.id, insight_id)
    return MessageResponse(message="Insight deleted successfully")
