"""
trackd - AI Analysis Router

Language-model analysis endpoints. Each successful call uses one AI credit.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import require_within_limit
from app.models.user import User
from app.schemas.ai import AnalysisResponse, CompetitorAnalysisRequest, PricingAnalysisRequest
from app.schemas.tier import LimitKind
from app.services.ai_service import AIService


router = APIRouter()


@router.post(
    "/competitor-analysis",
    response_model=AnalysisResponse,
    summary="Analyze competitive landscape",
    description="AI analysis of local competition with key insights and recommendations.",
)
async def competitor_analysis(
    request: CompetitorAnalysisRequest,
    current_user: User = Depends(require_within_limit(LimitKind.AI)),
    db: AsyncSession = Depends(get_async_session),
):
    return await AIService(db).analyze_competitors(current_user, request)


@router.post(
    "/pricing-analysis",
    response_model=AnalysisResponse,
    summary="Analyze pricing",
    description="AI analysis of the user's hourly rate against the local market.",
)
async def pricing_analysis(
    request: PricingAnalysisRequest,
    current_user: User = Depends(require_within_limit(LimitKind.AI)),
    db: AsyncSession = Depends(get_async_session),
):
    return await AIService(db).analyze_pricing(current_user, request)
