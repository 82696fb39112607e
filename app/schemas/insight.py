"""
trackd - Insight Schemas
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import Field

from app.models.insight import InsightPriority, InsightStatus, InsightType
from app.schemas.base import APIModel


class InsightCreateRequest(APIModel):
    """Schema for creating an insight manually."""
    type: InsightType
    priority: InsightPriority
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    recommendation: Optional[str] = None
    impact: Optional[str] = Field(None, max_length=255)
    impact_score: Optional[int] = Field(None, ge=0, le=100)
    urgency_level: Optional[str] = Field(None, max_length=50)
    action: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    data: Dict[str, Any] = {}


class InsightStatusUpdateRequest(APIModel):
    status: InsightStatus


class InsightViewedUpdateRequest(APIModel):
    viewed: bool


class InsightResponse(InsightCreateRequest):
    id: UUID
    user_id: UUID
    status: InsightStatus
    viewed: bool
    action_taken: bool
    ai_generated: bool
    created_at: datetime
    updated_at: datetime


class InsightRegenerateResponse(APIModel):
    insights: List[InsightResponse]
    success: bool = True


class UnviewedCountResponse(APIModel):
    count: int
