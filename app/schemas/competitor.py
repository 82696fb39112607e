"""
trackd - Competitor Schemas
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from app.schemas.base import APIModel, Money


class CompetitorCreateRequest(APIModel):
    """Schema for creating a competitor."""
    name: str = Field(..., min_length=1, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    services: List[str] = []
    hourly_rate: Optional[Money] = Field(None, ge=0)
    average_rate: Optional[Money] = Field(None, ge=0)
    emergency_callout_fee: Optional[Money] = Field(None, ge=0)
    callout_fee: Optional[Money] = Field(None, ge=0)
    market_positioning: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    website: Optional[str] = Field(None, max_length=500)
    rating: Optional[Money] = Field(None, ge=0, le=5)
    review_count: Optional[int] = Field(None, ge=0)
    is_active: bool = True
    strengths: List[str] = []
    weaknesses: List[str] = []
    notes: Optional[str] = None


class CompetitorUpdateRequest(APIModel):
    """Schema for updating a competitor."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    services: Optional[List[str]] = None
    hourly_rate: Optional[Money] = Field(None, ge=0)
    average_rate: Optional[Money] = Field(None, ge=0)
    emergency_callout_fee: Optional[Money] = Field(None, ge=0)
    callout_fee: Optional[Money] = Field(None, ge=0)
    market_positioning: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    website: Optional[str] = Field(None, max_length=500)
    rating: Optional[Money] = Field(None, ge=0, le=5)
    review_count: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    strengths: Optional[List[str]] = None
    weaknesses: Optional[List[str]] = None
    notes: Optional[str] = None


class CompetitorResponse(CompetitorCreateRequest):
    id: UUID
    user_id: UUID
    created_at: datetime
    updated_at: datetime
