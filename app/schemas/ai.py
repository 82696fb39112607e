"""
trackd - AI Analysis Schemas
"""

from typing import List

from pydantic import Field

from app.schemas.base import APIModel, Money


class CompetitorAnalysisRequest(APIModel):
    business_type: str = Field(..., min_length=1, max_length=100)
    location: str = Field(..., min_length=1, max_length=255)
    services: List[str] = Field(default_factory=list)


class PricingAnalysisRequest(CompetitorAnalysisRequest):
    current_rate: Money = Field(..., ge=0)


class AnalysisResponse(APIModel):
    analysis: str
    key_insights: List[str] = []
    recommendations: List[str] = []
