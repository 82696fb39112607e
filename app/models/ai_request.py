"""
trackd - AI Request Model

Every language-model call is recorded here. Successful rows count against
the user's monthly AI credits.
"""

import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class AIRequestType(str, Enum):
    COMPETITOR_ANALYSIS = "competitor_analysis"
    PRICING_ANALYSIS = "pricing_analysis"
    INSIGHT_GENERATION = "insight_generation"


class AIRequest(BaseModel):
    """Usage and cost tracking for language-model requests."""
    
    __tablename__ = "ai_requests"
    
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    entitlement_tier: Mapped[str] = mapped_column(String(50), nullable=False)
    request_type: Mapped[str] = mapped_column(String(50), nullable=False)
    endpoint: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    provider: Mapped[str] = mapped_column(String(50), default="openai", nullable=False)
    
    tokens_input: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tokens_output: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tokens_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cost_estimate_gbp: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 6), nullable=True)
    response_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    
    success: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    prompt_length: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    response_length: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    temperature: Mapped[Optional[Decimal]] = mapped_column(Numeric(3, 2), nullable=True)
    max_tokens: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
