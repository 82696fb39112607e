"""
trackd - Insight Model

Actionable recommendations shown on the insights page.
"""

import uuid
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Boolean, Enum as SQLEnum, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class InsightType(str, Enum):
    PRICING = "pricing"
    EFFICIENCY = "efficiency"
    CUSTOMER = "customer"
    MARKET = "market"
    COMPETITOR = "competitor"


class InsightPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class InsightStatus(str, Enum):
    """An insight leaves ACTIVE once and never returns to it."""
    ACTIVE = "active"
    COMPLETED = "completed"
    DISMISSED = "dismissed"


class Insight(BaseModel):
    """AI-generated or manually created business insight."""
    
    __tablename__ = "insights"
    
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    type: Mapped[InsightType] = mapped_column(
        SQLEnum(InsightType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    priority: Mapped[InsightPriority] = mapped_column(
        SQLEnum(InsightPriority, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recommendation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    impact: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    impact_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    urgency_level: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    action: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    
    status: Mapped[InsightStatus] = mapped_column(
        SQLEnum(InsightStatus, values_callable=lambda x: [e.value for e in x]),
        default=InsightStatus.ACTIVE,
        nullable=False,
    )
    viewed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    action_taken: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ai_generated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    data: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
