"""
trackd - Competitor Model

Manually entered or AI-assisted competitor records used for price comparison.
"""

import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class Competitor(BaseModel):
    """Competitor business record. Not related to jobs or customers."""
    
    __tablename__ = "competitors"
    
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    services: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    
    # Rates
    hourly_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    average_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    emergency_callout_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    callout_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    
    market_positioning: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    rating: Mapped[Optional[Decimal]] = mapped_column(Numeric(2, 1), nullable=True)
    review_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    strengths: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    weaknesses: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
