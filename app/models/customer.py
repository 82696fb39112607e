"""
trackd - Customer Model

Clients of the business. The aggregate columns are a materialised view of
the customer's jobs and are rewritten whenever a linked job changes.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, DateTime, Enum as SQLEnum, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class CustomerStatus(str, Enum):
    """Customer relationship status."""
    NEW = "New"
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class Customer(BaseModel):
    """Customer model for tracking clients and their lifetime value."""
    
    __tablename__ = "customers"
    
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    # Contact
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contact_preference: Mapped[str] = mapped_column(String(20), default="email", nullable=False)
    
    # Aggregates derived from jobs
    total_jobs: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    average_job_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    lifetime_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    first_job_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_job_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    
    satisfaction_score: Mapped[int] = mapped_column(Integer, default=85, nullable=False)
    status: Mapped[CustomerStatus] = mapped_column(
        SQLEnum(CustomerStatus, values_callable=lambda x: [e.value for e in x]),
        default=CustomerStatus.NEW,
        nullable=False,
    )
    preferred_services: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
