"""
trackd - Job Model

One unit of quoted or completed work.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, Enum as SQLEnum, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class JobStatus(str, Enum):
    """Job lifecycle: Quoted -> Booked -> In Progress -> Completed, or Cancelled."""
    QUOTED = "Quoted"
    BOOKED = "Booked"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class Job(BaseModel):
    """
    Job model.
    
    hourly_rate and profit_margin are derived from revenue, expenses and
    hours on every write.
    """
    
    __tablename__ = "jobs"
    
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    job_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    # Financials
    revenue: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    expenses: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    profit_margin: Mapped[Optional[Decimal]] = mapped_column(Numeric(7, 2), nullable=True)
    
    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus, values_callable=lambda x: [e.value for e in x]),
        default=JobStatus.QUOTED,
        nullable=False,
        index=True,
    )
    
    # Scheduling
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    estimated_completion_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    actual_completion_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    project_duration: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    
    # Feedback
    satisfaction_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    
    # [{"name": str, "cost": number, "quantity": number}]
    materials: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
