"""
trackd - Job Schemas

hourlyRate and profitMargin are accepted for compatibility but always
recomputed by the server.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from app.models.job import JobStatus
from app.schemas.base import APIModel, Money, naive_utc


class Material(APIModel):
    name: str = Field(..., min_length=1, max_length=255)
    cost: Money = Field(default=0, ge=0)
    quantity: float = Field(default=1, ge=0)


class JobBase(APIModel):
    customer_id: Optional[UUID] = None
    customer_name: str = Field(..., min_length=1, max_length=255)
    job_type: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    revenue: Money = Field(..., ge=0)
    expenses: Money = Field(default=0, ge=0)
    hours: Money = Field(..., ge=0)
    status: JobStatus = JobStatus.QUOTED
    date: datetime
    start_date: Optional[datetime] = None
    estimated_completion_date: Optional[datetime] = None
    actual_completion_date: Optional[datetime] = None
    project_duration: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=255)
    satisfaction_rating: Optional[int] = Field(None, ge=1, le=5)
    materials: List[Material] = []
    notes: Optional[str] = None
    
    @field_validator("date", "start_date", "estimated_completion_date", "actual_completion_date")
    @classmethod
    def _to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)


class JobCreateRequest(JobBase):
    """Schema for creating a job."""
    hourly_rate: Optional[Money] = Field(None, description="Ignored; derived from revenue / hours")


class JobUpdateRequest(APIModel):
    """Schema for updating a job. Omitted fields are left unchanged."""
    customer_id: Optional[UUID] = None
    customer_name: Optional[str] = Field(None, min_length=1, max_length=255)
    job_type: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    revenue: Optional[Money] = Field(None, ge=0)
    expenses: Optional[Money] = Field(None, ge=0)
    hours: Optional[Money] = Field(None, ge=0)
    hourly_rate: Optional[Money] = Field(None, description="Ignored; derived from revenue / hours")
    status: Optional[JobStatus] = None
    date: Optional[datetime] = None
    start_date: Optional[datetime] = None
    estimated_completion_date: Optional[datetime] = None
    actual_completion_date: Optional[datetime] = None
    project_duration: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=255)
    satisfaction_rating: Optional[int] = Field(None, ge=1, le=5)
    materials: Optional[List[Material]] = None
    notes: Optional[str] = None
    
    @field_validator("date", "start_date", "estimated_completion_date", "actual_completion_date")
    @classmethod
    def _to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)


class JobResponse(JobBase):
    id: UUID
    user_id: UUID
    hourly_rate: Money
    profit_margin: Optional[Money] = None
    created_at: datetime
    updated_at: datetime
