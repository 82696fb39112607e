"""
trackd - Customer Schemas

Aggregate fields (totals, averages, job dates) are server-maintained and
not accepted on input.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import EmailStr, Field

from app.models.customer import CustomerStatus
from app.schemas.base import APIModel, Money


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class CustomerCreateRequest(APIModel):
    """Schema for creating a customer."""
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    contact_preference: str = Field("email", max_length=20)
    satisfaction_score: int = Field(85, ge=0, le=100)
    status: CustomerStatus = CustomerStatus.NEW
    preferred_services: List[str] = []
    notes: Optional[str] = None


class CustomerUpdateRequest(APIModel):
    """Schema for updating a customer."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    contact_preference: Optional[str] = Field(None, max_length=20)
    satisfaction_score: Optional[int] = Field(None, ge=0, le=100)
    status: Optional[CustomerStatus] = None
    preferred_services: Optional[List[str]] = None
    notes: Optional[str] = None


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class CustomerResponse(APIModel):
    """Schema for customer response."""
    id: UUID
    user_id: UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    contact_preference: str
    total_jobs: int
    total_revenue: Money
    average_job_value: Money
    lifetime_value: Money
    first_job_date: Optional[datetime] = None
    last_job_date: Optional[datetime] = None
    satisfaction_score: int
    status: CustomerStatus
    preferred_services: List[str] = []
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
