"""
trackd - User Schemas
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import EmailStr, Field

from app.models.user import Currency
from app.schemas.base import APIModel, Money


class UserProfileUpdateRequest(APIModel):
    """Partial profile update. Omitted fields are left unchanged."""
    username: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    business_name: Optional[str] = Field(None, max_length=255)
    owner_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    postcode: Optional[str] = Field(None, max_length=20)
    location: Optional[str] = Field(None, max_length=255)
    service_area: Optional[str] = Field(None, max_length=255)
    service_area_radius: Optional[int] = Field(None, ge=0)
    business_type: Optional[str] = Field(None, max_length=100)
    business_type_other: Optional[str] = Field(None, max_length=255)
    specializations: Optional[List[str]] = None
    team_size: Optional[int] = Field(None, ge=1)
    years_in_business: Optional[int] = Field(None, ge=0)
    target_hourly_rate: Optional[Money] = Field(None, ge=0)
    monthly_revenue_goal: Optional[Money] = Field(None, ge=0)
    weekly_hours_target: Optional[int] = Field(None, ge=0)
    preferred_currency: Optional[Currency] = None
    notifications: Optional[Dict[str, bool]] = None
    onboarding_status: Optional[str] = Field(None, max_length=20)
    onboarding_step: Optional[int] = Field(None, ge=0, le=4)


class UserResponse(APIModel):
    id: UUID
    auth_id: str
    email: Optional[str] = None
    username: Optional[str] = None
    business_name: Optional[str] = None
    owner_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    postcode: Optional[str] = None
    location: Optional[str] = None
    service_area: Optional[str] = None
    service_area_radius: Optional[int] = None
    business_type: Optional[str] = None
    business_type_other: Optional[str] = None
    specializations: List[str] = []
    team_size: int = 1
    years_in_business: Optional[int] = None
    target_hourly_rate: Optional[Money] = None
    monthly_revenue_goal: Optional[Money] = None
    weekly_hours_target: Optional[int] = None
    subscription_tier: str
    preferred_currency: str
    notifications: Dict[str, bool] = {}
    onboarding_status: str
    onboarding_step: int
    created_at: datetime
    updated_at: datetime
