"""
trackd - User Model

Business owner accounts. Identity comes from the external auth provider;
the local record holds the business profile and preferences.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class Currency(str, Enum):
    """Supported billing and display currencies."""
    GBP = "GBP"
    EUR = "EUR"
    USD = "USD"


DEFAULT_NOTIFICATIONS: Dict[str, bool] = {
    "competitorAlerts": True,
    "insightDigest": True,
    "jobReminders": False,
    "marketingTips": True,
    "emailNotifications": True,
    "smsNotifications": False,
}


class User(BaseModel):
    """
    Business owner account.
    
    Created on first authentication and never hard-deleted in normal flow.
    """
    
    __tablename__ = "users"
    
    # Identity (subject claim issued by the auth provider)
    auth_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    
    # Business profile
    business_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    owner_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    postcode: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    service_area: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    service_area_radius: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    business_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    business_type_other: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    specializations: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    team_size: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    years_in_business: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    
    # Goals
    target_hourly_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    monthly_revenue_goal: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    weekly_hours_target: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    
    # Plan & preferences
    subscription_tier: Mapped[str] = mapped_column(String(50), default="trial", nullable=False)
    preferred_currency: Mapped[str] = mapped_column(
        String(3),
        default=Currency.GBP.value,
        nullable=False,
    )
    notifications: Mapped[Dict[str, Any]] = mapped_column(
        JSON,
        default=lambda: dict(DEFAULT_NOTIFICATIONS),
        nullable=False,
    )
    
    # Onboarding (0=not started, 1=business, 2=first job, 3=competitors, 4=complete)
    onboarding_status: Mapped[str] = mapped_column(String(20), default="incomplete", nullable=False)
    onboarding_step: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    
    @property
    def display_name(self) -> str:
        """Name used on payment-processor customer records."""
        return self.business_name or self.owner_name or self.username or self.email or ""
