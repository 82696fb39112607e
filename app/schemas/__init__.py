"""
trackd - Schemas Package

Pydantic schemas for request/response validation.
"""

from app.schemas.base import APIModel, MessageResponse, Money
from app.schemas.user import UserProfileUpdateRequest, UserResponse
from app.schemas.job import JobCreateRequest, JobUpdateRequest, JobResponse, Material
from app.schemas.customer import CustomerCreateRequest, CustomerUpdateRequest, CustomerResponse
from app.schemas.competitor import CompetitorCreateRequest, CompetitorUpdateRequest, CompetitorResponse
from app.schemas.insight import (
    InsightCreateRequest,
    InsightStatusUpdateRequest,
    InsightViewedUpdateRequest,
    InsightResponse,
    InsightRegenerateResponse,
    UnviewedCountResponse,
)
from app.schemas.tier import (
    TierConfig,
    TierPricing,
    TierFeatures,
    InsightSchedule,
    LimitKind,
    TierListResponse,
    TierResponse,
    CheckLimitRequest,
    LimitCheckResult,
)
from app.schemas.analytics import (
    DashboardMetrics,
    EfficiencyPoint,
    CustomerValue,
    MonthlyTrend,
    CompetitorComparison,
)
from app.schemas.billing import (
    CreateCustomerResponse,
    CreateCheckoutSessionRequest,
    CheckoutSessionResponse,
    CheckoutSuccessRequest,
    BillingActionResponse,
    SubscriptionResponse,
    SubscriptionEnvelope,
)
from app.schemas.ai import CompetitorAnalysisRequest, PricingAnalysisRequest, AnalysisResponse
