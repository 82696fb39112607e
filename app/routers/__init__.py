"""
trackd - Routers Package

FastAPI route handlers.

Routers:
- users: Current user profile
- config: Subscription tiers and limit checks
- jobs: Job management
- customers: Customer management
- competitors: Competitor tracking
- insights: Business insights and AI regeneration
- analytics: Dashboard aggregations
- ai: Competitor and pricing analysis
- stripe: Checkout, subscriptions and webhooks
"""

from app.routers import (
    ai,
    analytics,
    competitors,
    config,
    customers,
    insights,
    jobs,
    stripe,
    users,
)

__all__ = [
    "ai",
    "analytics",
    "competitors",
    "config",
    "customers",
    "insights",
    "jobs",
    "stripe",
    "users",
]
