"""
trackd - FastAPI Application Entry Point

This is the main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import close_db, init_db
from app.utils.error_handling import ErrorTrackingMiddleware, setup_exception_handlers

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Stripe: {'configured' if settings.stripe_enabled else 'stub mode'}")
    logger.info(f"Airtable tiers: {'configured' if settings.airtable_enabled else 'built-in defaults'}")
    
    # Initialize database (dev only - use migrations in production)
    if settings.is_development:
        await init_db()
        logger.info("Database tables initialized")
    
    yield
    
    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Job, customer and pricing analytics for UK trade businesses",
    version=APP_VERSION,
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(ErrorTrackingMiddleware)


# ===========================================
# GLOBAL ERROR HANDLERS
# ===========================================

setup_exception_handlers(app)


# ===========================================
# API ROUTES
# ===========================================

@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.app_name,
        "version": APP_VERSION,
        "status": "running",
        "environment": settings.app_env,
        "api_docs": "/api/docs" if settings.is_development else "disabled",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": APP_VERSION,
    }


# ===========================================
# INCLUDE ROUTERS
# ===========================================

from app.routers import (
    ai, analytics, competitors, config, customers,
    insights, jobs, stripe, users,
)

app.include_router(users.router, prefix="/api/user", tags=["Users"])
app.include_router(config.router, prefix="/api/config", tags=["Tier Configuration"])
app.include_router(jobs.router, prefix="/api/jobs", tags=["Jobs"])
app.include_router(customers.router, prefix="/api/customers", tags=["Customers"])
app.include_router(competitors.router, prefix="/api/competitors", tags=["Competitors"])
app.include_router(insights.router, prefix="/api/insights", tags=["Insights"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])
app.include_router(ai.router, prefix="/api/ai", tags=["AI Analysis"])
app.include_router(stripe.router, prefix="/api/stripe", tags=["Billing"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=5000,
        reload=settings.is_development,
    )
