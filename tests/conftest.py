"""
trackd - Test Configuration

Pytest fixtures and configuration.

Tests run against an in-memory SQLite database; Stripe, Airtable and
OpenAI are never contacted (external calls are mocked with respx or
replaced with stubs).
"""

import os

# Settings are read at import time, so the environment is pinned first
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["JWT_AUDIENCE"] = ""
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = ""
os.environ["AIRTABLE_API_KEY"] = ""
os.environ["AIRTABLE_BASE_ID"] = ""
os.environ["OPENAI_API_KEY"] = ""

from typing import AsyncGenerator, Dict

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.database import Base, get_async_session
from app.models.user import User
from app.routers.stripe import get_stripe_provider
from app.services.billing_service import StripeProvider
from app.services.tier_config_service import (
    AirtableTierSource,
    TierCache,
    TierConfigProvider,
    get_tier_config_provider,
)
from app.services.user_service import UserService
from app.utils.security import create_access_token
from main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"
TEST_AUTH_ID = "auth|test-user"
TEST_EMAIL = "owner@example.com"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def tier_provider() -> TierConfigProvider:
    """Provider with Airtable unconfigured, so it serves the built-in tiers."""
    return TierConfigProvider(
        cache=TierCache(),
        source=AirtableTierSource(api_key="", base_id=""),
    )


@pytest.fixture
def stripe_provider() -> StripeProvider:
    """Stub-mode Stripe client. Override in tests that exercise the live API shape."""
    return StripeProvider(secret_key="")


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    tier_provider: TierConfigProvider,
    stripe_provider: StripeProvider,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database, tier and Stripe overrides."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session
    app.dependency_overrides[get_tier_config_provider] = lambda: tier_provider
    app.dependency_overrides[get_stripe_provider] = lambda: stripe_provider

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession, tier_provider: TierConfigProvider) -> User:
    """Provisioned trial user."""
    service = UserService(db_session, tier_provider=tier_provider)
    return await service.get_or_create(TEST_AUTH_ID, TEST_EMAIL)


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    """Bearer token for the test user's auth identity."""
    token = create_access_token({"sub": TEST_AUTH_ID, "email": TEST_EMAIL})
    return {"Authorization": f"Bearer {token}"}

