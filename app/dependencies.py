"""
trackd - FastAPI Dependencies

Shared dependencies for authentication and entitlement gating.

This module provides dependency injection for:
1. Current user authentication (tokens issued by the external auth provider)
2. Quota enforcement based on the user's subscription tier
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.models.user import User
from app.schemas.tier import LimitKind
from app.services.entitlement_service import EntitlementService
from app.services.tier_config_service import TierConfigProvider, get_tier_config_provider
from app.services.user_service import UserService
from app.utils.error_handling import AuthenticationException, TokenInvalidException
from app.utils.security import verify_access_token


# HTTP Bearer token security
security = HTTPBearer(auto_error=False)


def _extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    # Try Bearer header first
    if credentials:
        return credentials.credentials
    
    # Fallback to cookie
    token = request.cookies.get("access_token")
    if token and token.startswith("Bearer "):
        token = token[7:]
    return token


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_async_session),
    tier_provider: TierConfigProvider = Depends(get_tier_config_provider),
) -> User:
    """
    Get the current authenticated user from the auth provider's JWT.
    
    Token can be provided via:
    1. Authorization: Bearer <token> header
    2. access_token cookie
    
    The ``sub`` claim is the provider's user id. A valid token for an unseen
    subject provisions the local user and its trial subscription.
    
    Raises:
        AuthenticationException: If no token is supplied
        TokenInvalidException: If the token is invalid, expired or has no subject
    """
    token = _extract_token(request, credentials)
    if not token:
        raise AuthenticationException("Not authenticated")
    
    payload = verify_access_token(token)
    if not payload:
        raise TokenInvalidException()
    
    auth_id = payload.get("sub")
    if not auth_id:
        raise TokenInvalidException("Invalid token payload")
    
    service = UserService(db, tier_provider)
    return await service.get_or_create(str(auth_id), payload.get("email"))


def require_within_limit(kind: LimitKind):
    """
    Dependency factory for tier quota enforcement.
    
    Usage:
        @router.post("/competitor-analysis")
        async def analyze(
            current_user: User = Depends(require_within_limit(LimitKind.AI))
        ):
            ...
    
    Returns:
        Dependency that raises 403 when the quota is exhausted and returns the user
    """
    async def limit_checker(
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_async_session),
        tier_provider: TierConfigProvider = Depends(get_tier_config_provider),
    ) -> User:
        await EntitlementService(db, tier_provider).enforce(current_user, kind)
        return current_user
    
    return limit_checker
