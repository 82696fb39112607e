"""
trackd - Security Utilities

JWT verification for tokens issued by the external auth provider, and
webhook signature helpers.
"""

import hashlib
import hmac
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from jose import JWTError, jwt

from app.config import settings


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token signed with the auth provider's shared secret.
    
    Production tokens are minted by the auth provider; this is used by
    tests and local development.
    
    Args:
        data: Dictionary containing token payload (``sub`` is the user's auth id)
        expires_delta: Optional custom expiration time
    
    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        )
    
    to_encode.update({"exp": expire})
    if settings.jwt_audience:
        to_encode.setdefault("aud", settings.jwt_audience)
    
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm
    )


def verify_access_token(token: str) -> Optional[dict]:
    """
    Decode and verify an access token.
    
    Args:
        token: JWT access token string
    
    Returns:
        Token payload dict or None if invalid
    """
    options = {"verify_aud": bool(settings.jwt_audience)}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience or None,
            options=options,
        )
    except JWTError:
        return None


def parse_stripe_signature_header(header: str) -> Dict[str, list]:
    """Split a ``t=...,v1=...`` header into its parts (v1 may repeat)."""
    parts: Dict[str, list] = {}
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if sep:
            parts.setdefault(key, []).append(value)
    return parts


def compute_stripe_signature(payload: bytes, timestamp: int, secret: str) -> str:
    """HMAC-SHA256 of ``"{timestamp}.{payload}"`` as Stripe computes it."""
    signed_payload = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(
        secret.encode("utf-8"),
        signed_payload,
        hashlib.sha256,
    ).hexdigest()


def verify_stripe_signature(
    payload: bytes,
    signature_header: str,
    secret: str,
    tolerance_seconds: int = 300,
    now: Optional[float] = None,
) -> bool:
    """
    Verify a Stripe webhook signature.
    
    Args:
        payload: Raw request body bytes
        signature_header: Stripe-Signature header value
        secret: Webhook signing secret (whsec_...)
        tolerance_seconds: Maximum age of the signed timestamp
        now: Current unix time (defaults to time.time())
    
    Returns:
        True if any v1 signature matches and the timestamp is fresh
    """
    if not signature_header or not secret:
        return False
    
    parts = parse_stripe_signature_header(signature_header)
    try:
        timestamp = int(parts.get("t", [""])[0])
    except ValueError:
        return False
    
    current = time.time() if now is None else now
    if tolerance_seconds and abs(current - timestamp) > tolerance_seconds:
        return False
    
    expected = compute_stripe_signature(payload, timestamp, secret)
    return any(hmac.compare_digest(expected, candidate) for candidate in parts.get("v1", []))
