"""JWT token generation and validation

Access tokens are HS256-signed and carry:

- sub: User ID as UUID string
- tenant_id: Pharmacy (tenant) ID; every API call is scoped to it
- role: ADMIN | MANAGER | PHARMACIST | CASHIER
- username: Login name, for display and audit
- iat / exp: Issued-at and expiry (JWT_EXPIRY_MINUTES, default 60)

Example Token Payload:
{
  "sub": "550e8400-e29b-41d4-a716-446655440000",
  "tenant_id": "7c9e6679-7425-40de-944b-e07fc1f90ae7",
  "role": "PHARMACIST",
  "username": "jdoe",
  "iat": 1704368400,
  "exp": 1704372000
}

Refresh tokens carry only sub, jti and type="refresh". They are signed with
JWT_REFRESH_SECRET (falling back to JWT_SECRET), expire after
REFRESH_TOKEN_EXPIRE_DAYS (default 7), and are also tracked server-side so
they can be revoked.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Tuple
from uuid import UUID, uuid4

import jwt

REFRESH_TOKEN_TYPE = "refresh"


def _get_jwt_secret() -> str:
    """Get JWT_SECRET from environment.

    Raises:
        ValueError: If JWT_SECRET is not set
    """
    secret = os.getenv('JWT_SECRET')
    if not secret:
        raise ValueError("JWT_SECRET environment variable is not set")
    return secret


def _get_jwt_expiry_minutes() -> int:
    """Get JWT_EXPIRY_MINUTES from environment (default: 60)."""
    expiry = os.getenv('JWT_EXPIRY_MINUTES', '60')
    try:
        return int(expiry)
    except ValueError:
        return 60


def create_access_token(
    user_id: UUID,
    tenant_id: UUID,
    role: str,
    username: str
) -> str:
    """Create a JWT access token for an authenticated user.

    Args:
        user_id: User's UUID
        tenant_id: Tenant's UUID
        role: User's role (ADMIN, MANAGER, PHARMACIST, CASHIER)
        username: User's login name

    Returns:
        str: Signed JWT token

    Raises:
        ValueError: If JWT_SECRET is not set
    """
    secret = _get_jwt_secret()
    now = datetime.now(timezone.utc)
    expiration = now + timedelta(minutes=_get_jwt_expiry_minutes())

    payload = {
        'sub': str(user_id),
        'tenant_id': str(tenant_id),
        'role': role,
        'username': username,
        'iat': int(now.timestamp()),
        'exp': int(expiration.timestamp())
    }

    return jwt.encode(payload, secret, algorithm='HS256')


def decode_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT token.

    Raises:
        jwt.ExpiredSignatureError: If token has expired
        jwt.InvalidTokenError: If token is invalid or tampered
        ValueError: If JWT_SECRET is not set
    """
    secret = _get_jwt_secret()

    try:
        return jwt.decode(token, secret, algorithms=['HS256'])
    except jwt.ExpiredSignatureError:
        raise jwt.ExpiredSignatureError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise jwt.InvalidTokenError(f"Invalid token: {str(e)}")


def _get_refresh_secret() -> str:
    """Secret for refresh tokens: JWT_REFRESH_SECRET, else JWT_SECRET."""
    return os.getenv('JWT_REFRESH_SECRET') or _get_jwt_secret()


def _get_refresh_expiry_days() -> int:
    """Get REFRESH_TOKEN_EXPIRE_DAYS from environment (default: 7)."""
    expiry = os.getenv('REFRESH_TOKEN_EXPIRE_DAYS', '7')
    try:
        return int(expiry)
    except ValueError:
        return 7


def create_refresh_token(user_id: UUID) -> Tuple[str, datetime]:
    """Create a refresh token for a user.

    Refresh tokens carry only the subject, a unique jti and type=refresh.
    They cannot be used as access tokens (see get_current_user).

    Returns:
        (token, expires_at)
    """
    now = datetime.now(timezone.utc)
    expiration = now + timedelta(days=_get_refresh_expiry_days())

    payload = {
        'sub': str(user_id),
        'type': REFRESH_TOKEN_TYPE,
        'jti': uuid4().hex,
        'iat': int(now.timestamp()),
        'exp': int(expiration.timestamp())
    }

    return jwt.encode(payload, _get_refresh_secret(), algorithm='HS256'), expiration


def decode_refresh_token(token: str) -> Dict[str, Any]:
    """Decode and validate a refresh token.

    Raises:
        jwt.ExpiredSignatureError: If token has expired
        jwt.InvalidTokenError: If token is invalid, tampered or not a refresh token
    """
    payload = jwt.decode(token, _get_refresh_secret(), algorithms=['HS256'])
    if payload.get('type') != REFRESH_TOKEN_TYPE:
        raise jwt.InvalidTokenError("Not a refresh token")
    return payload
