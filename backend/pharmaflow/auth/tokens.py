"""Server-side tracking of refresh tokens and password reset tokens

Refresh tokens are JWTs (see jwt.create_refresh_token); password reset
tokens are opaque random strings. Either way only the SHA-256 digest is
stored, so a leaked table row cannot be replayed.

Functions here add and update rows but never commit; the calling endpoint
owns the transaction.
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..config import settings
from ..models.auth_token import PasswordResetToken, RefreshToken
from ..models.user import User
from .jwt import create_refresh_token, decode_refresh_token


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps (SQLite) as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_refresh_token(db: Session, user: User) -> str:
    """Create a refresh token for the user and record it."""
    token, expires_at = create_refresh_token(user.id)
    db.add(RefreshToken(user_id=user.id, token_hash=hash_token(token), expires_at=expires_at))
    return token


def find_active_refresh_token(db: Session, token: str) -> Optional[RefreshToken]:
    """Look up a refresh token that is validly signed, recorded and not revoked.

    Raises:
        jwt.InvalidTokenError: If the token is malformed, expired or not a refresh token
    """
    payload = decode_refresh_token(token)

    stored = db.execute(
        select(RefreshToken).where(
            RefreshToken.token_hash == hash_token(token),
            RefreshToken.revoked.is_(False),
        )
    ).scalar_one_or_none()

    if stored is None or str(stored.user_id) != payload.get("sub"):
        return None
    if as_utc(stored.expires_at) <= datetime.now(timezone.utc):
        return None
    return stored


def revoke_user_refresh_tokens(db: Session, user_id: UUID) -> int:
    """Revoke every outstanding refresh token of a user. Returns the count."""
    result = db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
        .values(revoked=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def issue_password_reset_token(db: Session, user: User) -> str:
    """Create a single-use reset token valid for PASSWORD_RESET_TOKEN_MINUTES."""
    token = secrets.token_urlsafe(32)
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=settings.PASSWORD_RESET_TOKEN_MINUTES)
    db.add(PasswordResetToken(user_id=user.id, token_hash=hash_token(token), expires_at=expires_at))
    return token


def find_valid_reset_token(db: Session, token: str) -> Optional[PasswordResetToken]:
    stored = db.execute(
        select(PasswordResetToken).where(
            PasswordResetToken.token_hash == hash_token(token),
            PasswordResetToken.used.is_(False),
        )
    ).scalar_one_or_none()

    if stored is None or as_utc(stored.expires_at) <= datetime.now(timezone.utc):
        return None
    return stored
