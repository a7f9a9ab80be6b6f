"""Refresh token and password reset token models

Only a SHA-256 digest of each token is stored. The raw token is handed to
the client once and never persisted.
"""

import uuid

from sqlalchemy import Column, Text, Boolean, DateTime, Uuid, ForeignKey, Index, func
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class RefreshToken(Base):
    """Long-lived token that can be exchanged for new access tokens.

    Revoked on logout and on password reset.
    """
    __tablename__ = "refresh_token"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    token_hash = Column(Text, nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    user = relationship("User")

    __table_args__ = (
        Index("ix_refresh_token_user_id", "user_id"),
    )


class PasswordResetToken(Base):
    """Single-use password reset token."""
    __tablename__ = "password_reset_token"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    token_hash = Column(Text, nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    user = relationship("User")

    __table_args__ = (
        Index("ix_password_reset_token_user_id", "user_id"),
    )
