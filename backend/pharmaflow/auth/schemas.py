"""Pydantic schemas for authentication endpoints"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    """Request schema for staff login.

    Attributes:
        username_or_email: Username or email address (case-insensitive)
        password: Plain text password, verified against the stored hash
        tenant_code: Pharmacy code; needed when the same username exists in
            several tenants
    """
    username_or_email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)
    tenant_code: Optional[str] = Field(None, min_length=2, max_length=50)


class UserResponse(BaseModel):
    """User information response (excludes password_hash)."""
    id: UUID
    tenant_id: UUID
    username: str
    email: str
    full_name: str
    role: str
    is_active: bool
    last_login_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    """Response schema for successful login.

    Attributes:
        access_token: JWT access token
        token_type: Token type (always "bearer")
        refresh_token: Token for POST /auth/refresh and POST /auth/logout
        expires_in: Token expiry in seconds
        user: The authenticated user
    """
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = 3600
    user: UserResponse


class MeResponse(BaseModel):
    """Response schema for GET /auth/me."""
    user: UserResponse


class RegisterRequest(BaseModel):
    """Request schema for creating a staff account (POST /auth/register).

    Only ADMIN users can register staff. The account is created in the
    admin's own tenant.
    """
    username: str = Field(
        ...,
        min_length=3,
        max_length=50,
        pattern=r"^[a-zA-Z0-9_]+$",
        description="Letters, digits and underscores only (unique per tenant, case-insensitive)",
        examples=["john_doe"]
    )
    email: EmailStr = Field(..., description="Email address (unique per tenant)", examples=["john.doe@citypharmacy.com"])
    password: str = Field(..., min_length=8, description="At least 8 chars with upper, lower and digit")
    full_name: str = Field(..., min_length=1, max_length=100, examples=["John Doe"])
    role: str = Field(
        "CASHIER",
        pattern="^(ADMIN|MANAGER|PHARMACIST|CASHIER)$",
        description="Staff role (defaults to CASHIER)"
    )
    phone: Optional[str] = Field(
        None,
        pattern=r"^\+?[1-9]\d{1,14}$",
        description="Phone number in international format",
        examples=["+1234567890"]
    )


class RegisterResponse(BaseModel):
    message: str = "User registered successfully"
    user: UserResponse


class RefreshTokenRequest(BaseModel):
    """Body of POST /auth/refresh and POST /auth/logout."""
    refresh_token: str = Field(..., min_length=1)


class RefreshTokenResponse(BaseModel):
    """Response schema for POST /auth/refresh.

    The refresh token itself is not rotated.
    """
    access_token: str
    token_type: str = "bearer"
    expires_in: int = 3600


class PasswordResetRequest(BaseModel):
    """Request a password reset token for an email address.

    The email is only used as a lookup key, so it is not format-validated.
    """
    email: str = Field(..., min_length=3, max_length=255)
    tenant_code: Optional[str] = Field(None, min_length=2, max_length=50)


class PasswordResetConfirm(BaseModel):
    """Complete a password reset with the emailed token."""
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)


class MessageResponse(BaseModel):
    message: str


class VerifyResponse(BaseModel):
    """Response schema for GET /auth/verify."""
    valid: bool = True
    user_id: UUID
