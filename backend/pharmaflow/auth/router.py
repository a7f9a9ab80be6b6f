"""Authentication endpoints for the PharmaFlow API

Provides:
- Staff login with account lockout, issuing access and refresh tokens
- Access token refresh and logout (refresh token revocation)
- Staff registration (ADMIN only, within the admin's tenant)
- Password reset request and completion
- Current-user and token verification endpoints
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional
from uuid import UUID

import jwt
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..audit.service import AuditAction, get_client_ip, log_audit_event
from ..config import settings
from ..database import get_db
from ..dependencies import get_tenant_id
from ..models.tenant import Tenant
from ..models.user import User
from ..observability.metrics import login_attempts_total, token_refreshes_total
from .dependencies import CurrentUser, require_role
from .jwt import create_access_token, _get_jwt_expiry_minutes
from .password import hash_password, validate_password_strength, verify_password
from .roles import UserRole
from .schemas import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    RefreshTokenRequest,
    RefreshTokenResponse,
    RegisterRequest,
    RegisterResponse,
    UserResponse,
    VerifyResponse,
)
from .tokens import (
    as_utc,
    find_active_refresh_token,
    find_valid_reset_token,
    issue_password_reset_token,
    issue_refresh_token,
    revoke_user_refresh_tokens,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"


def _access_token_for(user: User) -> str:
    return create_access_token(
        user_id=user.id,
        tenant_id=user.tenant_id,
        role=user.role,
        username=user.username
    )


def _invalid_credentials() -> HTTPException:
    # Same message for unknown user and wrong password
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials"
    )


def _record_failed_login(db: Session, user: User, ip_address: Optional[str]) -> None:
    """Count a failed attempt and lock the account once the limit is reached."""
    user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
    locked = user.failed_login_attempts >= settings.ACCOUNT_LOCKOUT_ATTEMPTS
    if locked:
        user.locked_until = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCOUNT_LOCKOUT_MINUTES)
    db.commit()

    log_audit_event(
        db=db,
        tenant_id=user.tenant_id,
        action="LOGIN_FAILED",
        entity_type="User",
        entity_id=user.id,
        user_id=user.id,
        metadata={
            "reason": "invalid_password",
            "failed_attempts": user.failed_login_attempts,
        },
        ip_address=ip_address,
    )

    if locked:
        logger.warning(
            f"Account locked due to {settings.ACCOUNT_LOCKOUT_ATTEMPTS} failed attempts: User ID {user.id}",
            extra={"tenant_id": str(user.tenant_id), "user_id": str(user.id)},
        )
        log_audit_event(
            db=db,
            tenant_id=user.tenant_id,
            action="ACCOUNT_LOCKED",
            entity_type="User",
            entity_id=user.id,
            user_id=user.id,
            metadata={"locked_until": user.locked_until.isoformat()},
            ip_address=ip_address,
        )


@router.post("/login", response_model=LoginResponse)
def login(
    credentials: LoginRequest,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
):
    """Authenticate a staff member and return an access token and a refresh token.

    The user is looked up by username or email (case-insensitive), within
    the tenant named by tenant_code when one is given.

    Security measures:
    - Inactive users and inactive tenants are rejected
    - ACCOUNT_LOCKOUT_ATTEMPTS consecutive failures (default 5) lock the
      account for ACCOUNT_LOCKOUT_MINUTES (default 30)
    - Failed and successful logins are written to the audit log
    - A successful login resets the failure counter and stamps last_login_at

    Raises:
        HTTPException: 401 for bad credentials, locked accounts, or
            inactive users/tenants
    """
    ip_address = get_client_ip(request)
    identifier = credentials.username_or_email.strip().lower()

    stmt = select(User).where(
        or_(func.lower(User.username) == identifier, func.lower(User.email) == identifier)
    )

    if credentials.tenant_code:
        tenant = db.execute(
            select(Tenant).where(Tenant.code == credentials.tenant_code.upper())
        ).scalar_one_or_none()
        if not tenant or not tenant.is_active:
            login_attempts_total.labels(status="failed").inc()
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid tenant"
            )
        stmt = stmt.where(User.tenant_id == tenant.id)

    user = db.execute(stmt.order_by(User.created_at)).scalars().first()

    if not user or not user.is_active:
        if user:
            logger.warning(f"Inactive user attempted login: {identifier}")
        login_attempts_total.labels(status="failed").inc()
        raise _invalid_credentials()

    now = datetime.now(timezone.utc)
    locked_until = as_utc(user.locked_until)
    if locked_until and now < locked_until:
        logger.warning(
            f"Locked account attempted login: {identifier}",
            extra={"tenant_id": str(user.tenant_id), "user_id": str(user.id)},
        )
        login_attempts_total.labels(status="locked").inc()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Account is locked until {locked_until.isoformat()}"
        )

    if not user.tenant.is_active:
        logger.warning(f"User from inactive tenant attempted login: {identifier}")
        login_attempts_total.labels(status="failed").inc()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Tenant is inactive"
        )

    if not verify_password(credentials.password, user.password_hash):
        _record_failed_login(db, user, ip_address)
        login_attempts_total.labels(status="failed").inc()
        raise _invalid_credentials()

    user.failed_login_attempts = 0
    user.locked_until = None
    user.last_login_at = now
    refresh_token = issue_refresh_token(db, user)
    db.commit()
    db.refresh(user)

    log_audit_event(
        db=db,
        tenant_id=user.tenant_id,
        action="LOGIN_SUCCESS",
        entity_type="User",
        entity_id=user.id,
        user_id=user.id,
        ip_address=ip_address,
    )
    login_attempts_total.labels(status="success").inc()

    return LoginResponse(
        access_token=_access_token_for(user),
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=_get_jwt_expiry_minutes() * 60,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=MeResponse)
def get_me(current_user: CurrentUser):
    """Get the currently authenticated user."""
    return MeResponse(user=UserResponse.model_validate(current_user))


@router.post("/refresh", response_model=RefreshTokenResponse)
def refresh_access_token(
    body: RefreshTokenRequest,
    db: Annotated[Session, Depends(get_db)],
):
    """Exchange a refresh token for a new access token.

    The refresh token must be validly signed, recorded, not revoked and not
    expired, and its user and tenant must still be active. Every failure
    gets the same 401 so callers cannot tell the cases apart.
    """
    try:
        stored = find_active_refresh_token(db, body.refresh_token)
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected refresh token: {e}")
        stored = None

    user = stored.user if stored else None
    if not user or not user.is_active or not user.tenant.is_active:
        token_refreshes_total.labels(status="failed").inc()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_REFRESH_TOKEN,
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(
        f"Access token refreshed for user: {user.id}",
        extra={"tenant_id": str(user.tenant_id), "user_id": str(user.id)},
    )
    token_refreshes_total.labels(status="success").inc()

    return RefreshTokenResponse(
        access_token=_access_token_for(user),
        expires_in=_get_jwt_expiry_minutes() * 60,
    )


@router.post("/logout", response_model=MessageResponse)
def logout(
    body: RefreshTokenRequest,
    request: Request,
    current_user: CurrentUser,
    db: Annotated[Session, Depends(get_db)],
):
    """Revoke the caller's refresh token.

    An unknown, expired or foreign refresh token is not an error: the
    response is the same and nothing is revoked.
    """
    try:
        stored = find_active_refresh_token(db, body.refresh_token)
    except jwt.InvalidTokenError as e:
        logger.warning(f"Logout with invalid refresh token: {e}")
        stored = None

    if stored and stored.user_id == current_user.id:
        stored.revoked = True
        db.commit()

        log_audit_event(
            db=db,
            tenant_id=current_user.tenant_id,
            action="LOGOUT",
            entity_type="User",
            entity_id=current_user.id,
            user_id=current_user.id,
            ip_address=get_client_ip(request),
        )

    return MessageResponse(message="Logout successful")


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    data: RegisterRequest,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[User, Depends(require_role(UserRole.ADMIN))],
    tenant_id: Annotated[UUID, Depends(get_tenant_id)],
):
    """Create a staff account in the admin's tenant.

    Raises:
        400: Password does not meet strength requirements
        409: Username or email already exists in this tenant
    """
    valid, message = validate_password_strength(data.password)
    if not valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)

    username = data.username.lower()
    email = data.email.lower()

    existing = db.execute(
        select(User).where(
            User.tenant_id == tenant_id,
            or_(func.lower(User.username) == username, func.lower(User.email) == email),
        )
    ).scalars().first()
    if existing:
        field = "Username" if existing.username == username else "Email"
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{field} already exists in this tenant"
        )

    user = User(
        tenant_id=tenant_id,
        username=username,
        email=email,
        full_name=data.full_name,
        role=data.role,
        phone=data.phone,
        password_hash=hash_password(data.password),
    )

    try:
        db.add(user)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User creation failed due to constraint violation"
        )
    db.refresh(user)

    logger.info(
        f"User registered: {user.username} (ID: {user.id})",
        extra={"tenant_id": str(tenant_id), "user_id": str(current_user.id)},
    )
    log_audit_event(
        db=db,
        tenant_id=tenant_id,
        action=AuditAction.CREATE,
        entity_type="User",
        entity_id=user.id,
        user_id=current_user.id,
        new_values=user.to_dict(),
        ip_address=get_client_ip(request),
    )

    return RegisterResponse(user=UserResponse.model_validate(user))


@router.post("/password-reset-request", response_model=MessageResponse)
def request_password_reset(
    body: PasswordResetRequest,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
):
    """Issue a password reset token for an active account.

    The response never reveals whether the email is known. When the same
    email exists in several tenants, tenant_code selects the account;
    without it the oldest matching account is used.
    """
    stmt = select(User).where(func.lower(User.email) == body.email.lower(), User.is_active.is_(True))
    if body.tenant_code:
        stmt = stmt.join(Tenant, User.tenant_id == Tenant.id).where(Tenant.code == body.tenant_code.upper())

    user = db.execute(stmt.order_by(User.created_at)).scalars().first()

    if user:
        issue_password_reset_token(db, user)
        db.commit()
        # TODO: e-mail the reset link once an outbound mail transport is configured
        logger.info(
            f"Password reset token generated for user: {user.id}",
            extra={"tenant_id": str(user.tenant_id), "user_id": str(user.id)},
        )
        log_audit_event(
            db=db,
            tenant_id=user.tenant_id,
            action="PASSWORD_RESET_REQUESTED",
            entity_type="User",
            entity_id=user.id,
            user_id=user.id,
            ip_address=get_client_ip(request),
        )
    else:
        logger.warning("Password reset requested for unknown or inactive email")

    return MessageResponse(
        message="If your email exists in our system, you will receive a password reset link"
    )


@router.post("/password-reset", response_model=MessageResponse)
def reset_password(
    body: PasswordResetConfirm,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
):
    """Set a new password using a reset token.

    The token is consumed, the lockout state is cleared and every refresh
    token of the user is revoked.

    Raises:
        400: Token invalid, used or expired, or the new password is too weak
    """
    valid, message = validate_password_strength(body.new_password)
    if not valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)

    stored = find_valid_reset_token(db, body.token)
    if not stored:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token"
        )

    user = stored.user
    user.password_hash = hash_password(body.new_password)
    user.failed_login_attempts = 0
    user.locked_until = None
    stored.used = True
    revoked = revoke_user_refresh_tokens(db, user.id)
    db.commit()

    logger.info(
        f"Password reset for user: {user.id}",
        extra={"tenant_id": str(user.tenant_id), "user_id": str(user.id), "revoked_refresh_tokens": revoked},
    )
    log_audit_event(
        db=db,
        tenant_id=user.tenant_id,
        action="PASSWORD_RESET",
        entity_type="User",
        entity_id=user.id,
        user_id=user.id,
        metadata={"revoked_refresh_tokens": revoked},
        ip_address=get_client_ip(request),
    )

    return MessageResponse(message="Password reset successful. Please login with your new password")


@router.get("/verify", response_model=VerifyResponse)
def verify_token(current_user: CurrentUser):
    """Check that the Bearer access token is valid."""
    return VerifyResponse(user_id=current_user.id)
