"""FastAPI dependencies for authentication and authorization.

Usage:
    @router.get("/protected")
    def protected_endpoint(user: CurrentUser):
        return {"message": f"Hello {user.full_name}"}

    @router.post("/retention/purge")
    def purge(user: User = Depends(require_role(UserRole.ADMIN))):
        ...
"""

from typing import Callable, Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from .jwt import REFRESH_TOKEN_TYPE, decode_token
from .roles import UserRole, has_permission, get_allowed_roles


security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Validate the Bearer token and return the authenticated user.

    The token's tenant_id must match the user's tenant, and the user must
    still be active.

    Raises:
        HTTPException 401: Token missing, invalid, expired, or user not found
        HTTPException 403: User account is inactive
    """
    try:
        payload = decode_token(credentials.credentials)

        if payload.get("type") == REFRESH_TOKEN_TYPE:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: refresh tokens cannot be used for API access",
                headers={"WWW-Authenticate": "Bearer"},
            )

        user_id_str = payload.get("sub")
        if not user_id_str:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: missing user ID claim",
                headers={"WWW-Authenticate": "Bearer"},
            )

        user_id = UUID(user_id_str)
        tenant_id = UUID(payload.get("tenant_id", ""))

    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token claims: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.execute(
        select(User).where(User.id == user_id, User.tenant_id == tenant_id)
    ).scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return user


def require_role(required_role: UserRole) -> Callable:
    """Create a dependency that enforces a minimum role.

    Higher roles inherit lower roles' permissions
    (ADMIN > MANAGER > PHARMACIST > CASHIER).

    Raises:
        HTTPException 403: If user's role is insufficient
    """

    def role_dependency(current_user: User = Depends(get_current_user)) -> User:
        try:
            user_role = UserRole(current_user.role)
        except ValueError:
            # Guarded by ck_user_role; only reachable with a corrupt row
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Invalid user role: {current_user.role}",
            )

        if not has_permission(user_role, required_role):
            allowed = ", ".join(sorted(r.value for r in get_allowed_roles(required_role)))
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Allowed roles: {allowed}",
            )

        return current_user

    return role_dependency


def get_current_admin(current_user: User = Depends(require_role(UserRole.ADMIN))) -> User:
    """Convenience dependency for ADMIN-only endpoints."""
    return current_user


CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(get_current_admin)]
