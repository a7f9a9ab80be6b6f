"""Global FastAPI dependencies for tenant isolation.

This module provides:
- get_tenant_id: Tenant of the authenticated user (from the JWT-backed user)
- TenantQuery: helpers for tenant-scoped lookups

Every multi-tenant endpoint filters by the tenant returned here, never by a
tenant supplied in the request body or query string.
"""

from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from .auth.dependencies import get_current_user
from .models.user import User


def get_tenant_id(current_user: User = Depends(get_current_user)) -> UUID:
    """Tenant ID for the current request.

    Raises:
        HTTPException 500: If the user has no tenant (database integrity issue)
    """
    if not current_user.tenant_id:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="User has no tenant association",
        )

    return current_user.tenant_id


class TenantQuery:
    """Utility class for tenant-scoped queries.

    Example:
        product = TenantQuery.get_or_404(db, Product, product_id, tenant_id)
    """

    @staticmethod
    def scoped_select(model, tenant_id: UUID):
        """select(model) filtered by tenant_id.

        Raises:
            AttributeError: If model doesn't have a tenant_id column
        """
        if not hasattr(model, 'tenant_id'):
            raise AttributeError(f"Model {model.__name__} does not have tenant_id column")

        return select(model).where(model.tenant_id == tenant_id)

    @staticmethod
    def get_or_404(session: Session, model, record_id: UUID, tenant_id: UUID, label: str = None):
        """Get a record by ID within the tenant, or raise 404.

        Records of other tenants are reported exactly like missing records,
        so callers cannot discover IDs of other tenants.

        Raises:
            HTTPException 404: If record not found or belongs to another tenant
        """
        record = session.execute(
            TenantQuery.scoped_select(model, tenant_id).where(model.id == record_id)
        ).scalar_one_or_none()

        if not record:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{label or model.__name__} with ID '{record_id}' not found",
            )

        return record
