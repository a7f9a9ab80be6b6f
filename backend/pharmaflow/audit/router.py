"""Audit log query endpoints (ADMIN and MANAGER).

All endpoints are read-only and scoped to the caller's tenant. By default
only active entries are returned; pass include_archived=true to see entries
the retention sweeper has archived.

MANAGER users see sensitive snapshot fields masked.
"""

import math
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..auth.dependencies import require_role
from ..auth.roles import UserRole
from ..database import get_db
from ..dependencies import get_tenant_id
from ..models.audit_log import AuditLog
from ..models.user import User
from .sanitizer import mask_sensitive_fields
from .schemas import (
    AuditLogListResponse,
    AuditLogResponse,
    AuditStatisticsResponse,
    PaginationMeta,
)
from .service import AuditLogFilters, AuditQueryService


router = APIRouter(prefix="/audit", tags=["Audit Logs"])

MAX_PAGE_SIZE = 200


def _to_response(entry: AuditLog, viewer: User) -> AuditLogResponse:
    response = AuditLogResponse.model_validate(entry)
    if viewer.role != UserRole.ADMIN.value:
        response.old_values = mask_sensitive_fields(response.old_values)
        response.new_values = mask_sensitive_fields(response.new_values)
    return response


@router.get("", response_model=AuditLogListResponse, summary="Query audit logs")
def query_audit_logs(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.MANAGER)),
    tenant_id: UUID = Depends(get_tenant_id),
    entity_type: Optional[str] = Query(None, description="Filter by entity type (e.g., Product)"),
    entity_id: Optional[str] = Query(None, description="Filter by entity ID"),
    user_id: Optional[UUID] = Query(None, description="Filter by acting user"),
    action: Optional[str] = Query(None, description="Filter by action (e.g., CREATE, LOGIN_FAILED)"),
    ip_address: Optional[str] = Query(None, description="Filter by client IP"),
    date_from: Optional[datetime] = Query(None, description="Minimum created_at (ISO 8601)"),
    date_to: Optional[datetime] = Query(None, description="Maximum created_at (ISO 8601)"),
    include_archived: bool = Query(False, description="Include archived entries"),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE, description=f"Entries per page (max {MAX_PAGE_SIZE})"),
) -> AuditLogListResponse:
    """Query audit logs with filtering and pagination, newest first.

    Example:
        GET /audit?entity_type=Product&action=UPDATE&page=1&limit=50
    """
    filters = AuditLogFilters(
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        action=action,
        ip_address=ip_address,
        date_from=date_from,
        date_to=date_to,
        include_archived=include_archived,
    )
    entries, total = AuditQueryService(db, tenant_id).find_all(filters, page, limit)

    return AuditLogListResponse(
        data=[_to_response(entry, current_user) for entry in entries],
        meta=PaginationMeta(
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit),
        ),
    )


@router.get("/statistics", response_model=AuditStatisticsResponse, summary="Audit activity summary")
def get_audit_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.MANAGER)),
    tenant_id: UUID = Depends(get_tenant_id),
    days: int = Query(30, ge=1, le=3650, description="Look-back period in days"),
) -> AuditStatisticsResponse:
    stats = AuditQueryService(db, tenant_id).statistics(days)
    stats["recent_activity"] = [_to_response(e, current_user) for e in stats["recent_activity"]]
    return AuditStatisticsResponse(**stats)


@router.get(
    "/entity/{entity_type}/{entity_id}",
    response_model=List[AuditLogResponse],
    summary="Audit trail of one entity",
)
def get_entity_audit_trail(
    entity_type: str,
    entity_id: str,
    include_archived: bool = Query(False, description="Include archived entries"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.MANAGER)),
    tenant_id: UUID = Depends(get_tenant_id),
) -> List[AuditLogResponse]:
    """All changes to one entity, oldest first."""
    trail = AuditQueryService(db, tenant_id).entity_trail(
        entity_type, entity_id, include_archived
    )
    return [_to_response(entry, current_user) for entry in trail]


@router.get("/{audit_id}", response_model=AuditLogResponse, summary="Get one audit entry")
def get_audit_log(
    audit_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.MANAGER)),
    tenant_id: UUID = Depends(get_tenant_id),
) -> AuditLogResponse:
    """Entry by ID. Entries of other tenants are reported as not found."""
    entry = AuditQueryService(db, tenant_id).find_one(audit_id)
    if not entry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Audit log with ID '{audit_id}' not found",
        )
    return _to_response(entry, current_user)
