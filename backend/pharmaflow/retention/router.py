"""FastAPI router for audit retention administration.

Provides admin APIs for:
- Viewing the effective retention settings
- Viewing active/archived/total audit entry counts
- Manually archiving audit entries
- Purging archived audit entries (irreversible)

All endpoints require ADMIN role. Manual runs are synchronous: the response
carries the number of affected entries, and store errors surface as 500.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..audit.service import get_client_ip, log_audit_event
from ..auth.dependencies import AdminUser
from ..config import get_retention_config
from ..database import get_db
from .schemas import (
    ManualArchivalRequest,
    PurgeRequest,
    RetentionConfig,
    RetentionRunResponse,
    RetentionStatistics,
)
from .service import build_sweeper

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/retention", tags=["retention"])


@router.get("/settings", response_model=RetentionConfig)
def get_retention_settings(
    current_user: AdminUser,
    config: RetentionConfig = Depends(get_retention_config),
) -> RetentionConfig:
    """Effective retention windows (read from the environment at startup)."""
    return config


@router.get("/statistics", response_model=RetentionStatistics)
def get_retention_statistics(
    current_user: AdminUser,
    db: Session = Depends(get_db),
    config: RetentionConfig = Depends(get_retention_config),
) -> RetentionStatistics:
    """Active, archived and total audit entry counts across all tenants."""
    return build_sweeper(db, config).get_statistics()


@router.post("/archive", response_model=RetentionRunResponse)
def trigger_archival(
    body: ManualArchivalRequest,
    request: Request,
    current_user: AdminUser,
    db: Session = Depends(get_db),
    config: RetentionConfig = Depends(get_retention_config),
) -> RetentionRunResponse:
    """Archive audit entries older than years_override (or the configured window).

    Audit log entry created with action RETENTION_ARCHIVE_TRIGGERED.

    Raises:
        HTTPException 500: Archival failed; nothing was archived
    """
    years = body.years_override or config.retention_years

    try:
        count = build_sweeper(db, config).run_manual_archival(body.years_override)
    except Exception as e:
        logger.error(
            f"Manual retention execution failed: {e}",
            exc_info=True,
            extra={"user_id": str(current_user.id), "retention_years": years},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Archival failed: {e}",
        )

    log_audit_event(
        db=db,
        tenant_id=current_user.tenant_id,
        action="RETENTION_ARCHIVE_TRIGGERED",
        entity_type="AuditLog",
        entity_id="*",
        user_id=current_user.id,
        metadata={"archived_count": count, "retention_years": years},
        ip_address=get_client_ip(request),
    )

    return RetentionRunResponse(operation="archive", affected_count=count, years=years)


@router.post("/purge", response_model=RetentionRunResponse)
def trigger_purge(
    body: PurgeRequest,
    request: Request,
    current_user: AdminUser,
    db: Session = Depends(get_db),
    config: RetentionConfig = Depends(get_retention_config),
) -> RetentionRunResponse:
    """Permanently delete audit entries archived for at least grace_years.

    Irreversible. The body must contain confirm=true.

    Audit log entry created with action RETENTION_PURGE_TRIGGERED.

    Raises:
        HTTPException 400: confirm is not true
        HTTPException 500: Purge failed; nothing was deleted
    """
    if not body.confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Purging archived audit logs is irreversible; set confirm=true to proceed",
        )

    grace_years = body.grace_years if body.grace_years is not None else config.archived_grace_years

    try:
        count = build_sweeper(db, config).purge_archived_records(grace_years)
    except Exception as e:
        logger.error(
            f"Audit log purge failed: {e}",
            exc_info=True,
            extra={"user_id": str(current_user.id), "grace_years": grace_years},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Purge failed: {e}",
        )

    log_audit_event(
        db=db,
        tenant_id=current_user.tenant_id,
        action="RETENTION_PURGE_TRIGGERED",
        entity_type="AuditLog",
        entity_id="*",
        user_id=current_user.id,
        metadata={"purged_count": count, "grace_years": grace_years},
        ip_address=get_client_ip(request),
    )

    return RetentionRunResponse(operation="purge", affected_count=count, years=grace_years)
