"""Audit logging and audit queries.

Business operations record what they changed through log_audit_event.
Entries are immutable once written; only the retention sweeper archives or
deletes them.

Common actions:
- CREATE, UPDATE, DELETE (catalog and other entities)
- LOGIN_SUCCESS, LOGIN_FAILED, ACCOUNT_LOCKED
- RETENTION_ARCHIVE_TRIGGERED, RETENTION_PURGE_TRIGGERED
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import UUID

from fastapi import Request
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.audit_log import AuditLog
from .sanitizer import sanitize_entity

logger = logging.getLogger(__name__)


class AuditAction:
    """Action names used for entity changes."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    VIEW = "VIEW"


def get_client_ip(request: Request) -> Optional[str]:
    """Client IP, honouring the first hop of X-Forwarded-For."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return None


def log_audit_event(
    db: Session,
    tenant_id: UUID,
    action: str,
    entity_type: str,
    entity_id: Any,
    user_id: Optional[UUID] = None,
    old_values: Optional[Mapping[str, Any]] = None,
    new_values: Optional[Mapping[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> Optional[AuditLog]:
    """Write an audit log entry and commit it.

    Call this after the business change has been committed. Auditing must
    never break the operation it records, so a failed write is logged,
    rolled back and reported as None.

    Args:
        db: Database session
        tenant_id: Tenant the event belongs to
        action: Event action (e.g., "CREATE", "LOGIN_FAILED")
        entity_type: Type of entity affected (e.g., "Product", "User")
        entity_id: ID of the affected entity (stored as text)
        user_id: Acting user (None for anonymous/system events)
        old_values: Entity snapshot before the change; sanitized
        new_values: Entity snapshot after the change; sanitized
        metadata: Additional context as JSON
        ip_address: Client IP address

    Returns:
        The created entry, or None if it could not be written

    Example:
        log_audit_event(
            db=db,
            tenant_id=current_user.tenant_id,
            action=AuditAction.UPDATE,
            entity_type="Product",
            entity_id=product.id,
            user_id=current_user.id,
            old_values=before,
            new_values=product.to_dict(),
        )
    """
    max_json_size = settings.AUDIT_MAX_JSON_SIZE

    entry = AuditLog(
        tenant_id=tenant_id,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        old_values=sanitize_entity(old_values, max_json_size),
        new_values=sanitize_entity(new_values, max_json_size),
        metadata_json=metadata,
        ip_address=ip_address,
    )

    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Failed to create audit log: {e}",
            exc_info=True,
            extra={
                "tenant_id": str(tenant_id),
                "action": action,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
            },
        )
        return None

    return entry


# ============================================================================
# Queries
# ============================================================================

@dataclass
class AuditLogFilters:
    """Optional filters for audit log queries. Unset fields are ignored."""
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    user_id: Optional[UUID] = None
    action: Optional[str] = None
    ip_address: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    include_archived: bool = False

    def criteria(self) -> list:
        criteria = []
        if self.entity_type:
            criteria.append(AuditLog.entity_type == self.entity_type)
        if self.entity_id:
            criteria.append(AuditLog.entity_id == self.entity_id)
        if self.user_id:
            criteria.append(AuditLog.user_id == self.user_id)
        if self.action:
            criteria.append(AuditLog.action == self.action)
        if self.ip_address:
            criteria.append(AuditLog.ip_address == self.ip_address)
        if self.date_from:
            criteria.append(AuditLog.created_at >= self.date_from)
        if self.date_to:
            criteria.append(AuditLog.created_at <= self.date_to)
        if not self.include_archived:
            criteria.append(AuditLog.archived_at.is_(None))
        return criteria


class AuditQueryService:
    """Read-only, tenant-scoped queries over the audit log."""

    def __init__(self, db: Session, tenant_id: UUID):
        self.db = db
        self.tenant_id = tenant_id

    def find_all(
        self,
        filters: AuditLogFilters,
        page: int = 1,
        limit: int = 50,
    ) -> Tuple[List[AuditLog], int]:
        """Page through entries, newest first. Returns (entries, total)."""
        criteria = [AuditLog.tenant_id == self.tenant_id, *filters.criteria()]

        total = self.db.execute(
            select(func.count()).select_from(AuditLog).where(*criteria)
        ).scalar_one()

        entries = self.db.execute(
            select(AuditLog)
            .where(*criteria)
            .order_by(AuditLog.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        return list(entries), int(total)

    def find_one(self, audit_id: UUID) -> Optional[AuditLog]:
        """Entry by id within the tenant, archived or not."""
        return self.db.execute(
            select(AuditLog).where(
                AuditLog.id == audit_id,
                AuditLog.tenant_id == self.tenant_id,
            )
        ).scalar_one_or_none()

    def entity_trail(
        self,
        entity_type: str,
        entity_id: str,
        include_archived: bool = False,
    ) -> List[AuditLog]:
        """Full history of one entity, oldest first."""
        filters = AuditLogFilters(
            entity_type=entity_type,
            entity_id=entity_id,
            include_archived=include_archived,
        )
        return list(
            self.db.execute(
                select(AuditLog)
                .where(AuditLog.tenant_id == self.tenant_id, *filters.criteria())
                .order_by(AuditLog.created_at.asc())
            ).scalars().all()
        )

    def statistics(self, days: int = 30) -> Dict[str, Any]:
        """Activity summary for the last `days` days (active entries only)."""
        until = datetime.now(timezone.utc)
        since = until - timedelta(days=days)
        criteria = [
            AuditLog.tenant_id == self.tenant_id,
            AuditLog.created_at >= since,
            AuditLog.archived_at.is_(None),
        ]

        total = self.db.execute(
            select(func.count()).select_from(AuditLog).where(*criteria)
        ).scalar_one()

        by_action = self.db.execute(
            select(AuditLog.action, func.count())
            .where(*criteria)
            .group_by(AuditLog.action)
        ).all()

        count_col = func.count().label("count")
        by_entity = self.db.execute(
            select(AuditLog.entity_type, count_col)
            .where(*criteria)
            .group_by(AuditLog.entity_type)
            .order_by(count_col.desc())
            .limit(10)
        ).all()

        recent = self.db.execute(
            select(AuditLog)
            .where(*criteria)
            .order_by(AuditLog.created_at.desc())
            .limit(10)
        ).scalars().all()

        return {
            "total_logs": int(total),
            "logs_by_action": {action: count for action, count in by_action},
            "logs_by_entity": [
                {"entity_type": entity_type, "count": count}
                for entity_type, count in by_entity
            ],
            "recent_activity": list(recent),
            "period_days": days,
            "period_from": since,
            "period_to": until,
        }
