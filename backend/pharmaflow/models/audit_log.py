"""AuditLog SQLAlchemy model"""

import uuid

from sqlalchemy import Column, Text, DateTime, Uuid, ForeignKey, Index, event, func
from sqlalchemy.orm import relationship

from .base import Base, PortableJSONB, utcnow


class AuditLogImmutableError(ValueError):
    """Raised when code tries to modify or delete an audit entry through the ORM."""


class AuditLog(Base):
    """AuditLog model for immutable compliance event logging.

    Records create/update/delete/view events on auditable entities
    (products, prescriptions, users, ...) for DEA and pharmacy-board audits.

    Entries are append-only. The only permitted changes are made by the
    retention sweeper through set-based statements:
    - archived_at is set once (ACTIVE -> ARCHIVED) and never cleared
    - archived rows are physically deleted after the grace period (PURGED)
    """
    __tablename__ = "audit_log"
    __table_args__ = (
        Index("ix_audit_log_tenant_id_created_at", "tenant_id", "created_at"),
        Index("ix_audit_log_entity", "entity_type", "entity_id"),
        Index("ix_audit_log_created_at", "created_at"),
        Index("ix_audit_log_archived_at", "archived_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenant.id", ondelete="RESTRICT"), nullable=False)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    entity_type = Column(Text, nullable=False)
    entity_id = Column(Text, nullable=False)
    action = Column(Text, nullable=False)
    old_values = Column(PortableJSONB, nullable=True)
    new_values = Column(PortableJSONB, nullable=True)
    metadata_json = Column(PortableJSONB, nullable=True)
    ip_address = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    archived_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    tenant = relationship("Tenant")
    user = relationship("User")

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    def to_dict(self):
        """Convert audit log entry to dictionary representation"""
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "user_id": str(self.user_id) if self.user_id else None,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "old_values": self.old_values,
            "new_values": self.new_values,
            "metadata": self.metadata_json,
            "ip_address": self.ip_address,
            "created_at": self.created_at.isoformat(),
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
        }


@event.listens_for(AuditLog, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise AuditLogImmutableError(
        f"Audit log entry {target.id} is immutable and cannot be modified"
    )


@event.listens_for(AuditLog, "before_delete")
def _reject_audit_delete(mapper, connection, target):
    raise AuditLogImmutableError(
        f"Audit log entry {target.id} is immutable and cannot be deleted"
    )
