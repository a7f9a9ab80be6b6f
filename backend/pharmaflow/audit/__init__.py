"""Audit logging: sanitized, immutable records of who changed what."""

from .sanitizer import sanitize_entity, mask_sensitive_fields
from .service import AuditAction, log_audit_event

__all__ = [
    "AuditAction",
    "log_audit_event",
    "mask_sensitive_fields",
    "sanitize_entity",
]
