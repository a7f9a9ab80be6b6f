"""Pydantic schemas for audit log endpoints.

Audit logs are read-only through the API (no create/update/delete).
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AuditLogResponse(BaseModel):
    """One audit log entry."""
    id: UUID = Field(..., description="Audit log entry unique identifier")
    tenant_id: UUID = Field(..., description="Tenant ID")
    user_id: Optional[UUID] = Field(None, description="User who performed the action (None for anonymous)")
    action: str = Field(..., description="Event action (CREATE, UPDATE, LOGIN_FAILED, etc.)")
    entity_type: str = Field(..., description="Type of entity affected (Product, User, etc.)")
    entity_id: str = Field(..., description="ID of affected entity")
    old_values: Optional[Dict[str, Any]] = Field(None, description="Sanitized snapshot before the change")
    new_values: Optional[Dict[str, Any]] = Field(None, description="Sanitized snapshot after the change")
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="metadata_json", description="Additional context")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    created_at: datetime = Field(..., description="Event timestamp")
    archived_at: Optional[datetime] = Field(None, description="Set once the entry has been archived")

    class Config:
        from_attributes = True
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "tenant_id": "7c9e6679-7425-40de-944b-e07fc1f90ae7",
                "user_id": "123e4567-e89b-12d3-a456-426614174000",
                "action": "UPDATE",
                "entity_type": "Product",
                "entity_id": "abc12345-6789-0abc-def0-123456789012",
                "old_values": {"name": "Paracetamol 500mg"},
                "new_values": {"name": "Paracetamol 500 mg"},
                "metadata": None,
                "ip_address": "192.168.1.100",
                "created_at": "2025-01-04T12:00:00Z",
                "archived_at": None
            }
        }


class PaginationMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class AuditLogListResponse(BaseModel):
    """Paginated audit log entries."""
    data: List[AuditLogResponse]
    meta: PaginationMeta


class EntityCount(BaseModel):
    entity_type: str
    count: int


class AuditStatisticsResponse(BaseModel):
    """Audit activity summary for a recent period."""
    total_logs: int
    logs_by_action: Dict[str, int]
    logs_by_entity: List[EntityCount]
    recent_activity: List[AuditLogResponse]
    period_days: int
    period_from: datetime
    period_to: datetime
