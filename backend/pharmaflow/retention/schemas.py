"""Schemas for audit-log retention.

This module defines:
- RetentionConfig: process-wide retention windows (built once at startup)
- RetentionStatistics: active/archived/total audit entry counts
- ArchivalOutcome: result of a scheduled archival run (success or failure)
- Request/response schemas for the retention admin endpoints
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class RetentionConfig(BaseModel):
    """Retention windows for audit log entries, in years.

    Immutable for the life of the process. Manual runs may pass an override
    per call; the stored default never changes.

    Default retention periods:
    - retention_years: 7 (recommended for pharmacy operations; DEA minimum is 2)
    - archived_grace_years: 1 (time an entry stays archived before purge)
    """
    model_config = ConfigDict(frozen=True)

    retention_years: int = Field(
        default=7,
        ge=1,
        description="Years before an active audit entry is archived"
    )

    archived_grace_years: int = Field(
        default=1,
        ge=1,
        description="Years an archived audit entry is kept before permanent deletion"
    )


class RetentionStatistics(BaseModel):
    """Audit entry counts by archive state.

    The three counts come from independent reads and may disagree by a few
    records when entries are written concurrently.
    """

    active_count: int = Field(ge=0, description="Entries with archived_at IS NULL")
    archived_count: int = Field(ge=0, description="Entries with archived_at IS NOT NULL")
    total_count: int = Field(ge=0, description="All entries")


@dataclass(frozen=True)
class ArchivalOutcome:
    """Result of a scheduled archival run.

    A scheduled run never raises; instead it reports success (with the number
    of archived entries) or failure (with the exception that stopped it).

    Statistics are gathered after a successful archival in a separate step.
    A failure there is carried in statistics_error and does not make the
    archival itself a failure.
    """
    succeeded: bool
    archived_count: int = 0
    cutoff: Optional[datetime] = None
    retention_years: Optional[int] = None
    error: Optional[BaseException] = None
    statistics: Optional[RetentionStatistics] = None
    statistics_error: Optional[BaseException] = field(default=None)

    @classmethod
    def success(
        cls,
        archived_count: int,
        cutoff: datetime,
        retention_years: int,
    ) -> "ArchivalOutcome":
        return cls(
            succeeded=True,
            archived_count=archived_count,
            cutoff=cutoff,
            retention_years=retention_years,
        )

    @classmethod
    def failure(cls, error: BaseException, retention_years: Optional[int] = None) -> "ArchivalOutcome":
        return cls(succeeded=False, error=error, retention_years=retention_years)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form, used as the Celery task result."""
        result: Dict[str, Any] = {
            "status": "completed" if self.succeeded else "failed",
            "archived_count": self.archived_count,
            "retention_years": self.retention_years,
            "cutoff": self.cutoff.isoformat() if self.cutoff else None,
        }
        if self.error is not None:
            result["error"] = str(self.error)
        if self.statistics is not None:
            result["statistics"] = self.statistics.model_dump()
        if self.statistics_error is not None:
            result["statistics_error"] = str(self.statistics_error)
        return result


class ManualArchivalRequest(BaseModel):
    """Body for POST /retention/archive."""

    years_override: Optional[int] = Field(
        None,
        ge=1,
        description="Archive entries older than this many years (defaults to the configured window)"
    )


class PurgeRequest(BaseModel):
    """Body for POST /retention/purge.

    Purging is irreversible, so callers must send confirm=true.
    """

    grace_years: Optional[int] = Field(
        None,
        ge=1,
        description="Minimum years an entry must have been archived (defaults to the configured grace period)"
    )
    confirm: bool = Field(
        False,
        description="Must be true; purged entries cannot be recovered"
    )


class RetentionRunResponse(BaseModel):
    """Result of a manual archival or purge run."""

    operation: str = Field(description="archive or purge")
    affected_count: int = Field(ge=0, description="Entries archived or deleted")
    years: int = Field(ge=1, description="Retention window or grace period used")

    class Config:
        json_schema_extra = {
            "example": {
                "operation": "archive",
                "affected_count": 1520,
                "years": 7,
            }
        }
