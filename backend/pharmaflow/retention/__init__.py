"""Audit log retention.

Archives audit entries once they pass the retention window (monthly, via
Celery beat) and permanently deletes archived entries on explicit request.

This module provides:
- RetentionSweeper: archival, purge and statistics over an AuditLogStore
- Celery tasks for the monthly schedule and for purges
- Admin API endpoints for manual runs
"""

from .cutoffs import subtract_years
from .schemas import (
    ArchivalOutcome,
    RetentionConfig,
    RetentionStatistics,
)

# Service, tasks and router import config, which imports this package's
# schemas; import them from their modules directly:
# from pharmaflow.retention.service import RetentionSweeper

__all__ = [
    "ArchivalOutcome",
    "RetentionConfig",
    "RetentionStatistics",
    "subtract_years",
]
