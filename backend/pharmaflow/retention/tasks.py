"""Celery tasks for audit log retention.

Tasks:
- retention.scheduled_archival: monthly archival, scheduled by Celery beat
  (see workers.celery_app). Never raises.
- retention.purge_archived: permanent deletion of archived entries. Not
  scheduled; enqueue it explicitly.
"""

import logging
from typing import Any, Dict, Optional

from celery import shared_task

from ..database import SessionLocal
from .service import build_sweeper

logger = logging.getLogger(__name__)


@shared_task(name="retention.scheduled_archival", bind=True)
def scheduled_archival_task(self) -> Dict[str, Any]:
    """Archive audit entries older than the configured retention window.

    The task is idempotent: a second run in the same month finds nothing new
    to archive. It always completes; failures are reported in the returned
    dict under status "failed" and logged by the sweeper.

    Returns:
        Dict with status, archived_count, retention_years, cutoff and, when
        gathered, statistics
    """
    db = SessionLocal()
    try:
        outcome = build_sweeper(db).run_scheduled_archival()
        return outcome.to_dict()
    finally:
        db.close()


@shared_task(name="retention.purge_archived", bind=True)
def purge_archived_task(self, grace_years: Optional[int] = None) -> Dict[str, Any]:
    """Permanently delete audit entries archived for at least grace_years.

    Errors propagate so the task is marked FAILURE in the result backend.

    Args:
        grace_years: Minimum years archived (defaults to the configured grace period)

    Returns:
        Dict with status and purged_count
    """
    logger.info("Audit log purge task started", extra={"grace_years": grace_years})

    db = SessionLocal()
    try:
        count = build_sweeper(db).purge_archived_records(grace_years)
        return {
            "status": "completed",
            "purged_count": count,
        }
    finally:
        db.close()
