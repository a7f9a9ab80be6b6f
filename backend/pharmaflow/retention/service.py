"""Retention sweeper for audit log entries.

Audit entries move through three states:

    ACTIVE --(archival, age >= retention_years)--> ARCHIVED
    ARCHIVED --(purge, archived >= grace_years)--> PURGED

Archival is a soft delete: archived_at is stamped and the row stays in the
table, hidden from the default audit views. Purge is a hard delete and is
never run by the monthly schedule; it must be triggered explicitly.

Error policies differ by entry point:
- run_scheduled_archival never raises. Failures become an ArchivalOutcome
  and are logged, and the next monthly run is the only retry.
- run_manual_archival and purge_archived_records propagate store errors to
  the administrative caller.

Scheduled and manual runs are not mutually excluded. The archived_at IS NULL
filter keeps a record from being archived twice, though two racing runs may
both log a count for it.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..models.base import utcnow
from ..observability.metrics import (
    audit_records,
    audit_records_archived_total,
    audit_records_purged_total,
    retention_runs_total,
)
from .cutoffs import subtract_years
from .schemas import ArchivalOutcome, RetentionConfig, RetentionStatistics
from .store import (
    AuditLogStore,
    SQLAlchemyAuditLogStore,
    active_created_before,
    archived_before,
    is_active,
    is_archived,
)

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Archives and purges audit log entries according to RetentionConfig.

    Args:
        store: Audit log store the sweeper reads and writes through
        config: Process-wide retention windows
        clock: Returns "now"; injectable for tests
    """

    def __init__(
        self,
        store: AuditLogStore,
        config: RetentionConfig,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.config = config
        self.clock = clock

    # ------------------------------------------------------------------
    # Archival
    # ------------------------------------------------------------------

    def run_scheduled_archival(self) -> ArchivalOutcome:
        """Monthly archival run. Never raises.

        Archives every active entry older than config.retention_years, then
        gathers statistics. Both steps report failures through the returned
        outcome, and the outcome is logged here.
        """
        logger.info("Starting audit log retention policy execution")
        years = self.config.retention_years

        try:
            count, cutoff = self._archive_older_than(years)
        except Exception as e:
            outcome = ArchivalOutcome.failure(e, retention_years=years)
            retention_runs_total.labels(trigger="scheduled", status="error").inc()
            self._log_outcome(outcome)
            return outcome

        audit_records_archived_total.labels(trigger="scheduled").inc(count)
        retention_runs_total.labels(trigger="scheduled", status="success").inc()
        outcome = ArchivalOutcome.success(count, cutoff, years)

        try:
            outcome = replace(outcome, statistics=self.get_statistics())
        except Exception as e:
            outcome = replace(outcome, statistics_error=e)

        self._log_outcome(outcome)
        return outcome

    def run_manual_archival(self, years_override: Optional[int] = None) -> int:
        """Archive on demand, e.g. from the admin API.

        Args:
            years_override: Retention window for this run only. None (or 0)
                uses config.retention_years.

        Returns:
            Number of entries archived

        Raises:
            ValueError: If years_override is negative
            Exception: Any store error, unchanged
        """
        years = years_override or self.config.retention_years
        if years < 1:
            raise ValueError(f"Retention years must be at least 1, got {years}")

        logger.warning(
            f"Manual retention policy execution triggered for {years} years",
            extra={"retention_years": years},
        )

        count, cutoff = self._archive_older_than(years)

        audit_records_archived_total.labels(trigger="manual").inc(count)
        retention_runs_total.labels(trigger="manual", status="success").inc()
        logger.info(
            f"Manual retention completed. Archived {count} audit log(s)",
            extra={"archived_count": count, "cutoff": cutoff.isoformat()},
        )
        return count

    def _archive_older_than(self, years: int):
        now = self.clock()
        cutoff = subtract_years(now, years)

        logger.info(
            f"Retention policy: {years} years. Archiving logs older than {cutoff.isoformat()}",
            extra={"retention_years": years, "cutoff": cutoff.isoformat()},
        )

        count = self.store.update_many_where(
            {"archived_at": now},
            active_created_before(cutoff),
        )
        return count, cutoff

    # ------------------------------------------------------------------
    # Purge
    # ------------------------------------------------------------------

    def purge_archived_records(self, grace_years: Optional[int] = None) -> int:
        """Permanently delete entries archived for at least grace_years.

        Irreversible. Only called explicitly (admin API, CLI); the monthly
        schedule never purges.

        A grace period of 0 is rejected rather than treated as "purge
        everything archived": an entry archived minutes ago would otherwise
        be deleted with no window to restore it. The admin API enforces the
        same minimum (ge=1).

        Args:
            grace_years: Minimum time archived, in years. None uses
                config.archived_grace_years (default 1).

        Returns:
            Number of entries deleted

        Raises:
            ValueError: If grace_years is less than 1
            Exception: Any store error, unchanged
        """
        years = self.config.archived_grace_years if grace_years is None else grace_years
        if years < 1:
            raise ValueError(f"Grace period must be at least 1 year, got {years}")

        logger.warning(
            f"DANGEROUS OPERATION: Permanently deleting logs archived for {years}+ years",
            extra={"grace_years": years},
        )

        purge_cutoff = subtract_years(self.clock(), years)
        count = self.store.delete_many_where(archived_before(purge_cutoff))

        audit_records_purged_total.inc(count)
        retention_runs_total.labels(trigger="purge", status="success").inc()
        logger.warning(
            f"Permanently deleted {count} archived audit log(s)",
            extra={"purged_count": count, "cutoff": purge_cutoff.isoformat()},
        )
        return count

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_statistics(self) -> RetentionStatistics:
        """Count active, archived and total entries.

        Three independent reads; the counts may not add up exactly while
        entries are being written.
        """
        statistics = RetentionStatistics(
            active_count=self.store.count_where(is_active()),
            archived_count=self.store.count_where(is_archived()),
            total_count=self.store.count_where(),
        )

        audit_records.labels(state="active").set(statistics.active_count)
        audit_records.labels(state="archived").set(statistics.archived_count)
        audit_records.labels(state="total").set(statistics.total_count)

        return statistics

    def _log_outcome(self, outcome: ArchivalOutcome) -> None:
        if not outcome.succeeded:
            logger.error(
                f"Retention policy failed: {outcome.error}",
                exc_info=outcome.error,
                extra={"retention_years": outcome.retention_years},
            )
            return

        logger.info(
            f"Retention policy completed. Archived {outcome.archived_count} audit log(s) "
            f"older than {outcome.retention_years} years",
            extra={
                "archived_count": outcome.archived_count,
                "cutoff": outcome.cutoff.isoformat() if outcome.cutoff else None,
            },
        )

        if outcome.statistics_error is not None:
            logger.error(
                f"Archival succeeded but retention statistics failed: {outcome.statistics_error}",
                exc_info=outcome.statistics_error,
            )
        elif outcome.statistics is not None:
            stats = outcome.statistics
            logger.info(
                f"Retention statistics - Active: {stats.active_count}, "
                f"Archived: {stats.archived_count}, Total: {stats.total_count}",
                extra=stats.model_dump(),
            )


def build_sweeper(db: Session, config: Optional[RetentionConfig] = None) -> RetentionSweeper:
    """Create a sweeper over db, using the process-wide config by default."""
    from ..config import get_retention_config

    return RetentionSweeper(
        SQLAlchemyAuditLogStore(db),
        config if config is not None else get_retention_config(),
    )
