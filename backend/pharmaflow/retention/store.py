"""Audit log store used by the retention sweeper.

The sweeper needs exactly three set-based operations on audit_log: count,
bulk update and bulk delete, each restricted by a predicate. AuditLogStore is
that contract; SQLAlchemyAuditLogStore implements it over a Session.

Bulk statements bypass the ORM flush, so they are not blocked by the
AuditLog immutability guards. That is what lets the sweeper (and only the
sweeper) archive and purge entries.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from ..models.audit_log import AuditLog


# ============================================================================
# Predicates
# ============================================================================

def active_created_before(cutoff: datetime) -> ColumnElement:
    """Active entries created strictly before cutoff (archival candidates)."""
    return and_(AuditLog.created_at < cutoff, AuditLog.archived_at.is_(None))


def is_active() -> ColumnElement:
    return AuditLog.archived_at.is_(None)


def is_archived() -> ColumnElement:
    return AuditLog.archived_at.is_not(None)


def archived_before(cutoff: datetime) -> ColumnElement:
    """Archived entries whose archive timestamp is strictly before cutoff (purge candidates)."""
    return and_(AuditLog.archived_at.is_not(None), AuditLog.archived_at < cutoff)


# ============================================================================
# Store
# ============================================================================

class AuditLogStore(ABC):
    """Port for the set-based audit log operations the sweeper performs.

    Every method accepts zero or more SQLAlchemy criteria which are ANDed
    together; no criteria means "all entries".
    """

    @abstractmethod
    def count_where(self, *criteria: ColumnElement) -> int:
        """Count entries matching all criteria."""

    @abstractmethod
    def update_many_where(self, patch: Dict[str, Any], *criteria: ColumnElement) -> int:
        """Apply patch to every matching entry. Returns the number of rows updated."""

    @abstractmethod
    def delete_many_where(self, *criteria: ColumnElement) -> int:
        """Physically delete every matching entry. Returns the number of rows deleted."""


class SQLAlchemyAuditLogStore(AuditLogStore):
    """AuditLogStore backed by a SQLAlchemy session.

    Each update/delete is a single statement committed on its own, so it
    either applies to the whole matching set or (on error) to nothing.
    """

    def __init__(self, db: Session):
        """Initialize store with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def count_where(self, *criteria: ColumnElement) -> int:
        stmt = select(func.count()).select_from(AuditLog)
        if criteria:
            stmt = stmt.where(*criteria)
        return int(self.db.execute(stmt).scalar_one())

    def update_many_where(self, patch: Dict[str, Any], *criteria: ColumnElement) -> int:
        stmt = (
            update(AuditLog)
            .where(*criteria)
            .values(**patch)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return result.rowcount or 0

    def delete_many_where(self, *criteria: ColumnElement) -> int:
        stmt = (
            delete(AuditLog)
            .where(*criteria)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return result.rowcount or 0
