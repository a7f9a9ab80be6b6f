#!/usr/bin/env python
"""Permanently delete archived audit log entries.

Entries must have been archived for at least the grace period. This cannot
be undone, so the script refuses to run without --yes.

Usage:
    python backend/scripts/purge_audit_logs.py --yes
    python backend/scripts/purge_audit_logs.py --grace-years 2 --yes

Environment Variables:
    DATABASE_URL: PostgreSQL connection string
    AUDIT_ARCHIVED_GRACE_YEARS: Default grace period (default 1)
"""

import argparse
import logging
import sys

from pharmaflow.config import settings
from pharmaflow.database import SessionLocal
from pharmaflow.observability.logging_config import configure_logging
from pharmaflow.retention.service import build_sweeper

logger = logging.getLogger("pharmaflow.scripts.purge_audit_logs")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Purge archived audit log entries")
    parser.add_argument(
        "--grace-years",
        type=int,
        default=None,
        help="Minimum years an entry must have been archived (default: configured grace period)",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Confirm permanent deletion",
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    if not args.yes:
        print("Refusing to purge without --yes. Purged audit entries cannot be recovered.")
        sys.exit(1)

    db = SessionLocal()
    try:
        count = build_sweeper(db).purge_archived_records(args.grace_years)
    except Exception as e:
        logger.error(f"Audit log purge failed: {e}", exc_info=True)
        print(f"ERROR: Purge failed: {e}")
        sys.exit(1)
    finally:
        db.close()

    print(f"SUCCESS: Permanently deleted {count} archived audit log(s)")


if __name__ == "__main__":
    main()
