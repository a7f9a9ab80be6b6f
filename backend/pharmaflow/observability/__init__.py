"""Observability for PharmaFlow: structured logging, request IDs and metrics."""

from .logging_config import JSONFormatter, RequestIDFilter, configure_logging
from .metrics import (
    audit_records,
    audit_records_archived_total,
    audit_records_purged_total,
    login_attempts_total,
    retention_runs_total,
)
from .middleware import RequestIDMiddleware
from .request_id import generate_request_id, get_request_id, request_id_var, set_request_id

__all__ = [
    # Logging
    "configure_logging",
    "JSONFormatter",
    "RequestIDFilter",
    # Metrics
    "audit_records",
    "audit_records_archived_total",
    "audit_records_purged_total",
    "login_attempts_total",
    "retention_runs_total",
    # Request ID
    "request_id_var",
    "get_request_id",
    "set_request_id",
    "generate_request_id",
    # Middleware
    "RequestIDMiddleware",
]
