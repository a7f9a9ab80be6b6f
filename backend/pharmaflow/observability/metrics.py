"""Prometheus metrics for PharmaFlow.

Defines and exposes operational metrics for monitoring and alerting.
"""

from prometheus_client import Counter, Gauge

# Audit retention metrics
retention_runs_total = Counter(
    "pharmaflow_retention_runs_total",
    "Retention sweeper runs",
    ["trigger", "status"]  # trigger: scheduled|manual|purge, status: success|error
)

audit_records_archived_total = Counter(
    "pharmaflow_audit_records_archived_total",
    "Audit log entries moved from ACTIVE to ARCHIVED",
    ["trigger"]  # trigger: scheduled|manual
)

audit_records_purged_total = Counter(
    "pharmaflow_audit_records_purged_total",
    "Archived audit log entries permanently deleted"
)

audit_records = Gauge(
    "pharmaflow_audit_records",
    "Audit log entries by archive state, as of the last statistics run",
    ["state"]  # state: active|archived|total
)

# Authentication metrics
login_attempts_total = Counter(
    "pharmaflow_login_attempts_total",
    "Login attempts",
    ["status"]  # status: success|failed|locked
)

token_refreshes_total = Counter(
    "pharmaflow_token_refreshes_total",
    "Access tokens issued from refresh tokens",
    ["status"]  # status: success|failed
)
