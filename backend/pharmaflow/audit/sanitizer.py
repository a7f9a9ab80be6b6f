"""Sanitization of entity snapshots before they are stored in the audit log.

old_values/new_values are JSON columns, so a snapshot must be reduced to
something small, JSON-safe and free of secrets:

- sensitive keys (passwords, tokens, API keys) are replaced by MASK
- lists are replaced by their length
- nested objects that look like related rows (an "id" plus other keys) are
  reduced to {"_relation_id": ...}
- snapshots larger than max_json_size bytes are replaced by a summary
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional
from uuid import UUID

logger = logging.getLogger(__name__)

MASK = "***MASKED***"

SENSITIVE_FIELDS = frozenset({
    "password",
    "password_hash",
    "refresh_token",
    "password_reset_token",
    "api_key",
    "secret",
})

# Fields copied into the summary of a truncated snapshot
SUMMARY_FIELDS = ("id", "code", "name", "invoice_number", "prescription_number", "status")

DEFAULT_MAX_JSON_SIZE = 10240


def _to_json_scalar(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    return value


def _strip(value: Any) -> Any:
    if isinstance(value, (list, tuple, set)):
        return {"_array_length": len(value), "_note": "Array excluded from audit"}

    if not isinstance(value, Mapping):
        return _to_json_scalar(value)

    result: Dict[str, Any] = {}
    for key, item in value.items():
        if key in SENSITIVE_FIELDS:
            result[key] = MASK
            continue

        if isinstance(item, Mapping) and "id" in item and len(item) > 1:
            result[key] = {"_relation_id": _to_json_scalar(item["id"])}
            continue

        result[key] = _strip(item)

    return result


def _summarize(snapshot: Dict[str, Any], original_size: int, max_json_size: int) -> Dict[str, Any]:
    summary = {field: snapshot[field] for field in SUMMARY_FIELDS if snapshot.get(field)}
    summary["_total_fields"] = len(snapshot)

    return {
        "_truncated": True,
        "_original_size": original_size,
        "_field_count": len(snapshot),
        "_note": f"Object exceeds {max_json_size} byte limit, truncated for storage",
        "_summary": summary,
    }


def sanitize_entity(
    entity: Optional[Mapping[str, Any]],
    max_json_size: int = DEFAULT_MAX_JSON_SIZE,
) -> Optional[Dict[str, Any]]:
    """Reduce an entity snapshot to a JSON-safe dict for the audit log.

    Never raises: a snapshot that cannot be serialized is stored as an
    {"_error", "_reason"} marker instead.

    >>> sanitize_entity({"username": "jdoe", "password_hash": "$argon2id$..."})
    {'username': 'jdoe', 'password_hash': '***MASKED***'}
    >>> sanitize_entity(None) is None
    True
    """
    if not entity:
        return None

    try:
        sanitized = _strip(entity)
        size = len(json.dumps(sanitized).encode("utf-8"))
    except (TypeError, ValueError, RecursionError) as e:
        logger.warning(f"Failed to serialize audit snapshot: {e}")
        return {"_error": "Failed to serialize entity", "_reason": str(e)}

    if size > max_json_size:
        return _summarize(sanitized, size, max_json_size)

    return sanitized


def mask_sensitive_fields(values: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Mask sensitive top-level keys in an already stored snapshot."""
    if not values:
        return values

    return {
        key: MASK if key in SENSITIVE_FIELDS and value else value
        for key, value in values.items()
    }
