"""
Fitting values and error messages into their storage limits.
"""
import logging
import re
from typing import Any, Dict

from .entities import EntitySchema

logger = logging.getLogger(__name__)

ELLIPSIS = "..."
DEFAULT_ERROR_DETAIL = "Database constraint violation"

_ERROR_NOISE_PATTERNS = [
    re.compile(r"SQLSTATE\[[^\]]+\]"),
    re.compile(r"\(SQL:.*\)", re.DOTALL),
    re.compile(r"\[SQL:.*?\]", re.DOTALL),
    re.compile(r"\[parameters:.*?\]", re.DOTALL),
    re.compile(r"\(Background on this error at:[^)]*\)"),
]
_CREDENTIALS_IN_URL = re.compile(r"(\b[a-zA-Z][a-zA-Z0-9+.-]*://)[^\s/@]+@")


def truncate_value(value: str, limit: int) -> str:
    """Cut `value` to exactly `limit` characters, the last of which are the ellipsis."""
    if len(value) <= limit:
        return value
    if limit <= len(ELLIPSIS):
        return value[:limit]
    return value[: limit - len(ELLIPSIS)] + ELLIPSIS


def sanitize_record(schema: EntitySchema, record: Dict[str, Any]) -> Dict[str, Any]:
    """Truncate over-length string fields of `record` (returns a new dict)."""
    sanitized = dict(record)
    for field_name, limit in schema.string_limits.items():
        value = sanitized.get(field_name)
        if isinstance(value, str) and len(value) > limit:
            sanitized[field_name] = truncate_value(value, limit)
            logger.debug(
                "Truncated long field value field=%s original_length=%d truncated_length=%d record_id=%s",
                field_name,
                len(value),
                limit,
                schema.summary_id(record),
            )
    return sanitized


def sanitize_error_message(error: Any, max_length: int = 200) -> str:
    """
    Make a database error safe and short enough to show to users.

    SQL fragments, bound parameters and credentials embedded in connection
    URLs are removed; the result is capped at `max_length` characters plus
    an ellipsis.
    """
    message = str(getattr(error, "orig", None) or error)
    for pattern in _ERROR_NOISE_PATTERNS:
        message = pattern.sub("", message)
    message = _CREDENTIALS_IN_URL.sub(r"\1***@", message)
    message = " ".join(message.split())

    if len(message) > max_length:
        message = message[:max_length] + ELLIPSIS

    return message or DEFAULT_ERROR_DETAIL
