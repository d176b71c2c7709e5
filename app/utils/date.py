"""
Date parsing for values read out of SQL dumps.

MySQL dumps write DATETIME/TIMESTAMP columns as naive 'YYYY-MM-DD HH:MM:SS'
strings and use zero-dates for "no value". Anything that cannot be parsed
is treated as absent rather than failing the row.
"""

import logging
from datetime import datetime
from typing import Any, Optional

import pandas as pd

logger = logging.getLogger(__name__)

FAILED_SAMPLE_LIMIT = 5
SUPPRESSION_NOTICE_EVERY = 100

ZERO_DATES = {"0000-00-00", "0000-00-00 00:00:00"}

_failure_stats: dict = {}


def _record_parse_failure(value: Any, context: Optional[str], error: Exception) -> None:
    """
    Collect failure stats and emit limited logs (sampled debug lines + periodic summaries).
    """
    key = context or "default"
    stats = _failure_stats.setdefault(key, {"count": 0, "samples": []})
    stats["count"] += 1
    count = stats["count"]

    if len(stats["samples"]) < FAILED_SAMPLE_LIMIT:
        stats["samples"].append(value)
        logger.debug("Failed to parse date%s value '%s': %s", f" ({key})" if context else "", value, error)
        return

    # Emit a single summary when suppression starts, then periodically.
    if count == FAILED_SAMPLE_LIMIT + 1 or count % SUPPRESSION_NOTICE_EVERY == 0:
        logger.info(
            "Suppressed additional date parse messages after %d failures%s; sample values=%s",
            count,
            f" ({key})" if context else "",
            stats["samples"],
        )


def parse_sql_datetime(value: Optional[str], *, log_context: Optional[str] = None) -> Optional[datetime]:
    """
    Parse a dump date/timestamp literal into a naive datetime.

    Args:
        value: Unquoted literal, or None when the column was NULL.
        log_context: Column name used to group parse failure logs.

    Returns:
        The parsed datetime, or None for NULL, zero-dates and unparseable input.
    """
    if value is None:
        return None

    value = value.strip()
    if not value or value in ZERO_DATES:
        return None

    try:
        parsed = pd.to_datetime(value, errors="raise")
    except (ValueError, TypeError, OverflowError) as exc:
        _record_parse_failure(value, log_context, exc)
        return None

    if pd.isna(parsed):
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert("UTC").tz_localize(None)

    return parsed.to_pydatetime()
