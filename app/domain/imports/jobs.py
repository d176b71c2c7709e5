"""
Pollable state for long-running SQL dump import jobs.

A job writes its progress, its skipped-record log, its final result and
reads its cancellation flag through these helpers. All of them sit on a
`KeyValueStore`, so the same job state is visible to the HTTP pollers
whichever store backend is configured.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from app.utils.cache import KeyValueStore

from .outcomes import SkippedRecord

logger = logging.getLogger(__name__)

FAILED_PERCENTAGE = -1
COMPLETED_PERCENTAGE = 100
TERMINAL_PERCENTAGES = {FAILED_PERCENTAGE, COMPLETED_PERCENTAGE}


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def progress_key(job_id: str) -> str:
    return f"import_progress_{job_id}"


def skipped_key(job_id: str, entity_type: str) -> str:
    return f"import_skipped_{entity_type}_{job_id}"


def results_key(job_id: str) -> str:
    return f"import_results_{job_id}"


def cancel_key(job_id: str) -> str:
    return f"import_cancel_{job_id}"


class ProgressTracker:
    """
    Percentage/message snapshot per job.

    Percentages never go down: a lower value than the current one is
    raised to the current one. 100 and -1 are terminal, and once a job
    reaches either no further update is stored.
    """

    def __init__(self, store: KeyValueStore, ttl_seconds: int):
        self._store = store
        self._ttl_seconds = ttl_seconds

    def update(self, job_id: str, percentage: int, message: str) -> Dict[str, Any]:
        current = self._store.get(progress_key(job_id))

        if current is not None and current.get("percentage") in TERMINAL_PERCENTAGES:
            logger.debug(
                "Ignoring progress update for finished job %s (%s%%: %s)", job_id, percentage, message
            )
            return current

        if percentage != FAILED_PERCENTAGE:
            percentage = max(0, min(COMPLETED_PERCENTAGE, int(percentage)))
            if current is not None and percentage < current.get("percentage", 0):
                percentage = current["percentage"]

        snapshot = {
            "percentage": percentage,
            "message": message,
            "updated_at": _utcnow_iso(),
        }
        self._store.put(progress_key(job_id), snapshot, self._ttl_seconds)
        logger.debug("Import %s progress %s%%: %s", job_id, percentage, message)
        return snapshot

    def fail(self, job_id: str, message: str) -> Dict[str, Any]:
        return self.update(job_id, FAILED_PERCENTAGE, message)

    def get(self, job_id: str) -> Dict[str, Any]:
        snapshot = self._store.get(progress_key(job_id))
        if snapshot is None:
            return {
                "percentage": 0,
                "message": "Not started",
                "updated_at": _utcnow_iso(),
            }
        return snapshot


class ErrorCollector:
    """Skipped-record log per job and entity type, capped at `retention_limit` entries."""

    def __init__(self, store: KeyValueStore, ttl_seconds: int, retention_limit: int):
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._retention_limit = retention_limit

    def record(self, job_id: str, entity_type: str, skipped: SkippedRecord) -> None:
        self.record_many(job_id, entity_type, [skipped])

    def record_many(self, job_id: str, entity_type: str, skipped: Iterable[SkippedRecord]) -> None:
        new_entries = [record.to_dict() for record in skipped]
        if not new_entries:
            return

        key = skipped_key(job_id, entity_type)
        entries: List[Dict[str, Any]] = self._store.get(key) or []
        room = self._retention_limit - len(entries)
        if room < len(new_entries):
            logger.warning(
                "Skipped-record log for %s/%s is full (%d entries); dropping %d entries",
                job_id,
                entity_type,
                self._retention_limit,
                len(new_entries) - max(room, 0),
            )
        if room > 0:
            entries.extend(new_entries[:room])
            self._store.put(key, entries, self._ttl_seconds)

    def get(self, job_id: str, entity_type: str) -> List[SkippedRecord]:
        entries = self._store.get(skipped_key(job_id, entity_type)) or []
        return [SkippedRecord.from_dict(entry) for entry in entries]


class ResultStore:
    """Final result objects of finished jobs."""

    def __init__(self, store: KeyValueStore, ttl_seconds: int):
        self._store = store
        self._ttl_seconds = ttl_seconds

    def put(self, job_id: str, result: Dict[str, Any]) -> None:
        logger.info("Caching import results for %s", job_id)
        self._store.put(results_key(job_id), result, self._ttl_seconds)

    def get(self, job_id: str) -> Optional[Dict[str, Any]]:
        return self._store.get(results_key(job_id))


class CancellationRegistry:
    """Cancellation flags checked by running jobs between chunks."""

    def __init__(self, store: KeyValueStore, ttl_seconds: int):
        self._store = store
        self._ttl_seconds = ttl_seconds

    def request(self, job_id: str) -> None:
        logger.info("Cancellation requested for import %s", job_id)
        self._store.put(cancel_key(job_id), {"requested_at": _utcnow_iso()}, self._ttl_seconds)

    def is_requested(self, job_id: str) -> bool:
        return self._store.get(cancel_key(job_id)) is not None
