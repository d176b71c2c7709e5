"""
Database-backed TTL store for import job state.

Used when the API and the import worker do not share a process (several
workers behind a load balancer), so progress written by one must be
readable by another.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, ProgrammingError

from app.utils.cache import KeyValueStore
from app.utils.serialization import dumps, loads

logger = logging.getLogger(__name__)

CACHE_TABLE = "import_state_cache"


def _is_missing_table_error(error: Exception) -> bool:
    origin = getattr(error, "orig", None)
    if getattr(origin, "pgcode", None) == "42P01":
        return True
    message = str(origin or error).lower()
    return "no such table" in message or "doesn't exist" in message


class DatabaseCacheStore(KeyValueStore):
    """
    TTL store on the `import_state_cache` table.

    Expired rows are invisible to `get` and deleted on every
    `purge_every` writes.
    """

    def __init__(self, engine: Engine, clock: Callable[[], float] = time.time, purge_every: int = 500):
        self._engine = engine
        self._clock = clock
        self._purge_every = purge_every
        self._writes = 0
        self._writes_lock = threading.Lock()
        self._table_initialized = False
        self._table_init_lock = threading.Lock()

    def ensure_table(self) -> None:
        """Create the cache table on-demand."""
        if self._table_initialized:
            return

        with self._table_init_lock:
            if self._table_initialized:
                return
            payload_type = "LONGTEXT" if self._engine.dialect.name in ("mysql", "mariadb") else "TEXT"
            create_sql = f"""
            CREATE TABLE IF NOT EXISTS {CACHE_TABLE} (
                cache_key VARCHAR(255) PRIMARY KEY,
                payload {payload_type} NOT NULL,
                expires_at DOUBLE PRECISION NOT NULL
            )
            """
            with self._engine.begin() as conn:
                conn.execute(text(create_sql))
            self._table_initialized = True

    def _run_with_table_retry(self, operation: Callable[[], Any]) -> Any:
        self.ensure_table()
        try:
            return operation()
        except (ProgrammingError, OperationalError) as error:
            if not _is_missing_table_error(error):
                raise
            with self._table_init_lock:
                self._table_initialized = False
            self.ensure_table()
            return operation()

    def _upsert_sql(self) -> str:
        if self._engine.dialect.name in ("mysql", "mariadb"):
            return f"""
            INSERT INTO {CACHE_TABLE} (cache_key, payload, expires_at)
            VALUES (:cache_key, :payload, :expires_at)
            ON DUPLICATE KEY UPDATE payload = VALUES(payload), expires_at = VALUES(expires_at)
            """
        return f"""
        INSERT INTO {CACHE_TABLE} (cache_key, payload, expires_at)
        VALUES (:cache_key, :payload, :expires_at)
        ON CONFLICT (cache_key) DO UPDATE
        SET payload = excluded.payload, expires_at = excluded.expires_at
        """

    def get(self, key: str) -> Optional[Any]:
        query_sql = f"""
        SELECT payload FROM {CACHE_TABLE}
        WHERE cache_key = :cache_key AND expires_at > :now
        """

        def _fetch() -> Optional[str]:
            with self._engine.connect() as conn:
                return conn.execute(
                    text(query_sql), {"cache_key": key, "now": self._clock()}
                ).scalar()

        payload = self._run_with_table_retry(_fetch)
        return loads(payload) if payload is not None else None

    def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        params = {
            "cache_key": key,
            "payload": dumps(value),
            "expires_at": self._clock() + ttl_seconds,
        }

        def _write() -> None:
            with self._engine.begin() as conn:
                conn.execute(text(self._upsert_sql()), params)

        self._run_with_table_retry(_write)

        with self._writes_lock:
            self._writes += 1
            due = self._writes % self._purge_every == 0
        if due:
            self.purge_expired()

    def delete(self, key: str) -> None:
        def _delete() -> None:
            with self._engine.begin() as conn:
                conn.execute(text(f"DELETE FROM {CACHE_TABLE} WHERE cache_key = :cache_key"), {"cache_key": key})

        self._run_with_table_retry(_delete)

    def purge_expired(self) -> int:
        """Delete expired rows; returns how many were removed."""
        def _purge() -> int:
            with self._engine.begin() as conn:
                result = conn.execute(
                    text(f"DELETE FROM {CACHE_TABLE} WHERE expires_at <= :now"), {"now": self._clock()}
                )
                return result.rowcount or 0

        removed = self._run_with_table_retry(_purge)
        if removed:
            logger.info("Purged %d expired import state rows", removed)
        return removed
