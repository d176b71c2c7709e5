"""
Time-bounded key-value stores for import job state.

Progress snapshots, skipped-record logs and final results are written by
exactly one running job and read by any number of pollers. Values are
stored serialized, so a reader always gets a complete copy of the last
write and never a structure that is still being mutated.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from app.utils.serialization import dumps, loads

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Interface shared by the in-process and database-backed stores."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryCacheStore(KeyValueStore):
    """
    Process-local TTL cache.

    Expired entries are dropped lazily on read and swept on every
    `sweep_every` writes.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_every: int = 500):
        self._entries: Dict[str, Tuple[float, str]] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._sweep_every = sweep_every
        self._writes = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, payload = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
        return loads(payload)

    def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        payload = dumps(value)
        with self._lock:
            self._entries[key] = (self._clock() + ttl_seconds, payload)
            self._writes += 1
            if self._writes % self._sweep_every == 0:
                self._sweep_locked()

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def _sweep_locked(self) -> None:
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Swept %d expired import state entries", len(expired))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
