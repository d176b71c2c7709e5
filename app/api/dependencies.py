"""
Shared dependencies and state for the API.

The import state store is process-wide: every request and every
background import resolves the same `DatabaseImportService`.
"""
import threading
from typing import Optional

from app.core.config import settings
from app.db.cache_store import DatabaseCacheStore
from app.db.session import get_engine
from app.domain.imports.orchestrator import DatabaseImportService, build_import_service
from app.utils.cache import KeyValueStore, MemoryCacheStore

_service: Optional[DatabaseImportService] = None
_service_lock = threading.Lock()


def create_state_store(backend: str = None) -> KeyValueStore:
    """Build the key-value store selected by `import_state_backend`."""
    backend = (backend or settings.import_state_backend).lower()
    if backend == "memory":
        return MemoryCacheStore()
    if backend == "database":
        return DatabaseCacheStore(get_engine())
    raise ValueError(
        f"Unknown import_state_backend '{backend}'. Options: memory, database"
    )


def get_import_service() -> DatabaseImportService:
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = build_import_service(get_engine(), create_state_store())
    return _service
