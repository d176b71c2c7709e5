import pytest
from sqlalchemy import text

from app.api.dependencies import create_state_store
from app.db.cache_store import CACHE_TABLE, DatabaseCacheStore
from app.domain.imports.jobs import ProgressTracker
from app.utils.cache import MemoryCacheStore


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_store(engine, clock):
    return DatabaseCacheStore(engine, clock=clock)


def test_put_get_roundtrip_and_overwrite(db_store):
    db_store.put("import_progress_job", {"percentage": 10, "message": "Reading"}, ttl_seconds=60)
    db_store.put("import_progress_job", {"percentage": 20, "message": "Parsing"}, ttl_seconds=60)

    assert db_store.get("import_progress_job") == {"percentage": 20, "message": "Parsing"}
    assert db_store.get("missing") is None


def test_expired_rows_are_invisible_and_purged(db_store, clock):
    db_store.put("a", [1, 2], ttl_seconds=10)
    db_store.put("b", "keep", ttl_seconds=100)
    clock.now += 50

    assert db_store.get("a") is None
    assert db_store.purge_expired() == 1
    assert db_store.get("b") == "keep"


def test_delete(db_store):
    db_store.put("a", 1, ttl_seconds=10)
    db_store.delete("a")
    assert db_store.get("a") is None


def test_table_is_recreated_when_dropped(engine, db_store):
    db_store.put("a", 1, ttl_seconds=10)
    with engine.begin() as conn:
        conn.execute(text(f"DROP TABLE {CACHE_TABLE}"))

    db_store.put("b", 2, ttl_seconds=10)
    assert db_store.get("b") == 2


def test_progress_tracker_over_database_store(db_store):
    tracker = ProgressTracker(db_store, ttl_seconds=3600)
    tracker.update("job", 40, "Importing customers...")
    tracker.update("job", 20, "stale")

    assert tracker.get("job")["percentage"] == 40


def test_create_state_store_backends():
    assert isinstance(create_state_store("memory"), MemoryCacheStore)
    with pytest.raises(ValueError):
        create_state_store("redis")


def test_expired_rows_are_deleted_during_normal_writes(engine, clock):
    store = DatabaseCacheStore(engine, clock=clock, purge_every=3)
    store.put("import_progress_old", {"percentage": 100}, ttl_seconds=10)
    store.put("import_results_old", {"progress_id": "old"}, ttl_seconds=10)
    clock.now += 60
    store.put("import_progress_new", {"percentage": 5}, ttl_seconds=10)

    with engine.connect() as conn:
        keys = conn.execute(text(f"SELECT cache_key FROM {CACHE_TABLE}")).scalars().all()
    assert keys == ["import_progress_new"]
