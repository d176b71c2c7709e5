"""
Pytest configuration and fixtures for the SQL dump import tests.

Every test runs against an in-memory SQLite database with the import
tables created, so no external database is required.
"""

import os

# The application lifespan must not try to reach the configured database.
os.environ["SKIP_DB_INIT"] = "1"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.db.models import create_import_tables
from app.domain.imports.batch import BatchImporter
from app.domain.imports.jobs import (
    CancellationRegistry,
    ErrorCollector,
    ProgressTracker,
    ResultStore,
)
from app.domain.imports.orchestrator import DatabaseImportService
from app.utils.cache import MemoryCacheStore


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database with the customer/subscription/maintenance tables."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_import_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def state_store():
    return MemoryCacheStore()


@pytest.fixture
def progress(state_store):
    return ProgressTracker(state_store, ttl_seconds=3600)


@pytest.fixture
def errors(state_store):
    return ErrorCollector(state_store, ttl_seconds=3600, retention_limit=10000)


@pytest.fixture
def cancellation(state_store):
    return CancellationRegistry(state_store, ttl_seconds=3600)


@pytest.fixture
def batch_importer(engine, progress, errors, cancellation):
    return BatchImporter(
        engine,
        progress,
        errors,
        cancellation,
        chunk_size=500,
        chunk_delay_seconds=0,
        statement_timeout_seconds=0,
        inline_limit=50,
    )


@pytest.fixture
def import_service(engine, state_store, progress, errors, cancellation, batch_importer):
    results = ResultStore(state_store, ttl_seconds=86400)
    return DatabaseImportService(
        engine,
        progress,
        errors,
        results,
        cancellation,
        importer=batch_importer,
    )
