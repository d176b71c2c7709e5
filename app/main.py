"""
FastAPI application entry point.

This module initializes the FastAPI application, configures middleware,
and registers the API routers.
"""
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routers import database_import
from .core.config import settings
from .core.logging_config import configure_logging

# Ensure logging is configured before the application starts serving requests.
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown events."""
    if os.getenv("SKIP_DB_INIT") == "1":
        logger.info("SKIP_DB_INIT=1 detected; skipping database bootstrap during startup")
        yield
        return

    try:
        from .db.models import create_import_tables
        from .db.session import get_engine

        engine = get_engine()
        create_import_tables(engine)
        if settings.import_state_backend == "database":
            from .db.cache_store import DatabaseCacheStore

            DatabaseCacheStore(engine).ensure_table()
            logger.info("import_state_cache table ready")
    except Exception:
        logger.error("Failed to initialize database tables", exc_info=True)
        raise

    yield


app = FastAPI(
    title="Subscriber Import API",
    version="1.0.0",
    description="Imports customers, subscriptions and maintenance tickets from legacy SQL dumps",
    lifespan=lifespan,
)

# Allow origins from environment variable or defaults for development
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
allowed_origins = [origin.strip() for origin in allowed_origins]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(database_import.router)


@app.get("/")
async def root():
    return {"message": "Subscriber Import API", "version": "1.0.0"}


@app.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}
