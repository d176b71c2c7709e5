import os
import socket
from contextlib import closing

from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base

from app.core.config import settings

_engine = None


def _report_connection_failure(exc: Exception) -> None:
    """Print high-signal diagnostics when the application cannot reach the database."""
    print(f"Warning: Could not connect to database: {exc}")
    print("The application will start but imports will fail until the connection succeeds.")

    try:
        url = make_url(settings.database_url)
    except Exception as parse_error:  # pragma: no cover
        print(f"  Unable to parse DATABASE_URL ({parse_error}); skipping detailed diagnostics.")
        return

    print("  Database connection settings:")
    print(f"    Dialect: {url.get_backend_name()} (driver: {url.get_driver_name() or 'default'})")
    print(f"    Host: {url.host or 'localhost'}")
    print(f"    Port: {url.port or '(default)'}")
    print(f"    Database: {url.database}")
    print(f"    Username: {url.username}")
    print(f"    SKIP_DB_INIT: {os.getenv('SKIP_DB_INIT')!r}")

    if url.get_backend_name() == "sqlite":
        return

    host = url.host or "localhost"
    port = url.port or 5432

    try:
        with closing(socket.create_connection((host, port), timeout=2)):
            print(f"    Socket check: ✅ Able to reach {host}:{port}")
    except OSError as socket_err:
        print(f"    Socket check: ❌ Unable to reach {host}:{port} ({socket_err})")


def _engine_options(database_url: str) -> dict:
    """Connection options that keep large chunk upserts from hanging forever."""
    timeout = settings.import_statement_timeout_seconds
    backend = make_url(database_url).get_backend_name()
    if backend == "sqlite":
        return {"connect_args": {"timeout": timeout}}
    if backend == "mysql":
        return {
            "pool_pre_ping": True,
            "connect_args": {"read_timeout": timeout, "write_timeout": timeout},
        }
    return {"pool_pre_ping": True, "pool_timeout": timeout}


def get_engine():
    global _engine
    if _engine is None:
        options = _engine_options(settings.database_url)
        try:
            _engine = create_engine(settings.database_url, **options)
            # Test connection eagerly so failures surface immediately.
            with _engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            _report_connection_failure(e)
            # Create the engine anyway so callers can proceed (may still fail later).
            _engine = create_engine(settings.database_url, **options)
    return _engine


Base = declarative_base()
