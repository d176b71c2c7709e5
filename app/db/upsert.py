"""
Dialect-aware insert-or-update helpers used by the chunked importer.

Each supported backend spells "upsert" differently; callers only see
`build_upsert` and `apply_statement_timeout`.
"""
import logging
from typing import Any, Dict, List, Sequence

from sqlalchemy import Table, text
from sqlalchemy.engine import Connection

logger = logging.getLogger(__name__)

SUPPORTED_DIALECTS = {"postgresql", "sqlite", "mysql", "mariadb"}


class UnsupportedDialectError(Exception):
    """Raised when the target database has no native upsert we know how to emit."""

    def __init__(self, dialect_name: str, message: str = None):
        self.dialect_name = dialect_name
        self.message = message or (
            f"Upsert is not supported for dialect '{dialect_name}'. "
            f"Supported dialects: {', '.join(sorted(SUPPORTED_DIALECTS))}."
        )
        super().__init__(self.message)


def _dialect_insert(dialect_name: str):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect_name in ("mysql", "mariadb"):
        from sqlalchemy.dialects.mysql import insert
    else:
        raise UnsupportedDialectError(dialect_name)
    return insert


def build_upsert(
    dialect_name: str,
    table: Table,
    rows: List[Dict[str, Any]],
    key_columns: Sequence[str],
    update_columns: Sequence[str],
):
    """
    Build a single multi-row INSERT ... ON CONFLICT/ON DUPLICATE KEY statement.

    Args:
        dialect_name: Name of the bound engine's dialect.
        table: Target table.
        rows: Records to write; every record must carry the same keys.
        key_columns: Natural key used to detect conflicts.
        update_columns: Columns refreshed when the key already exists.
    """
    insert = _dialect_insert(dialect_name)
    stmt = insert(table).values(rows)

    if dialect_name in ("mysql", "mariadb"):
        return stmt.on_duplicate_key_update(
            {col: stmt.inserted[col] for col in update_columns}
        )

    return stmt.on_conflict_do_update(
        index_elements=list(key_columns),
        set_={col: stmt.excluded[col] for col in update_columns},
    )


def apply_statement_timeout(conn: Connection, seconds: int) -> None:
    """
    Bound how long the current transaction may block on the store.

    SQLite has no per-statement timeout; its busy timeout is configured on
    the engine's connect args instead.
    """
    if not seconds or seconds <= 0:
        return

    dialect_name = conn.dialect.name
    if dialect_name == "postgresql":
        conn.execute(text(f"SET LOCAL statement_timeout = {int(seconds * 1000)}"))
    elif dialect_name in ("mysql", "mariadb"):
        conn.execute(text(f"SET SESSION innodb_lock_wait_timeout = {int(seconds)}"))
    else:
        logger.debug("No per-statement timeout available for dialect '%s'", dialect_name)
