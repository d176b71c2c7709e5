"""
Chunked, partially-failure-tolerant writes of extracted records.

Each chunk is first written with one bulk upsert in its own transaction.
When that fails the chunk is replayed record by record, each in its own
transaction, so one bad row only costs itself.
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.db.upsert import apply_statement_timeout, build_upsert

from .entities import EntitySchema
from .errors import ImportCancelledError
from .jobs import CancellationRegistry, ErrorCollector, ProgressTracker
from .outcomes import EntityImportResult, ExtractionResult, SkippedRecord, SkipReason
from .sanitizer import sanitize_error_message

logger = logging.getLogger(__name__)


def load_known_parent_ids(engine: Engine, parent: EntitySchema) -> Set[str]:
    """Load every key of the parent table currently in the store."""
    key_column = parent.table.c[parent.key_column]
    with engine.connect() as conn:
        ids = {row[0] for row in conn.execute(select(key_column))}
    logger.info("Loaded %d existing %s ids for referential checks", len(ids), parent.entity_type)
    return ids


def _chunked(records: List[Dict[str, Any]], size: int) -> List[List[Dict[str, Any]]]:
    return [records[i:i + size] for i in range(0, len(records), size)]


class BatchImporter:
    def __init__(
        self,
        engine: Engine,
        progress: ProgressTracker,
        errors: ErrorCollector,
        cancellation: Optional[CancellationRegistry] = None,
        chunk_size: int = None,
        chunk_delay_seconds: float = None,
        statement_timeout_seconds: int = None,
        inline_limit: int = None,
        error_detail_max_length: int = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.engine = engine
        self.progress = progress
        self.errors = errors
        self.cancellation = cancellation
        self.chunk_size = chunk_size or settings.import_chunk_size
        self.chunk_delay_seconds = (
            settings.import_chunk_delay_seconds if chunk_delay_seconds is None else chunk_delay_seconds
        )
        self.statement_timeout_seconds = (
            settings.import_statement_timeout_seconds
            if statement_timeout_seconds is None
            else statement_timeout_seconds
        )
        self.inline_limit = settings.import_skipped_inline_limit if inline_limit is None else inline_limit
        self.error_detail_max_length = error_detail_max_length or settings.import_error_detail_max_length
        self._sleep = sleep

    def import_entity(
        self,
        job_id: str,
        schema: EntitySchema,
        extraction: ExtractionResult,
        progress_start: int,
        progress_end: int,
        known_parent_ids: Optional[Set[str]] = None,
    ) -> EntityImportResult:
        """
        Write `extraction.records` in chunks and report per-chunk progress.

        Validation skips carried by `extraction` are logged to the error
        collector up front and count toward `skipped`. When
        `known_parent_ids` is given, records whose parent key is not in it
        are skipped as referential failures instead of being written.
        """
        all_skipped: List[SkippedRecord] = list(extraction.skipped)
        self.errors.record_many(job_id, schema.entity_type, extraction.skipped)

        imported = 0
        skipped = len(extraction.skipped)
        chunks = _chunked(extraction.records, self.chunk_size)
        total_chunks = len(chunks)

        logger.info(
            "Importing %d %s in %d chunks (job=%s)",
            len(extraction.records),
            schema.entity_type,
            total_chunks,
            job_id,
        )

        for index, chunk in enumerate(chunks):
            if index > 0 and self.chunk_delay_seconds > 0:
                self._sleep(self.chunk_delay_seconds)
            self._raise_if_cancelled(job_id)

            chunk_skipped: List[SkippedRecord] = []
            if known_parent_ids is not None:
                chunk, rejected = self._filter_known_parents(schema, chunk, known_parent_ids)
                chunk_skipped.extend(rejected)

            if chunk:
                written, failed = self._write_chunk(schema, chunk, index + 1, total_chunks)
                imported += written
                chunk_skipped.extend(failed)

            skipped += len(chunk_skipped)
            all_skipped.extend(chunk_skipped)
            self.errors.record_many(job_id, schema.entity_type, chunk_skipped)

            percentage = progress_start + (index + 1) / total_chunks * (progress_end - progress_start)
            self.progress.update(
                job_id,
                int(percentage),
                f"Chunk {index + 1}/{total_chunks}: {imported} {schema.entity_type} imported, {skipped} skipped",
            )

        logger.info(
            "%s import finished (job=%s): %d imported, %d skipped of %d",
            schema.entity_type,
            job_id,
            imported,
            skipped,
            extraction.total,
        )
        return EntityImportResult(
            imported=imported,
            skipped=skipped,
            total=extraction.total,
            skipped_records=all_skipped[: self.inline_limit],
            has_more_skipped=len(all_skipped) > self.inline_limit,
        )

    def _raise_if_cancelled(self, job_id: str) -> None:
        if self.cancellation is not None and self.cancellation.is_requested(job_id):
            logger.warning("Import %s cancelled between chunks", job_id)
            raise ImportCancelledError(job_id)

    def _filter_known_parents(self, schema: EntitySchema, chunk, known_parent_ids: Set[str]):
        parent_column = schema.parent_key_column
        label = schema.required_fields.get(parent_column, parent_column)
        details = f"{label[:1].upper()}{label[1:]} does not exist in database"

        kept: List[Dict[str, Any]] = []
        rejected: List[SkippedRecord] = []
        for record in chunk:
            parent_id = record.get(parent_column)
            if parent_id in known_parent_ids:
                kept.append(record)
                continue
            rejected.append(
                SkippedRecord(
                    entity_type=schema.entity_type,
                    identifying_id=schema.summary_id(record),
                    reason=SkipReason.REFERENTIAL,
                    details=details,
                    related_id=parent_id,
                )
            )

        if rejected:
            logger.info(
                "%d %s skipped: unknown %s", len(rejected), schema.entity_type, parent_column
            )
        return kept, rejected

    def _upsert(self, schema: EntitySchema, rows: List[Dict[str, Any]]) -> None:
        with self.engine.begin() as conn:
            apply_statement_timeout(conn, self.statement_timeout_seconds)
            stmt = build_upsert(
                conn.dialect.name,
                schema.table,
                rows,
                key_columns=[schema.key_column],
                update_columns=schema.update_columns,
            )
            conn.execute(stmt)

    def _write_chunk(self, schema: EntitySchema, chunk, chunk_number: int, total_chunks: int):
        try:
            self._upsert(schema, chunk)
            logger.info(
                "Chunk %d/%d of %s committed (%d records)",
                chunk_number,
                total_chunks,
                schema.entity_type,
                len(chunk),
            )
            return len(chunk), []
        except SQLAlchemyError as exc:
            logger.warning(
                "Bulk upsert of %s chunk %d/%d failed, retrying record by record: %s",
                schema.entity_type,
                chunk_number,
                total_chunks,
                sanitize_error_message(exc, self.error_detail_max_length),
            )

        written = 0
        failed: List[SkippedRecord] = []
        for record in chunk:
            try:
                self._upsert(schema, [record])
                written += 1
            except SQLAlchemyError as exc:
                details = sanitize_error_message(exc, self.error_detail_max_length)
                logger.warning(
                    "Skipping %s %s: %s", schema.entity_type, schema.summary_id(record), details
                )
                failed.append(
                    SkippedRecord(
                        entity_type=schema.entity_type,
                        identifying_id=schema.summary_id(record),
                        reason=SkipReason.PERSISTENCE,
                        details=details,
                        related_id=record.get(schema.parent_key_column) if schema.parent_key_column else None,
                    )
                )
        return written, failed
