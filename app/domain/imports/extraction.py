"""
Turning a dump into validated, sanitized records for one entity type.
"""
import logging
from typing import List

from .entities import EntitySchema
from .errors import RowShapeError
from .mapper import map_row
from .outcomes import ExtractionResult, RowOutcome, SkippedRecord, SkipReason
from .sanitizer import sanitize_record
from .sql_dump import iter_insert_values, split_value_rows
from .validators import validate_record

logger = logging.getLogger(__name__)

PREVIEW_TOKENS = 5


def build_row_outcome(schema: EntitySchema, record: dict) -> RowOutcome:
    """Validate and sanitize one mapped record."""
    errors = validate_record(schema, record)
    if errors:
        details = ", ".join(errors)
        logger.debug(
            "%s validation failed for %s: %s", schema.entity_type, schema.summary_id(record), details
        )
        related_id = record.get(schema.parent_key_column) if schema.parent_key_column else None
        return RowOutcome.skip(
            SkippedRecord(
                entity_type=schema.entity_type,
                identifying_id=schema.summary_id(record),
                reason=SkipReason.VALIDATION,
                details=details,
                related_id=related_id,
            )
        )
    return RowOutcome.ok(sanitize_record(schema, record))


def extract_records(dump_text: str, schema: EntitySchema) -> ExtractionResult:
    """
    Extract every row of `schema`'s table from the dump.

    Rows with too few columns are logged and dropped without a skip entry;
    rows failing validation come back as validation skips. Schemas with a
    row filter silently drop the rows it rejects.
    """
    logger.info(
        "Starting %s parsing (content_size=%d)", schema.entity_type, len(dump_text)
    )
    result = ExtractionResult(entity_type=schema.entity_type)

    for statement in iter_insert_values(dump_text, schema.table_name):
        result.statements += 1
        rows: List[List[str]] = split_value_rows(statement.values_text)
        logger.info(
            "Parsing %s values from line %d (rows_found=%d)",
            schema.entity_type,
            statement.line_number,
            len(rows),
        )

        for tokens in rows:
            result.rows_seen += 1
            try:
                record = map_row(schema, tokens)
            except RowShapeError as exc:
                result.malformed_rows += 1
                logger.warning("%s (first values: %s)", exc.message, tokens[:PREVIEW_TOKENS])
                continue

            if schema.row_filter is not None and not schema.row_filter(record):
                result.filtered_rows += 1
                continue

            result.add(build_row_outcome(schema, record))

    logger.info(
        "%s parsing completed: %d valid, %d rejected, %d malformed, %d filtered (statements=%d)",
        schema.entity_type,
        len(result.records),
        len(result.skipped),
        result.malformed_rows,
        result.filtered_rows,
        result.statements,
    )
    return result
