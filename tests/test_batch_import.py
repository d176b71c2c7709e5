import pytest
from sqlalchemy import func, select

from app.db.models import Customer, Subscription
from app.domain.imports.batch import BatchImporter, load_known_parent_ids
from app.domain.imports.entities import CUSTOMERS, SUBSCRIPTIONS
from app.domain.imports.errors import ImportCancelledError
from app.domain.imports.extraction import extract_records
from app.domain.imports.outcomes import SkipReason
from tests.utils.sql_dumps import build_dump, customer_row, insert_statement, subscription_row


def _count(engine, model):
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(model.__table__)).scalar()


def _customers(*ids):
    return extract_records(build_dump(insert_statement("customers", [customer_row(i) for i in ids])), CUSTOMERS)


def test_bulk_upsert_imports_every_record(engine, batch_importer):
    result = batch_importer.import_entity("job", CUSTOMERS, _customers("C1", "C2", "C3"), 40, 65)

    assert (result.imported, result.skipped, result.total) == (3, 0, 3)
    assert result.skipped_records == []
    assert not result.has_more_skipped
    assert _count(engine, Customer) == 3


def test_reimport_updates_instead_of_duplicating(engine, batch_importer):
    batch_importer.import_entity("job-1", CUSTOMERS, _customers("C1"), 40, 65)
    renamed = extract_records(
        build_dump(insert_statement("customers", [customer_row("C1", name="Renamed")])), CUSTOMERS
    )
    batch_importer.import_entity("job-2", CUSTOMERS, renamed, 40, 65)

    with engine.connect() as conn:
        names = conn.execute(select(Customer.__table__.c.customer_name)).scalars().all()
    assert names == ["Renamed"]


def test_chunk_progress_and_delay_between_chunks(engine, progress, errors, cancellation):
    sleeps = []
    importer = BatchImporter(
        engine,
        progress,
        errors,
        cancellation,
        chunk_size=2,
        chunk_delay_seconds=0.1,
        statement_timeout_seconds=0,
        sleep=sleeps.append,
    )
    seen = []
    original_update = progress.update

    def tracking_update(job_id, percentage, message):
        seen.append((percentage, message))
        return original_update(job_id, percentage, message)

    progress.update = tracking_update

    result = importer.import_entity("job", CUSTOMERS, _customers("C1", "C2", "C3", "C4", "C5"), 40, 65)

    assert result.imported == 5
    assert sleeps == [0.1, 0.1]
    assert seen == [
        (48, "Chunk 1/3: 2 customers imported, 0 skipped"),
        (56, "Chunk 2/3: 4 customers imported, 0 skipped"),
        (65, "Chunk 3/3: 5 customers imported, 0 skipped"),
    ]


def test_failing_record_falls_back_without_losing_the_chunk(engine, batch_importer, errors):
    batch_importer.import_entity("job", CUSTOMERS, _customers("C1"), 40, 65)
    dump = build_dump(
        insert_statement(
            "subscriptions",
            [
                subscription_row("S1", "C1"),
                subscription_row("S2", "C1", password=None),
                subscription_row("S3", "C1"),
            ],
        )
    )
    extraction = extract_records(dump, SUBSCRIPTIONS)

    result = batch_importer.import_entity(
        "job", SUBSCRIPTIONS, extraction, 70, 95, known_parent_ids={"C1"}
    )

    assert (result.imported, result.skipped, result.total) == (2, 1, 3)
    skipped = result.skipped_records[0]
    assert skipped.identifying_id == "S2"
    assert skipped.reason == SkipReason.PERSISTENCE
    assert skipped.related_id == "C1"
    assert "INSERT INTO" not in skipped.details
    assert _count(engine, Subscription) == 2
    assert [r.identifying_id for r in errors.get("job", "subscriptions")] == ["S2"]


def test_unknown_parent_is_skipped_as_referential(engine, batch_importer):
    batch_importer.import_entity("job", CUSTOMERS, _customers("P1"), 40, 65)
    extraction = extract_records(
        build_dump(insert_statement("subscriptions", [subscription_row("C1", "P1"), subscription_row("C2", "P999")])),
        SUBSCRIPTIONS,
    )

    result = batch_importer.import_entity(
        "job", SUBSCRIPTIONS, extraction, 70, 95, known_parent_ids=load_known_parent_ids(engine, CUSTOMERS)
    )

    assert (result.imported, result.skipped) == (1, 1)
    skipped = result.skipped_records[0]
    assert skipped.identifying_id == "C2"
    assert skipped.reason == SkipReason.REFERENTIAL
    assert skipped.details == "Customer ID does not exist in database"
    assert skipped.related_id == "P999"


def test_inline_skipped_records_are_capped(engine, progress, errors, cancellation):
    importer = BatchImporter(
        engine, progress, errors, cancellation, chunk_delay_seconds=0, statement_timeout_seconds=0, inline_limit=2
    )
    extraction = extract_records(
        build_dump(insert_statement("subscriptions", [subscription_row(f"S{i}", "NOPE") for i in range(5)])),
        SUBSCRIPTIONS,
    )

    result = importer.import_entity("job", SUBSCRIPTIONS, extraction, 70, 95, known_parent_ids=set())

    assert result.skipped == 5
    assert len(result.skipped_records) == 2
    assert result.has_more_skipped
    assert len(errors.get("job", "subscriptions")) == 5


def test_cancellation_stops_before_next_chunk(engine, progress, errors, cancellation):
    importer = BatchImporter(
        engine,
        progress,
        errors,
        cancellation,
        chunk_size=1,
        chunk_delay_seconds=0.1,
        statement_timeout_seconds=0,
        sleep=lambda _: cancellation.request("job"),
    )

    with pytest.raises(ImportCancelledError):
        importer.import_entity("job", CUSTOMERS, _customers("C1", "C2", "C3"), 40, 65)

    assert _count(engine, Customer) == 1
