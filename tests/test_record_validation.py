"""
Validation, sanitization and row outcome tests.
"""
from app.domain.imports.entities import CUSTOMERS, MAINTENANCES, SUBSCRIPTIONS
from app.domain.imports.extraction import build_row_outcome, extract_records
from app.domain.imports.outcomes import SkipReason
from app.domain.imports.sanitizer import (
    sanitize_error_message,
    sanitize_record,
    truncate_value,
)
from app.domain.imports.validators import validate_record, validate_with_preset
from tests.utils.sql_dumps import (
    build_dump,
    customer_row,
    insert_statement,
    maintenance_row,
    subscription_row,
)


def test_validate_with_preset_identifier():
    assert validate_with_preset("C-1_a", "identifier") == (True, None)
    is_valid, message = validate_with_preset("C 1", "identifier")
    assert not is_valid
    assert "does not match" in message
    assert validate_with_preset(None, "identifier", allow_null=False) == (False, "Value is required")


def test_validate_record_accepts_valid_customer():
    assert validate_record(CUSTOMERS, {"customer_id": "C1", "customer_name": "Alice"}) == []


def test_validate_record_names_every_failed_check():
    errors = validate_record(SUBSCRIPTIONS, {"subscription_id": None, "customer_id": "bad id!"})
    assert errors == ["Missing subscription ID", "Invalid customer ID format"]


def test_validate_record_blank_name_is_missing():
    errors = validate_record(CUSTOMERS, {"customer_id": "C1", "customer_name": "   "})
    assert errors == ["Missing customer name"]


def test_build_row_outcome_validation_skip_keeps_related_id():
    outcome = build_row_outcome(SUBSCRIPTIONS, {"subscription_id": "", "customer_id": "C1"})

    assert not outcome.is_ok
    assert outcome.skipped.reason == SkipReason.VALIDATION
    assert outcome.skipped.identifying_id == "unknown"
    assert outcome.skipped.related_id == "C1"
    assert "Missing subscription ID" in outcome.skipped.details


def test_truncate_value_is_exactly_limit_characters():
    value = "x" * 300
    truncated = truncate_value(value, 255)
    assert len(truncated) == 255
    assert truncated.endswith("...")
    assert truncated[:252] == "x" * 252


def test_truncate_value_leaves_short_values_alone():
    assert truncate_value("x" * 255, 255) == "x" * 255


def test_sanitize_record_truncates_configured_fields_only():
    record = {
        "customer_id": "C1",
        "customer_name": "n" * 400,
        "customer_ktp_picture": "p" * 400,
    }
    sanitized = sanitize_record(CUSTOMERS, record)

    assert len(sanitized["customer_name"]) == 255
    assert sanitized["customer_ktp_picture"] == "p" * 400
    assert record["customer_name"] == "n" * 400


def test_sanitize_error_message_strips_sql_and_parameters():
    raw = (
        "(psycopg2.errors.NotNullViolation) null value in column \"serv_id\" violates not-null constraint\n"
        "[SQL: INSERT INTO subscriptions (subscription_id) VALUES (%(subscription_id)s)]\n"
        "[parameters: {'subscription_id': 'S1'}]\n"
        "(Background on this error at: https://sqlalche.me/e/20/gkpj)"
    )
    message = sanitize_error_message(raw)

    assert "INSERT INTO" not in message
    assert "parameters" not in message
    assert "sqlalche.me" not in message
    assert "violates not-null constraint" in message


def test_sanitize_error_message_strips_sqlstate_and_credentials():
    raw = "SQLSTATE[23000]: could not connect to postgresql://admin:hunter2@db:5432/app"
    message = sanitize_error_message(raw)

    assert "SQLSTATE" not in message
    assert "hunter2" not in message
    assert "postgresql://***@db:5432/app" in message


def test_sanitize_error_message_caps_length_and_defaults_when_empty():
    assert sanitize_error_message("e" * 500) == "e" * 200 + "..."
    assert sanitize_error_message("[SQL: SELECT 1]") == "Database constraint violation"


def test_extract_records_counts_validation_skips_and_malformed_rows():
    dump = build_dump(
        insert_statement(
            "customers",
            [customer_row("C1"), customer_row(None), "('C3','short')", customer_row("C 4")],
        )
    )
    result = extract_records(dump, CUSTOMERS)

    assert [record["customer_id"] for record in result.records] == ["C1"]
    assert [skip.identifying_id for skip in result.skipped] == ["unknown", "C 4"]
    assert result.malformed_rows == 1
    assert result.rows_seen == 4
    assert result.total == 3


def test_extract_records_only_keeps_sales_maintenances():
    dump = build_dump(
        insert_statement(
            "maintenances",
            [maintenance_row("T1"), maintenance_row("T2", subject="network"), maintenance_row("T3", subject=" SALES ")],
        )
    )
    result = extract_records(dump, MAINTENANCES)

    assert [record["ticket_id"] for record in result.records] == ["T1", "T3"]
    assert result.filtered_rows == 1


def test_extract_records_subscriptions_from_multiline_statement():
    dump = build_dump(
        insert_statement("customers", [customer_row("C1")]),
        insert_statement(
            "subscriptions",
            [subscription_row("S1", "C1"), subscription_row("S2", "C1")],
            multiline=True,
        ),
    )
    result = extract_records(dump, SUBSCRIPTIONS)

    assert [record["subscription_id"] for record in result.records] == ["S1", "S2"]
    assert result.statements == 1
