import pytest

from app.domain.imports.errors import SqlParseError
from app.domain.imports.sql_dump import iter_insert_values, split_value_rows, tokenize_row


def test_tokenize_row_keeps_quotes_and_trims_whitespace():
    assert tokenize_row("'C1', 'Alice' ,NULL, 42") == ["'C1'", "'Alice'", "NULL", "42"]


def test_tokenize_row_comma_inside_quotes_is_not_a_separator():
    assert tokenize_row("'a,b',\"c,d\",3") == ["'a,b'", '"c,d"', "3"]


def test_tokenize_row_backslash_escaped_quote_stays_inside_string():
    tokens = tokenize_row(r"'it\'s, fine','next'")
    assert tokens == [r"'it\'s, fine'", "'next'"]


def test_tokenize_row_doubled_quote_stays_inside_string():
    tokens = tokenize_row("'O''Brien, Pat','x'")
    assert tokens == ["'O''Brien, Pat'", "'x'"]


def test_tokenize_row_escaped_backslash_before_closing_quote():
    tokens = tokenize_row(r"'C:\\','next'")
    assert tokens == [r"'C:\\'", "'next'"]


def test_tokenize_row_other_quote_char_is_literal_inside_string():
    assert tokenize_row("'say \"hi\"',1") == ["'say \"hi\"'", "1"]


def test_tokenize_row_empty_row_yields_no_tokens():
    assert tokenize_row("") == []


def test_tokenize_row_trailing_token_without_comma_is_emitted():
    assert tokenize_row("1,2,3") == ["1", "2", "3"]


def test_tokenize_row_unterminated_quote_raises():
    with pytest.raises(SqlParseError) as exc_info:
        tokenize_row("'C1','never closed")
    assert "Unterminated" in exc_info.value.message


def test_split_value_rows_handles_line_breaks_between_rows():
    rows = split_value_rows("('C1','A'),\n('C2','B'),  ('C3','C')")
    assert rows == [["'C1'", "'A'"], ["'C2'", "'B'"], ["'C3'", "'C'"]]


def test_split_value_rows_drops_only_the_broken_row():
    rows = split_value_rows("('C1','A'),('C2','unterminated),('C3','C')")
    assert rows == [["'C1'", "'A'"], ["'C3'", "'C'"]]


def test_split_value_rows_empty_clause():
    assert split_value_rows("   ") == []


def test_iter_insert_values_only_yields_requested_table():
    dump = "\n".join(
        [
            "INSERT INTO `customers` VALUES ('C1','A');",
            "INSERT INTO `subscriptions` VALUES ('S1','x','C1');",
            "INSERT INTO `customers_archive` VALUES ('C9','Z');",
        ]
    )
    statements = list(iter_insert_values(dump, "customers"))
    assert len(statements) == 1
    assert statements[0].values_text == "('C1','A')"
    assert statements[0].line_number == 1


def test_iter_insert_values_joins_multiline_statements():
    dump = "\n".join(
        [
            "-- header",
            "INSERT INTO `customers` VALUES ('C1','A'),",
            "('C2','B'),",
            "('C3','C');",
        ]
    )
    statements = list(iter_insert_values(dump, "customers"))
    assert len(statements) == 1
    assert statements[0].line_number == 2
    assert split_value_rows(statements[0].values_text) == [
        ["'C1'", "'A'"],
        ["'C2'", "'B'"],
        ["'C3'", "'C'"],
    ]


def test_iter_insert_values_accepts_column_list_and_case_insensitive_header():
    dump = "insert into maintenances (`ticket_id`,`status`) values ('T1','open');"
    statements = list(iter_insert_values(dump, "maintenances"))
    assert [s.values_text for s in statements] == ["('T1','open')"]


def test_iter_insert_values_drops_statement_open_at_end_of_input():
    dump = "\n".join(
        [
            "INSERT INTO `customers` VALUES ('C1','A');",
            "INSERT INTO `customers` VALUES ('C2','B'),",
            "('C3','C')",
        ]
    )
    statements = list(iter_insert_values(dump, "customers"))
    assert [s.values_text for s in statements] == ["('C1','A')"]


def test_iter_insert_values_unterminated_statement_does_not_swallow_other_tables():
    dump = "\n".join(
        [
            "INSERT INTO `customers` VALUES ('C1','A'),",
            "INSERT INTO `subscriptions` VALUES ('S1','x','C1');",
            "INSERT INTO `customers` VALUES ('C2','B');",
        ]
    )
    statements = list(iter_insert_values(dump, "customers"))
    assert [s.values_text for s in statements] == ["('C2','B')"]
    assert statements[0].line_number == 3
