"""
Parsing of mysqldump-style `INSERT INTO <table> VALUES (...),(...);` text.

Three layers, leaf first:

- `tokenize_row` splits the inside of one `( ... )` tuple into raw literal
  tokens, keeping their surrounding quotes.
- `split_value_rows` splits a whole VALUES clause into tuples and tokenizes
  each one.
- `iter_insert_values` scans a dump line by line, reassembles statements
  that span several lines and yields the VALUES clause of each statement
  that targets the requested table.
"""
import logging
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional

from .errors import SqlParseError

logger = logging.getLogger(__name__)

QUOTE_CHARS = ("'", '"')

# Row boundary inside a VALUES clause: "),(" with optional whitespace/line breaks.
ROW_BOUNDARY_PATTERN = re.compile(r"\),\s*\(")

# Header of an INSERT into any table; ends whatever statement is still open.
ANY_INSERT_PATTERN = re.compile(r"^INSERT\s+INTO\b", re.IGNORECASE)

PREVIEW_LENGTH = 80


@dataclass
class InsertStatement:
    """The VALUES clause of one complete INSERT statement."""
    table_name: str
    line_number: int
    values_text: str


def _preview(text: str) -> str:
    if len(text) <= PREVIEW_LENGTH:
        return text
    return text[:PREVIEW_LENGTH] + "..."


def tokenize_row(row: str) -> List[str]:
    """
    Split one value tuple into raw tokens.

    Quotes are kept on the tokens so that later stages can tell the string
    `'NULL'` from the bare keyword NULL. Inside a quoted region a backslash
    escapes the next character and a doubled quote (``''``) is a literal
    quote; both leave the scanner inside the string.

    Raises:
        SqlParseError: if a quoted region is never closed.
    """
    tokens: List[str] = []
    current: List[str] = []
    quote_char: Optional[str] = None
    i = 0
    length = len(row)

    while i < length:
        char = row[i]

        if quote_char is None:
            if char in QUOTE_CHARS:
                quote_char = char
                current.append(char)
            elif char == ",":
                tokens.append("".join(current).strip())
                current = []
            else:
                current.append(char)
            i += 1
            continue

        if char == "\\" and i + 1 < length:
            current.append(char)
            current.append(row[i + 1])
            i += 2
            continue

        if char == quote_char:
            if i + 1 < length and row[i + 1] == quote_char:
                current.append(char)
                current.append(char)
                i += 2
                continue
            quote_char = None

        current.append(char)
        i += 1

    if quote_char is not None:
        raise SqlParseError(
            f"Unterminated {quote_char} quote in row", fragment=_preview(row)
        )

    last = "".join(current).strip()
    if last:
        tokens.append(last)

    return tokens


def split_value_rows(values_text: str) -> List[List[str]]:
    """
    Split a VALUES clause into per-row token lists.

    Literal values are already quote-escaped in a dump, so an unescaped
    "),(" can only occur between rows. Rows that fail to tokenize are
    dropped and logged; the rest of the statement is still returned.
    """
    values_text = values_text.strip()
    if not values_text:
        return []

    fragments = ROW_BOUNDARY_PATTERN.split(values_text)
    fragments[0] = fragments[0].lstrip("(")
    fragments[-1] = fragments[-1].rstrip(")")

    rows: List[List[str]] = []
    for index, fragment in enumerate(fragments):
        fragment = fragment.strip()
        if not fragment:
            continue
        try:
            rows.append(tokenize_row(fragment))
        except SqlParseError as exc:
            logger.warning(
                "Dropping row %d of VALUES clause: %s (fragment: %s)",
                index + 1,
                exc.message,
                exc.fragment,
            )

    return rows


def _statement_start_pattern(table_name: str) -> "re.Pattern[str]":
    return re.compile(
        r"^INSERT\s+INTO\s+[`\"]?" + re.escape(table_name) + r"[`\"]?\s*(?:\([^)]*\))?\s*VALUES",
        re.IGNORECASE,
    )


def _extract_values_clause(statement: str, start_pattern: "re.Pattern[str]") -> str:
    match = start_pattern.match(statement)
    if not match:
        raise SqlParseError("INSERT statement header not found", fragment=_preview(statement))
    body = statement[match.end():].rstrip()
    if not body.endswith(";"):
        raise SqlParseError("INSERT statement is not terminated", fragment=_preview(statement))
    return body[:-1].strip()


def iter_insert_values(dump_text: str, table_name: str) -> Iterator[InsertStatement]:
    """
    Yield the VALUES clause of every `INSERT INTO <table_name>` statement.

    A statement starts on a line that begins with the INSERT header and ends
    on the first line whose trimmed content ends with ";". Continuation
    lines are joined with a single space. Statements for other tables are
    ignored; a statement left open at the end of the dump is dropped.
    """
    start_pattern = _statement_start_pattern(table_name)
    buffer: List[str] = []
    start_line = 0

    for line_number, raw_line in enumerate(dump_text.splitlines(), start=1):
        line = raw_line.strip()

        if start_pattern.match(line):
            if buffer:
                logger.warning(
                    "Dropping unterminated INSERT INTO %s starting at line %d",
                    table_name,
                    start_line,
                )
            buffer = [line]
            start_line = line_number
            logger.debug("Found %s INSERT at line %d", table_name, line_number)
        elif buffer and ANY_INSERT_PATTERN.match(line):
            logger.warning(
                "Dropping unterminated INSERT INTO %s starting at line %d",
                table_name,
                start_line,
            )
            buffer = []
            continue
        elif buffer:
            buffer.append(line)
        else:
            continue

        if line.endswith(";"):
            statement = " ".join(buffer)
            buffer = []
            try:
                values_text = _extract_values_clause(statement, start_pattern)
            except SqlParseError as exc:
                logger.warning(
                    "Skipping INSERT INTO %s at line %d: %s", table_name, start_line, exc.message
                )
                continue
            yield InsertStatement(
                table_name=table_name,
                line_number=start_line,
                values_text=values_text,
            )

    if buffer:
        logger.warning(
            "Dropping unterminated INSERT INTO %s starting at line %d (end of input)",
            table_name,
            start_line,
        )
