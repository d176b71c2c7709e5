"""
Positional mapping of tokenized dump rows onto entity records.

Tokens arrive exactly as the tokenizer produced them (quotes included);
each schema column kind decides how its token is coerced.
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.utils.date import parse_sql_datetime

from .entities import BOOLEAN, INTEGER, NULLABLE_DATE, STRING, TIMESTAMP, EntitySchema
from .errors import RowShapeError

logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "on"}

_BACKSLASH_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "0": "\0",
    "Z": "\x1a",
    "b": "\b",
}

_LEADING_INTEGER = re.compile(r"^\s*([+-]?\d+)")


def _unescape_literal(body: str, quote_char: str) -> str:
    """Undo SQL string escaping: doubled quotes and backslash sequences."""
    if "\\" not in body and quote_char * 2 not in body:
        return body

    result: List[str] = []
    i = 0
    length = len(body)
    while i < length:
        char = body[i]
        if char == "\\" and i + 1 < length:
            nxt = body[i + 1]
            result.append(_BACKSLASH_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        if char == quote_char and i + 1 < length and body[i + 1] == quote_char:
            result.append(quote_char)
            i += 2
            continue
        result.append(char)
        i += 1
    return "".join(result)


def clean_value(token: Optional[str]) -> Optional[str]:
    """
    Turn a raw token into its string value.

    The bare keyword NULL and empty values become None. One layer of
    matching surrounding quotes is removed and the literal is unescaped.
    """
    if token is None:
        return None

    token = token.strip()
    if token == "" or token.upper() == "NULL":
        return None

    first = token[0]
    if first in ("'", '"') and len(token) >= 2 and token[-1] == first:
        value = _unescape_literal(token[1:-1], first)
        return value if value != "" else None

    return token


def parse_boolean(token: Optional[str]) -> Optional[bool]:
    cleaned = clean_value(token)
    if cleaned is None:
        return None
    return cleaned.strip().lower() in TRUE_VALUES


def parse_timestamp(token: Optional[str], column: Optional[str] = None) -> Optional[datetime]:
    return parse_sql_datetime(clean_value(token), log_context=column)


def parse_integer(token: Optional[str]) -> int:
    """Absent values map to 0; otherwise the leading integer prefix, or 0."""
    cleaned = clean_value(token)
    if cleaned is None:
        return 0
    match = _LEADING_INTEGER.match(cleaned)
    if not match:
        return 0
    return int(match.group(1))


def coerce_token(token: Optional[str], kind: str, column: Optional[str] = None) -> Any:
    if kind == STRING:
        return clean_value(token)
    if kind == BOOLEAN:
        return parse_boolean(token)
    if kind in (TIMESTAMP, NULLABLE_DATE):
        return parse_timestamp(token, column)
    if kind == INTEGER:
        return parse_integer(token)
    raise ValueError(f"Unknown column kind '{kind}' for column '{column}'")


def map_row(schema: EntitySchema, tokens: List[str]) -> Dict[str, Any]:
    """
    Map one token list onto a record dict keyed by the schema's column names.

    Extra trailing tokens are ignored.

    Raises:
        RowShapeError: if the row has fewer tokens than the schema needs.
    """
    if len(tokens) < schema.column_count:
        raise RowShapeError(schema.entity_type, schema.column_count, len(tokens))

    return {
        name: coerce_token(tokens[position], kind, name)
        for position, (name, kind) in enumerate(schema.columns)
    }
