"""
Exceptions raised by the SQL dump import pipeline.

Only `ImportFatalError` (and its subclasses) aborts a job. The others are
raised at the row or statement level and are handled where they occur.
"""
from typing import Optional


class SqlParseError(Exception):
    """A statement or row could not be tokenized (e.g. unterminated quote)."""

    def __init__(self, message: str, fragment: Optional[str] = None):
        self.fragment = fragment
        self.message = message
        super().__init__(self.message)


class RowShapeError(Exception):
    """A row produced fewer tokens than its entity schema requires."""

    def __init__(self, entity_type: str, expected: int, actual: int):
        self.entity_type = entity_type
        self.expected = expected
        self.actual = actual
        self.message = (
            f"{entity_type} row has insufficient columns: expected {expected}, got {actual}"
        )
        super().__init__(self.message)


class ImportFatalError(Exception):
    """The job cannot continue; progress moves to the -1 sentinel."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ImportCancelledError(ImportFatalError):
    """The job was cancelled between chunks."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__("Import cancelled")
