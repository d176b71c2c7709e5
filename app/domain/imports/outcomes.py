"""
Value types passed between the import stages.
"""
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SkipReason(str, Enum):
    VALIDATION = "validation"
    REFERENTIAL = "referential"
    PERSISTENCE = "persistence"


@dataclass
class SkippedRecord:
    """Why one input row was not persisted."""
    entity_type: str
    identifying_id: str
    reason: SkipReason
    details: str
    related_id: Optional[str] = None  # e.g. the customer of a skipped subscription

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["reason"] = self.reason.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SkippedRecord":
        return cls(
            entity_type=data["entity_type"],
            identifying_id=data["identifying_id"],
            reason=SkipReason(data["reason"]),
            details=data.get("details", ""),
            related_id=data.get("related_id"),
        )


@dataclass
class RowOutcome:
    """Result of extracting one row: either a record or the reason it was skipped."""
    record: Optional[Dict[str, Any]] = None
    skipped: Optional[SkippedRecord] = None

    @classmethod
    def ok(cls, record: Dict[str, Any]) -> "RowOutcome":
        return cls(record=record)

    @classmethod
    def skip(cls, skipped: SkippedRecord) -> "RowOutcome":
        return cls(skipped=skipped)

    @property
    def is_ok(self) -> bool:
        return self.skipped is None


@dataclass
class ExtractionResult:
    """Records extracted for one entity type plus the rows rejected on the way."""
    entity_type: str
    records: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)
    statements: int = 0
    rows_seen: int = 0
    malformed_rows: int = 0
    filtered_rows: int = 0

    @property
    def total(self) -> int:
        """Rows that reached validation."""
        return len(self.records) + len(self.skipped)

    def add(self, outcome: RowOutcome) -> None:
        if outcome.is_ok:
            self.records.append(outcome.record)
        else:
            self.skipped.append(outcome.skipped)


@dataclass
class EntityImportResult:
    imported: int
    skipped: int
    total: int
    skipped_records: List[SkippedRecord]
    has_more_skipped: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imported": self.imported,
            "skipped": self.skipped,
            "total": self.total,
            "skipped_records": [record.to_dict() for record in self.skipped_records],
            "has_more_skipped": self.has_more_skipped,
        }
