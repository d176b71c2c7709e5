from typing import List, Optional

from pydantic import BaseModel


class ImportStartedResponse(BaseModel):
    """Returned as soon as an upload has been scheduled."""
    progress_id: str
    status: str
    message: str
    import_type: str


class ImportProgressResponse(BaseModel):
    percentage: int
    message: str
    updated_at: str


class SkippedRecordInfo(BaseModel):
    entity_type: str
    identifying_id: str
    reason: str
    details: str
    related_id: Optional[str] = None


class EntityImportSummary(BaseModel):
    """Per-entity outcome of a finished import."""
    imported: int
    skipped: int
    total: int
    skipped_records: List[SkippedRecordInfo]
    has_more_skipped: bool


class ImportResultsResponse(BaseModel):
    progress_id: str
    customers: Optional[EntityImportSummary] = None
    subscriptions: Optional[EntityImportSummary] = None
    maintenances: Optional[EntityImportSummary] = None


class SkippedRecordsResponse(BaseModel):
    progress_id: str
    entity_type: str
    skipped_records: List[SkippedRecordInfo]
    total_count: int
