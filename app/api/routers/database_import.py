"""
Endpoints for uploading SQL dumps and polling their import.
"""
from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile

from app.api.dependencies import get_import_service
from app.api.schemas.database_import import (
    ImportProgressResponse,
    ImportResultsResponse,
    ImportStartedResponse,
    SkippedRecordsResponse,
)
from app.core.config import settings
from app.domain.imports.orchestrator import IMPORT_TYPES, DatabaseImportService

router = APIRouter(prefix="/database-import", tags=["database-import"])

MAX_UPLOAD_BYTES = settings.upload_max_file_size_mb * 1024 * 1024

EntityType = Literal["customers", "subscriptions", "maintenances"]


def _ensure_within_size_limit(file_size: int, file_name: str) -> None:
    """Raise an HTTPException if a file exceeds the configured upload limit."""
    if file_size > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=(
                f"{file_name} is too large. "
                f"Maximum allowed upload size is {settings.upload_max_file_size_mb}MB."
            ),
        )


@router.post("/upload", response_model=ImportStartedResponse)
async def upload_sql_dump(
    background_tasks: BackgroundTasks,
    sql_file: UploadFile = File(...),
    import_type: str = Form("customers_subscriptions"),
    service: DatabaseImportService = Depends(get_import_service),
):
    """
    Upload a SQL dump and import it in the background.

    Poll `/database-import/progress/{progress_id}` with the returned id.
    """
    if import_type not in IMPORT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported import type '{import_type}'. Options: {', '.join(IMPORT_TYPES)}",
        )

    content = await sql_file.read()
    _ensure_within_size_limit(len(content), sql_file.filename or "sql_file")
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded SQL file is empty")

    started = service.start_async_import(content, import_type, background_tasks)
    return ImportStartedResponse(**started)


@router.get("/progress/{progress_id}", response_model=ImportProgressResponse)
async def get_import_progress(
    progress_id: str,
    service: DatabaseImportService = Depends(get_import_service),
):
    return ImportProgressResponse(**service.get_progress(progress_id))


@router.get("/skipped/{progress_id}/{entity_type}", response_model=SkippedRecordsResponse)
async def get_skipped_records(
    progress_id: str,
    entity_type: EntityType,
    service: DatabaseImportService = Depends(get_import_service),
):
    records = service.get_skipped(progress_id, entity_type)
    return SkippedRecordsResponse(
        progress_id=progress_id,
        entity_type=entity_type,
        skipped_records=[record.to_dict() for record in records],
        total_count=len(records),
    )


@router.get("/results/{progress_id}", response_model=ImportResultsResponse)
async def get_import_results(
    progress_id: str,
    service: DatabaseImportService = Depends(get_import_service),
):
    results = service.get_results(progress_id)
    if results is None:
        raise HTTPException(status_code=404, detail="Import results not found")
    return ImportResultsResponse(**results)


@router.post("/cancel/{progress_id}", response_model=ImportProgressResponse)
async def cancel_import(
    progress_id: str,
    service: DatabaseImportService = Depends(get_import_service),
):
    """Request cancellation; the job stops before its next chunk."""
    return ImportProgressResponse(**service.cancel(progress_id))
