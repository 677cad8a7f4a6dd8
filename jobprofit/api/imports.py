"""Import API endpoints."""
import logging
import uuid
from pathlib import Path

from celery.result import AsyncResult
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from jobprofit.config import get_settings
from jobprofit.database import get_db
from jobprofit.schemas.imports import (
    ImportBatchResponse,
    ImportQueuedResponse,
    ImportTaskResponse,
)
from jobprofit.services.reports import get_import_batch, list_import_batches
from jobprofit.tasks.celery_app import celery_app
from jobprofit.tasks.import_tasks import process_import

router = APIRouter(prefix="/api/imports", tags=["imports"])

settings = get_settings()
logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 100 * 1024 * 1024  # 100MB
CHUNK_SIZE = 8192


async def _save_upload(file: UploadFile, destination: Path) -> int:
    """Stream an upload to disk in chunks; returns bytes written."""
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Only CSV files are allowed")

    written = 0
    with open(destination, "wb") as buffer:
        content = await file.read(CHUNK_SIZE)
        while content:
            written += len(content)
            if written > MAX_UPLOAD_BYTES:
                raise HTTPException(status_code=413, detail="File too large (max 100MB)")
            buffer.write(content)
            content = await file.read(CHUNK_SIZE)
    return written


@router.post("", response_model=ImportQueuedResponse, status_code=202)
async def upload_import(
    jobs_file: UploadFile = File(...),
    invoices_file: UploadFile = File(...),
):
    """
    Upload a jobs report and its invoices report, then import them in the background.

    Poll /api/imports/tasks/{task_id} for the outcome.
    """
    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)

    upload_id = uuid.uuid4().hex
    jobs_path = upload_dir / f"{upload_id}_jobs.csv"
    invoices_path = upload_dir / f"{upload_id}_invoices.csv"

    try:
        jobs_bytes = await _save_upload(jobs_file, jobs_path)
        invoices_bytes = await _save_upload(invoices_file, invoices_path)
    except HTTPException:
        jobs_path.unlink(missing_ok=True)
        invoices_path.unlink(missing_ok=True)
        raise

    logger.info(f"📁 Saved upload {upload_id}: jobs={jobs_bytes} bytes, invoices={invoices_bytes} bytes")

    task = process_import.delay(str(jobs_path), str(invoices_path))
    logger.info(f"🚀 Queued import task {task.id}")

    return ImportQueuedResponse(task_id=task.id, status="processing")


@router.get("/tasks/{task_id}", response_model=ImportTaskResponse)
def get_import_task(task_id: str):
    """Celery state of a queued import, with the import result once finished."""
    task = AsyncResult(task_id, app=celery_app)
    result, error = None, None
    if task.successful():
        result = task.result
    elif task.failed():
        error = str(task.result)
    return ImportTaskResponse(task_id=task_id, state=task.state, result=result, error=error)


@router.get("", response_model=list[ImportBatchResponse])
def list_imports(
    limit: int = Query(20, ge=1, le=200, description="Number of batches"),
    db: Session = Depends(get_db),
):
    """Import history, most recent first."""
    return list_import_batches(db, limit)


@router.get("/{batch_id}", response_model=ImportBatchResponse)
def get_import(batch_id: int, db: Session = Depends(get_db)):
    """Get one import batch."""
    batch = get_import_batch(db, batch_id)
    if not batch:
        raise HTTPException(status_code=404, detail="Import batch not found")
    return batch
