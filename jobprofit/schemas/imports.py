"""Import request and response schemas."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ImportQueuedResponse(BaseModel):
    """Response after queueing a file pair for import."""

    task_id: str
    status: str
    message: str = "Files uploaded, import running in background"


class ImportResultResponse(BaseModel):
    """Counts and warnings from a finished import."""

    batch_id: int
    already_imported: bool
    jobs_imported: int
    invoices_imported: int
    invoices_skipped: int
    customers_upserted: int
    technicians_imported: int
    job_metrics_calculated: int
    technician_metrics_calculated: int
    duration: float
    warnings: list[str]
    jobs_without_invoices: list[str]


class ImportTaskResponse(BaseModel):
    """State of a queued import task."""

    task_id: str
    state: str
    result: Optional[ImportResultResponse] = None
    error: Optional[str] = None


class ImportBatchResponse(BaseModel):
    """Import batch history entry."""

    id: int
    job_report_filename: str
    invoice_report_filename: str
    job_report_hash: str
    invoice_report_hash: str
    row_count_jobs: int
    row_count_invoices: int
    status: str
    error_message: Optional[str] = None
    imported_at: datetime

    class Config:
        from_attributes = True
