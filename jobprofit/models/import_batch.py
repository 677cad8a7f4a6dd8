"""Import batch model: one row per attempted import of a jobs/invoices file pair."""
from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from jobprofit.database import Base

STATUS_PENDING = "pending"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


class ImportBatch(Base):
    """Model for tracking import runs of a jobs/invoices file pair."""

    __tablename__ = "import_batches"

    id = Column(Integer, primary_key=True, index=True)
    job_report_filename = Column(Text, nullable=False)
    invoice_report_filename = Column(Text, nullable=False)
    job_report_hash = Column(String(64), nullable=False)
    invoice_report_hash = Column(String(64), nullable=False)
    imported_at = Column(DateTime, server_default=func.now(), nullable=False)
    row_count_jobs = Column(Integer, default=0, nullable=False)
    row_count_invoices = Column(Integer, default=0, nullable=False)
    status = Column(
        String(20), nullable=False, default=STATUS_PENDING
    )  # pending, success, failed
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "job_report_hash", "invoice_report_hash", name="uq_import_batches_hashes"
        ),
        CheckConstraint(
            "status IN ('pending', 'success', 'failed')", name="ck_import_batches_status"
        ),
    )

    def __repr__(self):
        return f"<ImportBatch(id={self.id}, status='{self.status}')>"
