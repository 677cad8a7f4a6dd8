"""Post-import data quality checks."""
import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from jobprofit.models.invoice import Invoice
from jobprofit.models.job import Job

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Advisory findings; never fatal to an import."""

    jobs_without_invoices: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def validate_import(db: Session, batch_id: int) -> ValidationResult:
    """
    Check the jobs of one batch for data quality problems.

    Args:
        db: Database session (inside the import transaction)
        batch_id: Batch to check

    Returns:
        ValidationResult with job ids lacking invoices and warning text
    """
    result = ValidationResult()

    rows = (
        db.query(Job.id)
        .outerjoin(Invoice, Invoice.job_id == Job.id)
        .filter(Job.import_batch_id == batch_id, Invoice.id.is_(None))
        .order_by(Job.id)
        .all()
    )
    result.jobs_without_invoices = [job_id for (job_id,) in rows]

    if result.jobs_without_invoices:
        result.warnings.append(
            f"Found {len(result.jobs_without_invoices)} jobs without invoices"
        )
        logger.warning(f"⚠️ Batch {batch_id}: {len(result.jobs_without_invoices)} jobs without invoices")

    return result
