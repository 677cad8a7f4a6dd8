"""Content fingerprints for import file pairs."""
import hashlib
from pathlib import Path
from typing import Optional

from sqlalchemy.orm import Session

from jobprofit.models.import_batch import ImportBatch

CHUNK_SIZE = 64 * 1024


def calculate_file_hash(path) -> str:
    """Return the SHA-256 hex digest of a file's contents."""
    digest = hashlib.sha256()
    with open(Path(path), "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def calculate_file_hashes(jobs_path, invoices_path) -> tuple[str, str]:
    """
    Hash both files of an import pair.

    Args:
        jobs_path: Path to the jobs CSV
        invoices_path: Path to the invoices CSV

    Returns:
        Tuple of (jobs_hash, invoices_hash); order matters
    """
    return calculate_file_hash(jobs_path), calculate_file_hash(invoices_path)


def find_batch_by_hashes(db: Session, jobs_hash: str, invoices_hash: str) -> Optional[ImportBatch]:
    """Look up the batch registered for this exact file pair, if any."""
    return (
        db.query(ImportBatch)
        .filter(
            ImportBatch.job_report_hash == jobs_hash,
            ImportBatch.invoice_report_hash == invoices_hash,
        )
        .first()
    )
