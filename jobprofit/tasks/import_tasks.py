"""Celery tasks for importing uploaded export pairs."""
import logging
import os

from jobprofit.database import SessionLocal
from jobprofit.services.importer import BatchImporter
from jobprofit.services.progress import publish_progress
from jobprofit.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True)
def process_import(self, jobs_path: str, invoices_path: str) -> dict:
    """
    Import an uploaded jobs/invoices pair in the background.

    Args:
        self: Celery task instance
        jobs_path: Local path to the jobs CSV
        invoices_path: Local path to the invoices CSV

    Returns:
        ImportResult as a dict
    """
    task_id = self.request.id
    logger.info(f"🚀 Starting import task {task_id}: jobs={jobs_path}, invoices={invoices_path}")
    publish_progress(task_id, "processing")

    db = SessionLocal()
    try:
        result = BatchImporter(db).import_files(jobs_path, invoices_path)
        payload = result.to_dict()
        publish_progress(task_id, "completed", result=payload)
        logger.info(f"🎉 Import task {task_id} finished: batch {result.batch_id}")
        return payload

    except Exception as e:
        logger.error(f"💥 Import task {task_id} failed: {e}", exc_info=True)
        publish_progress(task_id, "failed", error=str(e))
        raise

    finally:
        db.close()

        for path in (jobs_path, invoices_path):
            try:
                if os.path.exists(path):
                    os.remove(path)
            except OSError as cleanup_error:
                logger.warning(f"⚠️ Failed to clean up temp file {path}: {cleanup_error}")
