"""Transactional batch import of a jobs/invoices export pair."""
import logging
import time
from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy import func, insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from jobprofit.config import get_settings
from jobprofit.database import dialect_insert, greatest_of, least_of
from jobprofit.models.customer import Customer
from jobprofit.models.import_batch import (
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SUCCESS,
    ImportBatch,
)
from jobprofit.models.invoice import Invoice
from jobprofit.models.job import Job
from jobprofit.services.csv_parser import InvoiceRow, JobRow, parse_invoices_file, parse_jobs_file
from jobprofit.services.hashing import calculate_file_hashes, find_batch_by_hashes
from jobprofit.services.job_metrics import calculate_job_metrics, save_job_metrics
from jobprofit.services.technician_metrics import rebuild_technician_metrics
from jobprofit.services.technicians import (
    NameTechnicianResolver,
    TechnicianResolver,
    import_technicians,
)
from jobprofit.services.validator import ValidationResult, validate_import

logger = logging.getLogger(__name__)


class ImportStepError(Exception):
    """An import step failed and nothing from the run was kept."""

    def __init__(self, step: str, cause: Exception, batch_id: Optional[int] = None):
        self.step = step
        self.cause = cause
        self.batch_id = batch_id
        super().__init__(f"failed to {step}: {cause}")


@dataclass
class ImportResult:
    """Outcome of one import_files call."""

    batch_id: int
    already_imported: bool = False
    jobs_imported: int = 0
    invoices_imported: int = 0
    invoices_skipped: int = 0
    customers_upserted: int = 0
    technicians_imported: int = 0
    job_metrics_calculated: int = 0
    technician_metrics_calculated: int = 0
    duration: float = 0.0  # seconds
    warnings: list[str] = field(default_factory=list)
    jobs_without_invoices: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class _InvoiceCounts:
    imported: int = 0
    skipped: int = 0
    skipped_job_ids: set = field(default_factory=set)


class BatchImporter:
    """
    Import a jobs/invoices CSV pair as a single all-or-nothing transaction.

    Sequence: hash and dedup check, parse, register batch, upsert customers,
    insert jobs, attribute technicians, insert invoices (orphans skipped),
    validate, job metrics, technician metrics, mark success and commit.
    Any failure rolls everything back and leaves only a "failed" batch row.
    Technician metrics are best effort: their failure is logged and the
    import still succeeds.
    """

    def __init__(
        self,
        db: Session,
        resolver_factory: Callable[[Session], TechnicianResolver] = NameTechnicianResolver,
        retry_failed: Optional[bool] = None,
    ):
        self.db = db
        self.resolver_factory = resolver_factory
        if retry_failed is None:
            retry_failed = get_settings().retry_failed_batches
        self.retry_failed = retry_failed

    def import_files(self, jobs_path, invoices_path) -> ImportResult:
        """
        Import one export pair.

        Args:
            jobs_path: Path to the jobs CSV
            invoices_path: Path to the invoices CSV

        Returns:
            ImportResult; already_imported is True when the pair was seen before

        Raises:
            ImportStepError: The named step failed; no business data was written
        """
        started = time.monotonic()
        jobs_path, invoices_path = Path(jobs_path), Path(invoices_path)
        logger.info(f"🚀 Starting import: jobs={jobs_path.name}, invoices={invoices_path.name}")

        try:
            jobs_hash, invoices_hash = calculate_file_hashes(jobs_path, invoices_path)
        except OSError as e:
            raise ImportStepError("calculate file hashes", e) from e

        existing = self._step(
            "check for existing import", find_batch_by_hashes, self.db, jobs_hash, invoices_hash
        )
        if existing is not None and not self._should_retry(existing):
            logger.info(f"ℹ️ Files already imported as batch {existing.id} ({existing.status})")
            return ImportResult(
                batch_id=existing.id,
                already_imported=True,
                duration=time.monotonic() - started,
            )

        try:
            jobs = parse_jobs_file(jobs_path)
            invoices = parse_invoices_file(invoices_path)
        except (ValueError, OSError) as e:
            self.db.rollback()
            raise ImportStepError("parse files", e) from e
        logger.info(f"📖 Parsed {len(jobs)} jobs and {len(invoices)} invoices")

        batch = self._begin_batch(
            existing, jobs_path, invoices_path, jobs_hash, invoices_hash, len(jobs), len(invoices)
        )
        if batch is None:
            winner = self._step(
                "check for existing import", find_batch_by_hashes, self.db, jobs_hash, invoices_hash
            )
            if winner is None:
                raise ImportStepError(
                    "create import batch", RuntimeError("hash pair conflict without a stored batch")
                )
            logger.info(f"ℹ️ Concurrent import registered these files first as batch {winner.id}")
            return ImportResult(
                batch_id=winner.id,
                already_imported=True,
                duration=time.monotonic() - started,
            )
        batch_id = batch.id

        try:
            result = self._run_steps(batch, jobs, invoices)
            batch.status = STATUS_SUCCESS
            batch.error_message = None
            self._step("commit import", self.db.commit)
        except ImportStepError as e:
            logger.error(f"💥 Import failed for batch {batch_id}: {e}", exc_info=True)
            e.batch_id = self._record_failure(
                jobs_path, invoices_path, jobs_hash, invoices_hash, len(jobs), len(invoices), str(e)
            )
            raise

        result.duration = time.monotonic() - started
        logger.info(
            f"🎉 Batch {batch_id} imported: jobs={result.jobs_imported}, "
            f"invoices={result.invoices_imported}, skipped={result.invoices_skipped}, "
            f"duration={result.duration:.2f}s"
        )
        return result

    def _should_retry(self, existing: ImportBatch) -> bool:
        return self.retry_failed and existing.status == STATUS_FAILED

    def _run_steps(self, batch: ImportBatch, jobs: list[JobRow], invoices: list[InvoiceRow]) -> ImportResult:
        result = ImportResult(batch_id=batch.id)

        result.customers_upserted = self._step("import customers", self._import_customers, jobs)

        valid_job_ids = self._step("import jobs", self._import_jobs, jobs, batch.id)
        result.jobs_imported = len(jobs)

        resolver = self.resolver_factory(self.db)
        result.technicians_imported = self._step(
            "import technicians", import_technicians, self.db, jobs, resolver
        )

        counts = self._step("import invoices", self._import_invoices, invoices, batch.id, valid_job_ids)
        result.invoices_imported = counts.imported
        result.invoices_skipped = counts.skipped

        validation: ValidationResult = self._step("validate import", validate_import, self.db, batch.id)
        if counts.skipped:
            validation.warnings.append(
                f"Skipped {counts.skipped} invoices referencing "
                f"{len(counts.skipped_job_ids)} jobs not in jobs report"
            )
        result.warnings = validation.warnings
        result.jobs_without_invoices = validation.jobs_without_invoices

        result.job_metrics_calculated = self._step(
            "calculate job metrics", self._calculate_job_metrics, jobs, invoices, valid_job_ids
        )

        result.technician_metrics_calculated = self._rebuild_technician_metrics(batch.id)
        return result

    def _step(self, name: str, fn, *args):
        """Run one step, wrapping any failure with the step name."""
        logger.debug(f"▶️ {name}")
        try:
            return fn(*args)
        except ImportStepError:
            raise
        except Exception as e:
            raise ImportStepError(name, e) from e

    def _begin_batch(
        self,
        existing: Optional[ImportBatch],
        jobs_path: Path,
        invoices_path: Path,
        jobs_hash: str,
        invoices_hash: str,
        job_count: int,
        invoice_count: int,
    ) -> Optional[ImportBatch]:
        """
        Register the batch as pending.

        A failed batch being retried keeps its row so the hash pair stays unique.
        Returns None when another importer registered the same pair first.
        """
        if existing is not None:
            batch = existing
            logger.info(f"🔁 Retrying failed batch {batch.id}")
        else:
            batch = ImportBatch(job_report_hash=jobs_hash, invoice_report_hash=invoices_hash)
            self.db.add(batch)

        batch.job_report_filename = jobs_path.name
        batch.invoice_report_filename = invoices_path.name
        batch.row_count_jobs = job_count
        batch.row_count_invoices = invoice_count
        batch.status = STATUS_PENDING
        batch.error_message = None

        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            return None
        except SQLAlchemyError as e:
            self.db.rollback()
            raise ImportStepError("create import batch", e) from e

        logger.info(f"📦 Batch {batch.id} registered as pending")
        return batch

    def _import_customers(self, jobs: list[JobRow]) -> int:
        """Upsert each distinct customer, keeping the most recently completed job's details."""
        latest = OrderedDict()
        first_dates, last_dates = {}, {}

        for job in jobs:
            current = latest.get(job.customer_id)
            if current is None:
                latest[job.customer_id] = job
            elif (
                job.job_completion_date is not None
                and current.job_completion_date is not None
                and job.job_completion_date > current.job_completion_date
            ):
                latest[job.customer_id] = job

            completed = job.job_completion_date
            if completed is not None:
                first = first_dates.get(job.customer_id)
                last = last_dates.get(job.customer_id)
                first_dates[job.customer_id] = completed if first is None else min(first, completed)
                last_dates[job.customer_id] = completed if last is None else max(last, completed)

        for customer_id, job in latest.items():
            stmt = dialect_insert(self.db, Customer).values(
                id=customer_id,
                customer_name=job.customer_name or "",
                customer_type=job.customer_type,
                customer_city=job.customer_city,
                customer_state=job.customer_state,
                customer_zip=job.customer_zip,
                location_city=job.location_city,
                location_state=job.location_state,
                location_zip=job.location_zip,
                first_job_date=first_dates.get(customer_id),
                last_job_date=last_dates.get(customer_id),
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["id"],
                set_={
                    "customer_name": stmt.excluded.customer_name,
                    "customer_type": stmt.excluded.customer_type,
                    "customer_city": stmt.excluded.customer_city,
                    "customer_state": stmt.excluded.customer_state,
                    "customer_zip": stmt.excluded.customer_zip,
                    "location_city": stmt.excluded.location_city,
                    "location_state": stmt.excluded.location_state,
                    "location_zip": stmt.excluded.location_zip,
                    "first_job_date": least_of(
                        Customer.first_job_date, stmt.excluded.first_job_date
                    ),
                    "last_job_date": greatest_of(
                        Customer.last_job_date, stmt.excluded.last_job_date
                    ),
                    "updated_at": func.now(),
                },
            )
            self.db.execute(stmt)

        logger.info(f"👥 Upserted {len(latest)} customers")
        return len(latest)

    def _import_jobs(self, jobs: list[JobRow], batch_id: int) -> set[str]:
        """Insert every job row; returns the ids now valid for invoices."""
        valid_job_ids = set()
        for row_num, job in enumerate(jobs, start=2):
            try:
                self.db.execute(
                    insert(Job).values(
                        id=job.job_id,
                        customer_id=job.customer_id,
                        import_batch_id=batch_id,
                        job_type=job.job_type,
                        business_unit=job.business_unit,
                        status=job.status,
                        job_creation_date=job.job_creation_date,
                        job_schedule_date=job.job_schedule_date,
                        job_completion_date=job.job_completion_date,
                        assigned_technicians=job.assigned_technicians,
                        sold_by_technician=job.sold_by,
                        primary_technician=job.primary_technician,
                        booked_by=job.booked_by,
                        campaign_name=job.job_campaign_id,
                        campaign_category=job.campaign_category,
                        call_campaign=job.call_campaign_id,
                        jobs_subtotal=job.jobs_subtotal,
                        job_total=job.job_total,
                        estimate_sales_subtotal=job.estimate_sales_subtotal,
                        invoice_id=job.invoice_id,
                        total_hours_worked=job.total_hours_worked,
                        priority=job.priority,
                        survey_score=int(job.survey_result) if job.survey_result is not None else None,
                        estimate_count=job.estimate_count,
                        is_opportunity=job.opportunity,
                        is_converted=job.converted,
                    )
                )
            except SQLAlchemyError as e:
                raise ImportStepError(
                    "import jobs", ValueError(f"job {job.job_id} (row {row_num}): {e}")
                ) from e
            valid_job_ids.add(job.job_id)

        logger.info(f"🧾 Inserted {len(valid_job_ids)} jobs")
        return valid_job_ids

    def _import_invoices(
        self, invoices: list[InvoiceRow], batch_id: int, valid_job_ids: set[str]
    ) -> _InvoiceCounts:
        """Insert invoices whose job is in this batch; the rest are counted and dropped."""
        counts = _InvoiceCounts()
        for row_num, invoice in enumerate(invoices, start=2):
            if invoice.job_id not in valid_job_ids:
                counts.skipped += 1
                counts.skipped_job_ids.add(invoice.job_id)
                continue

            try:
                self.db.execute(
                    insert(Invoice).values(
                        id=invoice.invoice_id,
                        job_id=invoice.job_id,
                        import_batch_id=batch_id,
                        invoice_date=invoice.invoice_date,
                        invoice_status=invoice.invoice_status,
                        invoice_type=invoice.invoice_type,
                        invoice_summary=invoice.invoice_summary,
                        total=invoice.total,
                        balance=invoice.balance,
                        payments=invoice.payments,
                        material_costs=invoice.material_costs,
                        equipment_costs=invoice.equipment_costs,
                        purchase_order_costs=invoice.purchase_order_costs,
                        return_costs=invoice.return_costs,
                        costs_total=invoice.costs_total,
                        material_retail=invoice.material_retail,
                        material_markup=invoice.material_markup,
                        equipment_retail=invoice.equipment_retail,
                        equipment_markup=invoice.equipment_markup,
                        labor=invoice.labor,
                        labor_pay=invoice.labor_pay,
                        labor_burden=invoice.labor_burden,
                        total_labor_costs=invoice.total_labor_costs,
                        income=invoice.income,
                        discount_total=invoice.discount_total,
                        is_adjustment=invoice.is_adjustment,
                    )
                )
            except SQLAlchemyError as e:
                raise ImportStepError(
                    "import invoices",
                    ValueError(f"invoice {invoice.invoice_id} (row {row_num}): {e}"),
                ) from e
            counts.imported += 1

        if counts.skipped:
            logger.warning(
                f"⚠️ Skipped {counts.skipped} invoices for {len(counts.skipped_job_ids)} unknown jobs"
            )
        logger.info(f"🧾 Inserted {counts.imported} invoices")
        return counts

    def _calculate_job_metrics(
        self, jobs: list[JobRow], invoices: list[InvoiceRow], valid_job_ids: set[str]
    ) -> int:
        metrics = calculate_job_metrics(
            (job for job in jobs if job.job_id in valid_job_ids),
            (inv for inv in invoices if inv.job_id in valid_job_ids),
        )
        count = save_job_metrics(self.db, metrics)
        logger.info(f"💰 Calculated metrics for {count} jobs")
        return count

    def _rebuild_technician_metrics(self, batch_id: int) -> int:
        """Best effort: a failure rolls back to a savepoint and the import carries on."""
        try:
            with self.db.begin_nested():
                return rebuild_technician_metrics(self.db)
        except Exception as e:
            logger.warning(
                f"⚠️ Technician metrics not updated for batch {batch_id}: {e}", exc_info=True
            )
            return 0

    def _record_failure(
        self,
        jobs_path: Path,
        invoices_path: Path,
        jobs_hash: str,
        invoices_hash: str,
        job_count: int,
        invoice_count: int,
        message: str,
    ) -> Optional[int]:
        """
        Roll back the import, then persist a failed batch row for auditing.

        Returns:
            Id of the failed batch row, or None if it could not be written
        """
        try:
            self.db.rollback()
            batch = find_batch_by_hashes(self.db, jobs_hash, invoices_hash)
            if batch is None:
                batch = ImportBatch(
                    job_report_filename=jobs_path.name,
                    invoice_report_filename=invoices_path.name,
                    job_report_hash=jobs_hash,
                    invoice_report_hash=invoices_hash,
                    row_count_jobs=job_count,
                    row_count_invoices=invoice_count,
                )
                self.db.add(batch)
            batch.status = STATUS_FAILED
            batch.error_message = message
            self.db.commit()
            logger.info(f"📊 Batch {batch.id} marked as failed")
            return batch.id
        except SQLAlchemyError:
            logger.exception("❌ Could not record failed batch")
            try:
                self.db.rollback()
            except SQLAlchemyError:
                logger.warning("⚠️ Rollback after failed audit write also failed")
            return None


def import_files(db: Session, jobs_path, invoices_path) -> ImportResult:
    """Import a jobs/invoices pair with the default name-keyed technician resolver."""
    return BatchImporter(db).import_files(jobs_path, invoices_path)
