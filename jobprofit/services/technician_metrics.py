"""Technician performance metrics, rebuilt in full from the current database state."""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from jobprofit.database import dialect_insert
from jobprofit.models.job import COMPLETED_STATUS, Job
from jobprofit.models.metrics import JobMetric, TechnicianMetric
from jobprofit.models.technician import ROLE_PRIMARY, ROLE_SOLD_BY, JobTechnician, Technician

logger = logging.getLogger(__name__)

ZERO = Decimal(0)
HUNDRED = Decimal(100)


@dataclass
class JobAssignment:
    """A technician's role on a job."""

    job_id: str
    technician_id: int
    role: str


@dataclass
class ServicedJob:
    """Job fields the technician metrics need."""

    job_id: str
    status: str
    jobs_subtotal: Decimal = ZERO
    estimate_sales_subtotal: Decimal = ZERO
    total_hours_worked: Decimal = ZERO
    estimate_count: int = 0


@dataclass
class TechnicianMetricResult:
    """Calculated performance for one technician."""

    technician_id: int

    # primary role: opportunities / jobs serviced
    opportunities: int = 0
    # sold_by role: conversions / jobs sold
    conversions: int = 0
    total_sales: Decimal = ZERO

    total_hours_worked: Decimal = ZERO
    total_estimates: int = 0
    jobs_with_estimates: int = 0

    total_gross_profit: Optional[Decimal] = None

    avg_sale: Optional[Decimal] = None
    conversion_rate: Optional[Decimal] = None
    avg_hours_per_job: Optional[Decimal] = None
    avg_estimates_per_job: Optional[Decimal] = None
    avg_gross_profit: Optional[Decimal] = None
    avg_margin_pct: Optional[Decimal] = None

    @property
    def jobs_sold(self) -> int:
        return self.conversions

    @property
    def jobs_serviced(self) -> int:
        return self.opportunities


def calculate_technician_metrics(
    technician_ids: Iterable[int],
    assignments: Iterable[JobAssignment],
    jobs: Iterable[ServicedJob],
    gross_profit_by_job: Mapping[str, Decimal],
) -> list[TechnicianMetricResult]:
    """
    Aggregate completed-job data into per-technician metrics.

    Sales credit for a primary job: the estimate sales subtotal when positive
    (sold through a separate estimate); otherwise the job subtotal when the same
    technician also sold the job (same-visit sell and install); otherwise nothing.

    Args:
        technician_ids: Every known technician; each receives a result
        assignments: All job/technician role associations
        jobs: Jobs referenced by the associations
        gross_profit_by_job: Gross profit of jobs that have a job metric

    Returns:
        One TechnicianMetricResult per technician id, in the given order
    """
    jobs_by_id = {job.job_id: job for job in jobs}
    assignments = list(assignments)

    # technician id -> job ids they sold, to spot same-visit sales
    sold_jobs = defaultdict(set)
    for a in assignments:
        if a.role == ROLE_SOLD_BY:
            sold_jobs[a.technician_id].add(a.job_id)

    results = {tech_id: TechnicianMetricResult(technician_id=tech_id) for tech_id in technician_ids}

    for a in assignments:
        job = jobs_by_id.get(a.job_id)
        if job is None or job.status != COMPLETED_STATUS:
            continue
        metric = results.get(a.technician_id)
        if metric is None:
            continue

        if a.role == ROLE_SOLD_BY:
            metric.conversions += 1
            gross_profit = gross_profit_by_job.get(a.job_id)
            if gross_profit is not None:
                metric.total_gross_profit = (metric.total_gross_profit or ZERO) + gross_profit

        elif a.role == ROLE_PRIMARY:
            metric.opportunities += 1
            metric.total_hours_worked += job.total_hours_worked
            metric.total_estimates += job.estimate_count
            if job.estimate_count > 0:
                metric.jobs_with_estimates += 1

            if job.estimate_sales_subtotal > 0:
                metric.total_sales += job.estimate_sales_subtotal
            elif a.job_id in sold_jobs[a.technician_id] and job.jobs_subtotal > 0:
                metric.total_sales += job.jobs_subtotal

    for metric in results.values():
        _calculate_averages(metric)

    return list(results.values())


def _calculate_averages(m: TechnicianMetricResult) -> None:
    """Derived figures stay None when their denominator is zero."""
    if m.opportunities > 0:
        m.conversion_rate = Decimal(m.conversions) / Decimal(m.opportunities) * HUNDRED
        m.avg_estimates_per_job = Decimal(m.total_estimates) / Decimal(m.opportunities)
        if m.total_hours_worked != 0:
            m.avg_hours_per_job = m.total_hours_worked / Decimal(m.opportunities)

    if m.conversions > 0 and m.total_sales > 0:
        m.avg_sale = m.total_sales / Decimal(m.conversions)

    if m.conversions > 0 and m.total_gross_profit is not None:
        m.avg_gross_profit = m.total_gross_profit / Decimal(m.conversions)
        if m.total_sales > 0:
            m.avg_margin_pct = m.total_gross_profit / m.total_sales * HUNDRED


def load_and_calculate(db: Session) -> list[TechnicianMetricResult]:
    """Read every technician, association, completed job and job metric, then aggregate."""
    technician_ids = [tech_id for (tech_id,) in db.query(Technician.id).order_by(Technician.id)]
    if not technician_ids:
        return []

    assignments = [
        JobAssignment(job_id=job_id, technician_id=tech_id, role=role)
        for job_id, tech_id, role in db.query(
            JobTechnician.job_id, JobTechnician.technician_id, JobTechnician.role
        ).order_by(JobTechnician.id)
    ]

    jobs = [
        ServicedJob(
            job_id=row.id,
            status=row.status,
            jobs_subtotal=_or_zero(row.jobs_subtotal),
            estimate_sales_subtotal=_or_zero(row.estimate_sales_subtotal),
            total_hours_worked=_or_zero(row.total_hours_worked),
            estimate_count=row.estimate_count or 0,
        )
        for row in db.query(
            Job.id,
            Job.status,
            Job.jobs_subtotal,
            Job.estimate_sales_subtotal,
            Job.total_hours_worked,
            Job.estimate_count,
        ).filter(Job.status == COMPLETED_STATUS)
    ]

    gross_profit_by_job = {
        job_id: gross_profit
        for job_id, gross_profit in db.query(JobMetric.job_id, JobMetric.gross_profit)
    }

    return calculate_technician_metrics(technician_ids, assignments, jobs, gross_profit_by_job)


def _or_zero(value) -> Decimal:
    return Decimal(value) if value is not None else ZERO


def save_technician_metrics(db: Session, metrics: list[TechnicianMetricResult]) -> int:
    """
    Upsert one technician_metrics row per technician.

    Args:
        db: Database session
        metrics: Calculated metrics

    Returns:
        Number of rows written
    """
    for m in metrics:
        values = {
            "jobs_sold": m.jobs_sold,
            "total_sales": m.total_sales,
            "avg_sale": m.avg_sale,
            "opportunities": m.opportunities,
            "conversions": m.conversions,
            "conversion_rate": m.conversion_rate,
            "jobs_serviced": m.jobs_serviced,
            "total_hours_worked": m.total_hours_worked,
            "avg_hours_per_job": m.avg_hours_per_job,
            "total_estimates": m.total_estimates,
            "jobs_with_estimates": m.jobs_with_estimates,
            "avg_estimates_per_job": m.avg_estimates_per_job,
            "total_gross_profit": m.total_gross_profit,
            "avg_gross_profit": m.avg_gross_profit,
            "avg_margin_pct": m.avg_margin_pct,
        }
        stmt = dialect_insert(db, TechnicianMetric).values(technician_id=m.technician_id, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["technician_id"],
            set_={
                **{column: stmt.excluded[column] for column in values},
                "calculated_at": func.now(),
            },
        )
        db.execute(stmt)

    return len(metrics)


def rebuild_technician_metrics(db: Session) -> int:
    """Recompute and store metrics for every technician; returns rows written."""
    metrics = load_and_calculate(db)
    count = save_technician_metrics(db, metrics)
    logger.info(f"📈 Rebuilt metrics for {count} technicians")
    return count
