"""Job profitability: revenue, cost, gross profit and margin per completed job."""
import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from jobprofit.database import dialect_insert
from jobprofit.models.job import COMPLETED_STATUS
from jobprofit.models.metrics import JobMetric

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)


@dataclass
class JobMetricResult:
    """Calculated profitability for a single job."""

    job_id: str
    revenue: Decimal
    total_costs: Decimal
    gross_profit: Decimal
    gross_margin_pct: Optional[Decimal]
    invoice_count: int
    has_adjustment: bool


def calculate_job_metrics(jobs: Iterable, invoices: Iterable) -> list[JobMetricResult]:
    """
    Compute profitability for every qualifying job.

    A job qualifies when its status is Completed, it carries a revenue figure
    (jobs subtotal, zero allowed) and at least one invoice belongs to it.

    Args:
        jobs: Rows with job_id, status and jobs_subtotal
        invoices: Rows with job_id, costs_total and is_adjustment, in file order

    Returns:
        One JobMetricResult per qualifying job, in job order
    """
    invoices_by_job = defaultdict(list)
    for invoice in invoices:
        invoices_by_job[invoice.job_id].append(invoice)

    results = []
    for job in jobs:
        if job.status != COMPLETED_STATUS:
            continue
        if job.jobs_subtotal is None:
            continue
        job_invoices = invoices_by_job.get(job.job_id)
        if not job_invoices:
            continue
        results.append(calculate_single_job_metric(job.job_id, job.jobs_subtotal, job_invoices))

    return results


def calculate_single_job_metric(job_id: str, revenue: Decimal, invoices: list) -> JobMetricResult:
    """
    Profitability of one job from its invoices.

    The first adjustment invoice in file order replaces the cost picture
    entirely; without one, costs are the sum over all invoices.
    """
    adjustment = next((inv for inv in invoices if inv.is_adjustment), None)

    if adjustment is not None:
        total_costs = _cost(adjustment)
    else:
        total_costs = sum((_cost(inv) for inv in invoices), Decimal(0))

    gross_profit = revenue - total_costs

    gross_margin_pct = None
    if revenue > 0:
        gross_margin_pct = gross_profit / revenue * HUNDRED

    return JobMetricResult(
        job_id=job_id,
        revenue=revenue,
        total_costs=total_costs,
        gross_profit=gross_profit,
        gross_margin_pct=gross_margin_pct,
        invoice_count=len(invoices),
        has_adjustment=adjustment is not None,
    )


def _cost(invoice) -> Decimal:
    return invoice.costs_total if invoice.costs_total is not None else Decimal(0)


def save_job_metrics(db: Session, metrics: list[JobMetricResult]) -> int:
    """
    Upsert job metrics; an existing row for the job is fully overwritten.

    Args:
        db: Database session
        metrics: Calculated metrics

    Returns:
        Number of rows written
    """
    for metric in metrics:
        stmt = dialect_insert(db, JobMetric).values(
            job_id=metric.job_id,
            revenue=metric.revenue,
            total_costs=metric.total_costs,
            gross_profit=metric.gross_profit,
            gross_margin_pct=metric.gross_margin_pct,
            invoice_count=metric.invoice_count,
            has_adjustment=metric.has_adjustment,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["job_id"],
            set_={
                "revenue": stmt.excluded.revenue,
                "total_costs": stmt.excluded.total_costs,
                "gross_profit": stmt.excluded.gross_profit,
                "gross_margin_pct": stmt.excluded.gross_margin_pct,
                "invoice_count": stmt.excluded.invoice_count,
                "has_adjustment": stmt.excluded.has_adjustment,
                "calculated_at": func.now(),
            },
        )
        db.execute(stmt)

    logger.debug(f"✅ Saved {len(metrics)} job metrics")
    return len(metrics)
