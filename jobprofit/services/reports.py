"""Read-only report queries over imported data.

Profitability reports only count Completed jobs that have a job metric. Every
profitability query accepts an optional completion-date range (inclusive on
both ends).
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Query, Session

from jobprofit.models.customer import Customer
from jobprofit.models.import_batch import ImportBatch
from jobprofit.models.job import COMPLETED_STATUS, Job
from jobprofit.models.metrics import JobMetric, TechnicianMetric
from jobprofit.models.technician import Technician

DEFAULT_JOB_TYPE_MARGIN_THRESHOLD = Decimal(10)
DEFAULT_HIGH_REVENUE_MARGIN_THRESHOLD = Decimal(15)
DEFAULT_HIGH_REVENUE_THRESHOLD = Decimal(2000)
SUMMARY_TOP_CUSTOMERS = 10
SUMMARY_RED_FLAG_JOBS = 20


def list_import_batches(db: Session, limit: int = 20) -> list[ImportBatch]:
    """Most recent import batches first."""
    return (
        db.query(ImportBatch)
        .order_by(ImportBatch.imported_at.desc(), ImportBatch.id.desc())
        .limit(limit)
        .all()
    )


def get_import_batch(db: Session, batch_id: int) -> Optional[ImportBatch]:
    return db.query(ImportBatch).filter(ImportBatch.id == batch_id).first()


def technician_performance(db: Session) -> list:
    """Technicians who sold or serviced at least one completed job, best sellers first."""
    return (
        db.query(
            Technician.id,
            Technician.name,
            TechnicianMetric.jobs_sold,
            TechnicianMetric.total_sales,
            TechnicianMetric.avg_sale,
            TechnicianMetric.opportunities,
            TechnicianMetric.conversions,
            TechnicianMetric.conversion_rate,
            TechnicianMetric.jobs_serviced,
            TechnicianMetric.avg_hours_per_job,
            TechnicianMetric.avg_estimates_per_job,
            TechnicianMetric.total_gross_profit,
            TechnicianMetric.avg_gross_profit,
            TechnicianMetric.avg_margin_pct,
        )
        .join(TechnicianMetric, TechnicianMetric.technician_id == Technician.id)
        .filter(or_(TechnicianMetric.jobs_sold > 0, TechnicianMetric.jobs_serviced > 0))
        .order_by(TechnicianMetric.total_sales.desc(), Technician.name)
        .all()
    )


def _completed_in_range(query: Query, date_from: Optional[date], date_to: Optional[date]) -> Query:
    query = query.filter(Job.status == COMPLETED_STATUS)
    if date_from is not None:
        query = query.filter(Job.job_completion_date >= date_from)
    if date_to is not None:
        query = query.filter(Job.job_completion_date <= date_to)
    return query


def profit_by_job_type(
    db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None
) -> list:
    """Average and total profitability per job type, most profitable on average first."""
    query = db.query(
        Job.job_type,
        func.count(JobMetric.job_id).label("job_count"),
        func.avg(JobMetric.revenue).label("avg_revenue"),
        func.avg(JobMetric.total_costs).label("avg_costs"),
        func.avg(JobMetric.gross_profit).label("avg_gross_profit"),
        func.avg(JobMetric.gross_margin_pct).label("avg_margin_pct"),
        func.sum(JobMetric.gross_profit).label("total_profit"),
    ).join(JobMetric, JobMetric.job_id == Job.id)
    return (
        _completed_in_range(query, date_from, date_to)
        .group_by(Job.job_type)
        .order_by(func.avg(JobMetric.gross_profit).desc())
        .all()
    )


def profit_by_campaign(
    db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None
) -> list:
    """Profitability per marketing campaign, highest total profit first."""
    campaign_name = func.coalesce(Job.campaign_name, "Unknown")
    campaign_category = func.coalesce(Job.campaign_category, "Uncategorized")
    total_profit = func.sum(JobMetric.gross_profit)

    query = db.query(
        campaign_name.label("campaign_name"),
        campaign_category.label("campaign_category"),
        func.count(JobMetric.job_id).label("job_count"),
        func.avg(JobMetric.revenue).label("avg_revenue"),
        func.avg(JobMetric.total_costs).label("avg_costs"),
        func.avg(JobMetric.gross_profit).label("avg_gross_profit"),
        func.avg(JobMetric.gross_margin_pct).label("avg_margin_pct"),
        total_profit.label("total_profit"),
    ).join(JobMetric, JobMetric.job_id == Job.id)
    return (
        _completed_in_range(query, date_from, date_to)
        .group_by(campaign_name, campaign_category)
        .order_by(total_profit.desc())
        .all()
    )


def profit_by_customer(
    db: Session,
    limit: int = 25,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> list:
    """Most profitable customers first."""
    total_profit = func.sum(JobMetric.gross_profit)

    query = (
        db.query(
            Customer.id.label("customer_id"),
            Customer.customer_name,
            Customer.customer_type,
            Customer.location_zip,
            func.count(Job.id).label("job_count"),
            func.avg(JobMetric.revenue).label("avg_revenue"),
            func.avg(JobMetric.gross_profit).label("avg_gross_profit"),
            func.avg(JobMetric.gross_margin_pct).label("avg_margin_pct"),
            total_profit.label("total_profit"),
        )
        .join(Job, Job.customer_id == Customer.id)
        .join(JobMetric, JobMetric.job_id == Job.id)
    )
    return (
        _completed_in_range(query, date_from, date_to)
        .group_by(Customer.id, Customer.customer_name, Customer.customer_type, Customer.location_zip)
        .order_by(total_profit.desc())
        .limit(limit)
        .all()
    )


def _job_profit_columns(db: Session) -> Query:
    return (
        db.query(
            Job.id.label("job_id"),
            Customer.customer_name,
            Job.job_type,
            JobMetric.revenue,
            JobMetric.total_costs,
            JobMetric.gross_profit,
            JobMetric.gross_margin_pct,
            Job.job_completion_date,
        )
        .join(JobMetric, JobMetric.job_id == Job.id)
        .join(Customer, Customer.id == Job.customer_id)
    )


def negative_margin_jobs(
    db: Session,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: Optional[int] = None,
) -> list:
    """Jobs that lost money, biggest loss first."""
    query = (
        _completed_in_range(_job_profit_columns(db), date_from, date_to)
        .filter(JobMetric.gross_profit < 0)
        .order_by(JobMetric.gross_profit.asc(), Job.id)
    )
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def low_margin_job_types(
    db: Session,
    margin_threshold: Decimal = DEFAULT_JOB_TYPE_MARGIN_THRESHOLD,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> list:
    """
    Job types whose average margin is below the threshold percentage.

    Job types where no job has a defined margin are included as well, listed first.
    """
    avg_margin = func.avg(JobMetric.gross_margin_pct)

    query = db.query(
        Job.job_type,
        func.count(JobMetric.job_id).label("job_count"),
        func.avg(JobMetric.revenue).label("avg_revenue"),
        func.avg(JobMetric.total_costs).label("avg_costs"),
        func.avg(JobMetric.gross_profit).label("avg_gross_profit"),
        avg_margin.label("avg_margin_pct"),
        func.sum(JobMetric.gross_profit).label("total_profit"),
    ).join(JobMetric, JobMetric.job_id == Job.id)
    return (
        _completed_in_range(query, date_from, date_to)
        .group_by(Job.job_type)
        .having(or_(avg_margin < margin_threshold, avg_margin.is_(None)))
        .order_by(avg_margin.asc().nulls_first(), Job.job_type)
        .all()
    )


def unprofitable_customers(
    db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None
) -> list:
    """Customers whose jobs lost money in total, biggest loss first."""
    total_profit = func.sum(JobMetric.gross_profit)

    query = (
        db.query(
            Customer.id.label("customer_id"),
            Customer.customer_name,
            Customer.customer_type,
            func.count(Job.id).label("job_count"),
            func.sum(JobMetric.revenue).label("total_revenue"),
            func.sum(JobMetric.total_costs).label("total_costs"),
            total_profit.label("total_profit"),
            func.min(Job.job_completion_date).label("first_job_date"),
            func.max(Job.job_completion_date).label("last_job_date"),
        )
        .join(Job, Job.customer_id == Customer.id)
        .join(JobMetric, JobMetric.job_id == Job.id)
    )
    return (
        _completed_in_range(query, date_from, date_to)
        .group_by(Customer.id, Customer.customer_name, Customer.customer_type)
        .having(total_profit < 0)
        .order_by(total_profit.asc())
        .all()
    )


def high_revenue_low_margin_jobs(
    db: Session,
    revenue_threshold: Decimal = DEFAULT_HIGH_REVENUE_THRESHOLD,
    margin_threshold: Decimal = DEFAULT_HIGH_REVENUE_MARGIN_THRESHOLD,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> list:
    """Jobs above the revenue threshold whose margin is below the threshold or undefined."""
    return (
        _completed_in_range(_job_profit_columns(db), date_from, date_to)
        .filter(
            JobMetric.revenue > revenue_threshold,
            or_(
                JobMetric.gross_margin_pct < margin_threshold,
                JobMetric.gross_margin_pct.is_(None),
            ),
        )
        .order_by(JobMetric.revenue.desc(), Job.id)
        .all()
    )


@dataclass
class ProfitabilitySummary:
    """Executive totals plus the breakdowns shown alongside them."""

    generated_at: datetime
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    total_jobs: int = 0
    total_revenue: Decimal = Decimal(0)
    total_costs: Decimal = Decimal(0)
    total_profit: Decimal = Decimal(0)
    avg_margin_pct: Optional[Decimal] = None
    jobs_with_loss: int = 0
    total_loss: Decimal = Decimal(0)

    job_types: list[dict] = field(default_factory=list)
    campaigns: list[dict] = field(default_factory=list)
    top_customers: list[dict] = field(default_factory=list)
    red_flag_jobs: list[dict] = field(default_factory=list)


def profitability_summary(
    db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None
) -> ProfitabilitySummary:
    """
    Build the profitability summary for a completion-date range.

    Args:
        db: Database session
        date_from: Earliest completion date to include
        date_to: Latest completion date to include

    Returns:
        ProfitabilitySummary; avg_margin_pct is None when no job has a margin
    """
    loss = case((JobMetric.gross_profit < 0, JobMetric.gross_profit), else_=0)
    is_loss = case((JobMetric.gross_profit < 0, 1), else_=0)

    totals = _completed_in_range(
        db.query(
            func.count(JobMetric.job_id).label("total_jobs"),
            func.coalesce(func.sum(JobMetric.revenue), 0).label("total_revenue"),
            func.coalesce(func.sum(JobMetric.total_costs), 0).label("total_costs"),
            func.coalesce(func.sum(JobMetric.gross_profit), 0).label("total_profit"),
            func.avg(JobMetric.gross_margin_pct).label("avg_margin_pct"),
            func.coalesce(func.sum(is_loss), 0).label("jobs_with_loss"),
            func.coalesce(func.sum(loss), 0).label("total_loss"),
        ).join(JobMetric, JobMetric.job_id == Job.id),
        date_from,
        date_to,
    ).one()

    return ProfitabilitySummary(
        generated_at=datetime.now(),
        date_from=date_from,
        date_to=date_to,
        total_jobs=totals.total_jobs,
        total_revenue=Decimal(str(totals.total_revenue)),
        total_costs=Decimal(str(totals.total_costs)),
        total_profit=Decimal(str(totals.total_profit)),
        avg_margin_pct=(
            Decimal(str(totals.avg_margin_pct)) if totals.avg_margin_pct is not None else None
        ),
        jobs_with_loss=int(totals.jobs_with_loss),
        total_loss=Decimal(str(totals.total_loss)),
        job_types=_as_dicts(profit_by_job_type(db, date_from, date_to)),
        campaigns=_as_dicts(profit_by_campaign(db, date_from, date_to)),
        top_customers=_as_dicts(profit_by_customer(db, SUMMARY_TOP_CUSTOMERS, date_from, date_to)),
        red_flag_jobs=_as_dicts(
            negative_margin_jobs(db, date_from, date_to, limit=SUMMARY_RED_FLAG_JOBS)
        ),
    )


def _as_dicts(rows: list) -> list[dict]:
    return [dict(row._mapping) for row in rows]
