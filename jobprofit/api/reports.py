"""Report API endpoints."""
from dataclasses import asdict
from datetime import date
from decimal import Decimal
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from jobprofit.database import get_db
from jobprofit.schemas.reports import (
    CampaignProfitResponse,
    CustomerProfitResponse,
    JobProfitResponse,
    JobTypeProfitResponse,
    ProfitabilitySummaryResponse,
    TechnicianPerformanceResponse,
    UnprofitableCustomerResponse,
)
from jobprofit.services.reports import (
    DEFAULT_HIGH_REVENUE_MARGIN_THRESHOLD,
    DEFAULT_HIGH_REVENUE_THRESHOLD,
    DEFAULT_JOB_TYPE_MARGIN_THRESHOLD,
    high_revenue_low_margin_jobs,
    low_margin_job_types,
    negative_margin_jobs,
    profit_by_campaign,
    profit_by_customer,
    profit_by_job_type,
    profitability_summary,
    technician_performance,
    unprofitable_customers,
)

router = APIRouter(prefix="/api/reports", tags=["reports"])

DateFrom = Annotated[
    Optional[date], Query(alias="from", description="Earliest completion date (YYYY-MM-DD)")
]
DateTo = Annotated[
    Optional[date], Query(alias="to", description="Latest completion date (YYYY-MM-DD)")
]


def _rows(rows) -> list[dict]:
    return [dict(row._mapping) for row in rows]


@router.get("/technicians", response_model=list[TechnicianPerformanceResponse])
def get_technician_performance(db: Session = Depends(get_db)):
    """Technician sales, conversion, efficiency and profitability."""
    return _rows(technician_performance(db))


@router.get("/job-types", response_model=list[JobTypeProfitResponse])
def get_profit_by_job_type(
    date_from: DateFrom = None,
    date_to: DateTo = None,
    db: Session = Depends(get_db),
):
    """Profitability by job type."""
    return _rows(profit_by_job_type(db, date_from, date_to))


@router.get("/campaigns", response_model=list[CampaignProfitResponse])
def get_profit_by_campaign(
    date_from: DateFrom = None,
    date_to: DateTo = None,
    db: Session = Depends(get_db),
):
    """Profitability by marketing campaign."""
    return _rows(profit_by_campaign(db, date_from, date_to))


@router.get("/customers", response_model=list[CustomerProfitResponse])
def get_profit_by_customer(
    limit: int = Query(25, ge=1, le=500, description="Number of customers"),
    date_from: DateFrom = None,
    date_to: DateTo = None,
    db: Session = Depends(get_db),
):
    """Most profitable customers."""
    return _rows(profit_by_customer(db, limit, date_from, date_to))


@router.get("/summary", response_model=ProfitabilitySummaryResponse)
def get_profitability_summary(
    date_from: DateFrom = None,
    date_to: DateTo = None,
    db: Session = Depends(get_db),
):
    """Executive totals with job type, campaign, customer and loss breakdowns."""
    return asdict(profitability_summary(db, date_from, date_to))


@router.get("/red-flags/jobs", response_model=list[JobProfitResponse])
def get_negative_margin_jobs(
    date_from: DateFrom = None,
    date_to: DateTo = None,
    db: Session = Depends(get_db),
):
    """Jobs that lost money."""
    return _rows(negative_margin_jobs(db, date_from, date_to))


@router.get("/red-flags/job-types", response_model=list[JobTypeProfitResponse])
def get_low_margin_job_types(
    margin_threshold: Decimal = Query(DEFAULT_JOB_TYPE_MARGIN_THRESHOLD, description="Margin %"),
    date_from: DateFrom = None,
    date_to: DateTo = None,
    db: Session = Depends(get_db),
):
    """Job types averaging below the margin threshold."""
    return _rows(low_margin_job_types(db, margin_threshold, date_from, date_to))


@router.get("/red-flags/customers", response_model=list[UnprofitableCustomerResponse])
def get_unprofitable_customers(
    date_from: DateFrom = None,
    date_to: DateTo = None,
    db: Session = Depends(get_db),
):
    """Customers with a negative total margin."""
    return _rows(unprofitable_customers(db, date_from, date_to))


@router.get("/red-flags/high-revenue", response_model=list[JobProfitResponse])
def get_high_revenue_low_margin_jobs(
    revenue_threshold: Decimal = Query(DEFAULT_HIGH_REVENUE_THRESHOLD, description="Revenue"),
    margin_threshold: Decimal = Query(DEFAULT_HIGH_REVENUE_MARGIN_THRESHOLD, description="Margin %"),
    date_from: DateFrom = None,
    date_to: DateTo = None,
    db: Session = Depends(get_db),
):
    """High revenue jobs with a low or undefined margin."""
    return _rows(
        high_revenue_low_margin_jobs(db, revenue_threshold, margin_threshold, date_from, date_to)
    )
