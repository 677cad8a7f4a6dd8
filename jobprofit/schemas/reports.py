"""Report response schemas."""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class TechnicianPerformanceResponse(BaseModel):
    """Technician metrics row; averages are null when undefined."""

    id: int
    name: str
    jobs_sold: int
    total_sales: Decimal
    avg_sale: Optional[Decimal] = None
    opportunities: int
    conversions: int
    conversion_rate: Optional[Decimal] = None
    jobs_serviced: int
    avg_hours_per_job: Optional[Decimal] = None
    avg_estimates_per_job: Optional[Decimal] = None
    total_gross_profit: Optional[Decimal] = None
    avg_gross_profit: Optional[Decimal] = None
    avg_margin_pct: Optional[Decimal] = None

    class Config:
        from_attributes = True


class JobTypeProfitResponse(BaseModel):
    """Profitability aggregated by job type."""

    job_type: str
    job_count: int
    avg_revenue: Optional[Decimal] = None
    avg_costs: Optional[Decimal] = None
    avg_gross_profit: Optional[Decimal] = None
    avg_margin_pct: Optional[Decimal] = None
    total_profit: Optional[Decimal] = None

    class Config:
        from_attributes = True


class CampaignProfitResponse(BaseModel):
    """Profitability aggregated by marketing campaign."""

    campaign_name: str
    campaign_category: str
    job_count: int
    avg_revenue: Optional[Decimal] = None
    avg_costs: Optional[Decimal] = None
    avg_gross_profit: Optional[Decimal] = None
    avg_margin_pct: Optional[Decimal] = None
    total_profit: Optional[Decimal] = None


class CustomerProfitResponse(BaseModel):
    """Profitability aggregated by customer."""

    customer_id: int
    customer_name: str
    customer_type: Optional[str] = None
    location_zip: Optional[str] = None
    job_count: int
    avg_revenue: Optional[Decimal] = None
    avg_gross_profit: Optional[Decimal] = None
    avg_margin_pct: Optional[Decimal] = None
    total_profit: Optional[Decimal] = None


class JobProfitResponse(BaseModel):
    """A single job's profitability, used by the red-flag job lists."""

    job_id: str
    customer_name: str
    job_type: str
    revenue: Decimal
    total_costs: Decimal
    gross_profit: Decimal
    gross_margin_pct: Optional[Decimal] = None
    job_completion_date: Optional[date] = None


class UnprofitableCustomerResponse(BaseModel):
    """A customer whose jobs lost money in total."""

    customer_id: int
    customer_name: str
    customer_type: Optional[str] = None
    job_count: int
    total_revenue: Decimal
    total_costs: Decimal
    total_profit: Decimal
    first_job_date: Optional[date] = None
    last_job_date: Optional[date] = None


class ProfitabilitySummaryResponse(BaseModel):
    """Executive totals for a date range, with breakdowns."""

    generated_at: datetime
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    total_jobs: int
    total_revenue: Decimal
    total_costs: Decimal
    total_profit: Decimal
    avg_margin_pct: Optional[Decimal] = None
    jobs_with_loss: int
    total_loss: Decimal
    job_types: list[JobTypeProfitResponse]
    campaigns: list[CampaignProfitResponse]
    top_customers: list[CustomerProfitResponse]
    red_flag_jobs: list[JobProfitResponse]
