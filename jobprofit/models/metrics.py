"""Pre-calculated job and technician metrics."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.sql import func

from jobprofit.database import Base


class JobMetric(Base):
    """Profitability of one completed job, derived from the job and its invoices."""

    __tablename__ = "job_metrics"

    job_id = Column(String(64), ForeignKey("jobs.id", ondelete="CASCADE"), primary_key=True)
    revenue = Column(Numeric(12, 2), nullable=False)
    total_costs = Column(Numeric(12, 2), nullable=False)
    gross_profit = Column(Numeric(12, 2), nullable=False, index=True)
    gross_margin_pct = Column(Numeric, nullable=True, index=True)
    invoice_count = Column(Integer, nullable=False)
    has_adjustment = Column(Boolean, nullable=False, default=False)
    calculated_at = Column(DateTime, server_default=func.now(), nullable=False)


class TechnicianMetric(Base):
    """Performance of one technician, rebuilt from all data on every import."""

    __tablename__ = "technician_metrics"

    technician_id = Column(
        Integer, ForeignKey("technicians.id", ondelete="CASCADE"), primary_key=True
    )

    # Sales (sold_by role)
    jobs_sold = Column(Integer, nullable=False, default=0)
    total_sales = Column(Numeric(12, 2), nullable=False, default=0)
    avg_sale = Column(Numeric(12, 2), nullable=True)

    # Conversion (primary jobs are opportunities, sold_by jobs are conversions)
    opportunities = Column(Integer, nullable=False, default=0)
    conversions = Column(Integer, nullable=False, default=0)
    conversion_rate = Column(Numeric(8, 2), nullable=True)

    # Service (primary role)
    jobs_serviced = Column(Integer, nullable=False, default=0)
    total_hours_worked = Column(Numeric(10, 2), nullable=False, default=0)
    avg_hours_per_job = Column(Numeric(8, 2), nullable=True)

    total_estimates = Column(Integer, nullable=False, default=0)
    jobs_with_estimates = Column(Integer, nullable=False, default=0)
    avg_estimates_per_job = Column(Numeric(8, 2), nullable=True)

    # Profitability (sold_by role, from job_metrics)
    total_gross_profit = Column(Numeric(12, 2), nullable=True)
    avg_gross_profit = Column(Numeric(12, 2), nullable=True)
    avg_margin_pct = Column(Numeric(8, 2), nullable=True)

    calculated_at = Column(DateTime, server_default=func.now(), nullable=False)
