"""Job model."""
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func

from jobprofit.database import Base

# Only jobs in this status take part in profitability math
COMPLETED_STATUS = "Completed"


class Job(Base):
    """One row per external job id; never updated once inserted."""

    __tablename__ = "jobs"

    id = Column(String(64), primary_key=True)
    customer_id = Column(BigInteger, ForeignKey("customers.id"), nullable=False, index=True)
    import_batch_id = Column(
        Integer,
        ForeignKey("import_batches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    job_type = Column(Text, nullable=False, index=True)
    business_unit = Column(Text, nullable=True)
    status = Column(String(50), nullable=False, index=True)

    job_creation_date = Column(Date, nullable=True)
    job_schedule_date = Column(Date, nullable=True)
    job_completion_date = Column(Date, nullable=True, index=True)

    # Raw technician names as exported
    assigned_technicians = Column(Text, nullable=True)
    sold_by_technician = Column(Text, nullable=True)
    primary_technician = Column(Text, nullable=True)
    booked_by = Column(Text, nullable=True)

    campaign_name = Column(Text, nullable=True)
    campaign_category = Column(Text, nullable=True)
    call_campaign = Column(Text, nullable=True)

    jobs_subtotal = Column(Numeric(12, 2), nullable=True)  # revenue without tax
    job_total = Column(Numeric(12, 2), nullable=True)  # revenue with tax
    estimate_sales_subtotal = Column(Numeric(12, 2), nullable=True)

    invoice_id = Column(String(64), nullable=True)
    total_hours_worked = Column(Numeric(8, 2), nullable=True)
    priority = Column(Text, nullable=True)
    survey_score = Column(Integer, nullable=True)
    estimate_count = Column(Integer, nullable=True, default=0)
    is_opportunity = Column(Boolean, nullable=False, default=False)
    is_converted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Job(id='{self.id}', status='{self.status}')>"
