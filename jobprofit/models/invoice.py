"""Invoice model."""
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from jobprofit.database import Base


class Invoice(Base):
    """Invoice attached to a job of the same batch."""

    __tablename__ = "invoices"

    id = Column(String(64), primary_key=True)
    job_id = Column(String(64), ForeignKey("jobs.id"), nullable=False, index=True)
    import_batch_id = Column(
        Integer,
        ForeignKey("import_batches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    invoice_date = Column(Date, nullable=False)
    invoice_status = Column(Text, nullable=True)
    invoice_type = Column(Text, nullable=True)
    invoice_summary = Column(Text, nullable=True)

    total = Column(Numeric(12, 2), nullable=True)
    balance = Column(Numeric(12, 2), nullable=True)
    payments = Column(Numeric(12, 2), nullable=True)

    material_costs = Column(Numeric(12, 2), nullable=True)
    equipment_costs = Column(Numeric(12, 2), nullable=True)
    purchase_order_costs = Column(Numeric(12, 2), nullable=True)
    return_costs = Column(Numeric(12, 2), nullable=True)
    costs_total = Column(Numeric(12, 2), nullable=True)

    material_retail = Column(Numeric(12, 2), nullable=True)
    material_markup = Column(Numeric(12, 2), nullable=True)
    equipment_retail = Column(Numeric(12, 2), nullable=True)
    equipment_markup = Column(Numeric(12, 2), nullable=True)
    labor = Column(Numeric(12, 2), nullable=True)
    labor_pay = Column(Numeric(12, 2), nullable=True)
    labor_burden = Column(Numeric(12, 2), nullable=True)
    total_labor_costs = Column(Numeric(12, 2), nullable=True)

    income = Column(Numeric(12, 2), nullable=True)
    discount_total = Column(Numeric(12, 2), nullable=True)

    # An adjustment invoice replaces the job's cost picture
    is_adjustment = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Invoice(id='{self.id}', job_id='{self.job_id}')>"
