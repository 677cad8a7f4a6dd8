"""Customer model, deduplicated by the platform's customer id."""
from sqlalchemy import BigInteger, Column, Date, DateTime, Text
from sqlalchemy.sql import func

from jobprofit.database import Base


class Customer(Base):
    """Customer upserted from job rows; not owned by any batch."""

    __tablename__ = "customers"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    customer_name = Column(Text, nullable=False)
    customer_type = Column(Text, nullable=True)
    customer_city = Column(Text, nullable=True)
    customer_state = Column(Text, nullable=True)
    customer_zip = Column(Text, nullable=True)
    # Service address, often different from billing
    location_city = Column(Text, nullable=True)
    location_state = Column(Text, nullable=True)
    location_zip = Column(Text, nullable=True)
    first_job_date = Column(Date, nullable=True)
    last_job_date = Column(Date, nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.customer_name}')>"
