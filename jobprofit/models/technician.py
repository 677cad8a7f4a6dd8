"""Technician and job/technician association models."""
from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from jobprofit.database import Base

ROLE_ASSIGNED = "assigned"
ROLE_SOLD_BY = "sold_by"
ROLE_PRIMARY = "primary"


class Technician(Base):
    """Technician keyed by normalised name; the export carries no stable id."""

    __tablename__ = "technicians"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False, unique=True)
    first_seen_date = Column(Date, nullable=True)
    last_seen_date = Column(Date, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<Technician(id={self.id}, name='{self.name}')>"


class JobTechnician(Base):
    """A technician's role on a job."""

    __tablename__ = "job_technicians"

    id = Column(Integer, primary_key=True)
    job_id = Column(
        String(64), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    technician_id = Column(
        Integer, ForeignKey("technicians.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(String(20), nullable=False)  # assigned, sold_by, primary
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("job_id", "technician_id", "role", name="uq_job_technicians_role"),
        CheckConstraint(
            "role IN ('assigned', 'sold_by', 'primary')", name="ck_job_technicians_role"
        ),
    )
