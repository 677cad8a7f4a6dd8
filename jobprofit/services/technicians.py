"""Technician identity resolution and job/technician role attribution."""
import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from jobprofit.database import dialect_insert, greatest_of, least_of
from jobprofit.models.technician import (
    ROLE_ASSIGNED,
    ROLE_PRIMARY,
    ROLE_SOLD_BY,
    JobTechnician,
    Technician,
)

logger = logging.getLogger(__name__)


def normalize_name(name: str) -> str:
    """Trim and collapse inner whitespace."""
    return " ".join(name.split())


def split_technician_names(names: str) -> list[str]:
    """Split the comma-separated assigned-technicians field into names."""
    return [n for n in (normalize_name(part) for part in names.split(",")) if n]


class TechnicianResolver(ABC):
    """Maps a technician as it appears in an export to a technician id."""

    @abstractmethod
    def resolve(self, name: str, seen_on: Optional[date]) -> int:
        """Return the technician id for name, creating the technician if needed."""

    @property
    @abstractmethod
    def resolved_count(self) -> int:
        """Distinct technicians resolved during this run."""


class NameTechnicianResolver(TechnicianResolver):
    """
    Resolve technicians by normalised name.

    Holds a name -> id cache for one import run. A cached technician is only
    upserted again when a job date falls outside the first/last-seen window
    already written during the run.
    """

    def __init__(self, db: Session):
        self.db = db
        self._cache: dict[str, tuple[int, Optional[date], Optional[date]]] = {}

    @property
    def resolved_count(self) -> int:
        return len(self._cache)

    def resolve(self, name: str, seen_on: Optional[date]) -> int:
        name = normalize_name(name)
        if not name:
            raise ValueError("technician name cannot be empty")

        cached = self._cache.get(name)
        if cached is not None:
            tech_id, first, last = cached
            if seen_on is None or (first is not None and first <= seen_on <= last):
                return tech_id

        tech_id = self._upsert(name, seen_on)

        first, last = seen_on, seen_on
        if cached is not None:
            first = min(d for d in (cached[1], seen_on) if d is not None)
            last = max(d for d in (cached[2], seen_on) if d is not None)
        self._cache[name] = (tech_id, first, last)
        return tech_id

    def _upsert(self, name: str, seen_on: Optional[date]) -> int:
        stmt = dialect_insert(self.db, Technician).values(
            name=name, first_seen_date=seen_on, last_seen_date=seen_on
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["name"],
            set_={
                "first_seen_date": least_of(
                    Technician.first_seen_date, stmt.excluded.first_seen_date
                ),
                "last_seen_date": greatest_of(
                    Technician.last_seen_date, stmt.excluded.last_seen_date
                ),
                "updated_at": func.now(),
            },
        ).returning(Technician.id)
        return self.db.execute(stmt).scalar_one()


def attribute_job(db: Session, resolver: TechnicianResolver, job) -> int:
    """
    Record the role associations of one job.

    sold_by and primary yield at most one association each; every name in the
    assigned list yields its own. Repeating a (job, technician, role) triple is a no-op.

    Returns:
        Number of associations submitted
    """
    roles = []
    if job.sold_by:
        roles.append((job.sold_by, ROLE_SOLD_BY))
    if job.primary_technician:
        roles.append((job.primary_technician, ROLE_PRIMARY))
    if job.assigned_technicians:
        roles.extend((name, ROLE_ASSIGNED) for name in split_technician_names(job.assigned_technicians))

    for name, role in roles:
        tech_id = resolver.resolve(name, job.job_completion_date)
        stmt = dialect_insert(db, JobTechnician).values(
            job_id=job.job_id, technician_id=tech_id, role=role
        )
        db.execute(
            stmt.on_conflict_do_nothing(index_elements=["job_id", "technician_id", "role"])
        )

    return len(roles)


def import_technicians(db: Session, jobs: Iterable, resolver: TechnicianResolver) -> int:
    """
    Resolve technicians and record role associations for every job in a batch.

    Args:
        db: Database session (inside the import transaction)
        jobs: Parsed job rows
        resolver: Identity resolver scoped to this run

    Returns:
        Number of distinct technicians touched
    """
    associations = 0
    for job in jobs:
        associations += attribute_job(db, resolver, job)

    logger.info(
        f"👷 Resolved {resolver.resolved_count} technicians, {associations} role associations"
    )
    return resolver.resolved_count
