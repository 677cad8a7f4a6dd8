"""Database models."""
from jobprofit.models.customer import Customer
from jobprofit.models.import_batch import ImportBatch
from jobprofit.models.invoice import Invoice
from jobprofit.models.job import Job
from jobprofit.models.metrics import JobMetric, TechnicianMetric
from jobprofit.models.technician import JobTechnician, Technician

__all__ = [
    "Customer",
    "ImportBatch",
    "Invoice",
    "Job",
    "JobMetric",
    "JobTechnician",
    "Technician",
    "TechnicianMetric",
]
