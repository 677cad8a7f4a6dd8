"""Pytest configuration and fixtures."""
import csv
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from jobprofit.database import Base, create_db_engine, get_db
from jobprofit.main import app

JOB_COLUMNS = [
    "Job ID",
    "Customer ID",
    "Customer Name",
    "Customer Type",
    "Location City",
    "Job Type",
    "Status",
    "Completion Date",
    "Job Campaign ID",
    "Campaign Category",
    "Assigned Technicians",
    "Sold By",
    "Primary Technician",
    "Jobs Subtotal",
    "Jobs Total",
    "Estimate Sales Subtotal",
    "Total Hours Worked",
    "Estimate Count",
]

INVOICE_COLUMNS = [
    "Invoice #",
    "Job #",
    "Invoice Date",
    "Total",
    "Costs Total",
    "Is Adjustment",
]

JOB_DEFAULTS = {
    "Customer ID": "1",
    "Customer Name": "Jane Doe",
    "Customer Type": "Residential",
    "Job Type": "AC Repair",
    "Status": "Completed",
    "Completion Date": "3/15/2024",
    "Jobs Subtotal": "$1,000.00",
}

INVOICE_DEFAULTS = {
    "Invoice Date": "3/15/2024",
    "Costs Total": "$0.00",
    "Is Adjustment": "FALSE",
}


@pytest.fixture
def test_engine():
    """Create a fresh in-memory database for each test."""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(test_engine):
    """Database session bound to the test database."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def client(test_engine):
    """API client whose requests use the test database."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

    def override_get_db():
        try:
            db = TestingSessionLocal()
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    yield TestClient(app)

    app.dependency_overrides.clear()


def write_csv(path, columns, rows):
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=columns)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
    return path


@pytest.fixture
def make_export(tmp_path):
    """
    Write a jobs/invoices CSV pair.

    Rows are dicts keyed by export column name, layered over sensible defaults.
    """

    def _make(jobs, invoices, name="export"):
        jobs_path = write_csv(
            tmp_path / f"{name}_jobs.csv",
            JOB_COLUMNS,
            [{**JOB_DEFAULTS, **job} for job in jobs],
        )
        invoices_path = write_csv(
            tmp_path / f"{name}_invoices.csv",
            INVOICE_COLUMNS,
            [{**INVOICE_DEFAULTS, **invoice} for invoice in invoices],
        )
        return jobs_path, invoices_path

    return _make
