"""Tests for profitability and red-flag report queries."""
from datetime import date
from decimal import Decimal

import pytest

from jobprofit.services.importer import import_files
from jobprofit.services.reports import (
    high_revenue_low_margin_jobs,
    low_margin_job_types,
    negative_margin_jobs,
    profit_by_campaign,
    profit_by_customer,
    profit_by_job_type,
    profitability_summary,
    unprofitable_customers,
)


@pytest.fixture
def seeded(db, make_export):
    """
    Four completed jobs:

    J1 AC Repair, Jane Doe: 1000 revenue, 400 cost (60%)
    J2 AC Repair, John Roe: 500 revenue, 700 cost (-40%)
    J3 Install, John Roe: 5000 revenue, 4500 cost (10%)
    J4 Maintenance, Acme Corp: no revenue, 50 cost (no margin)
    """
    jobs_path, invoices_path = make_export(
        [
            {
                "Job ID": "J1",
                "Customer ID": "1",
                "Customer Name": "Jane Doe",
                "Job Type": "AC Repair",
                "Completion Date": "1/15/2024",
                "Job Campaign ID": "Spring Promo",
                "Campaign Category": "Digital",
                "Jobs Subtotal": "$1,000.00",
            },
            {
                "Job ID": "J2",
                "Customer ID": "2",
                "Customer Name": "John Roe",
                "Job Type": "AC Repair",
                "Completion Date": "2/10/2024",
                "Jobs Subtotal": "$500.00",
            },
            {
                "Job ID": "J3",
                "Customer ID": "2",
                "Customer Name": "John Roe",
                "Job Type": "Install",
                "Completion Date": "3/5/2024",
                "Jobs Subtotal": "$5,000.00",
            },
            {
                "Job ID": "J4",
                "Customer ID": "3",
                "Customer Name": "Acme Corp",
                "Customer Type": "Commercial",
                "Job Type": "Maintenance",
                "Completion Date": "3/20/2024",
                "Jobs Subtotal": "$0.00",
            },
            {
                "Job ID": "J5",
                "Customer ID": "3",
                "Customer Name": "Acme Corp",
                "Job Type": "Maintenance",
                "Status": "Canceled",
                "Completion Date": "3/21/2024",
                "Jobs Subtotal": "$100.00",
            },
        ],
        [
            {"Invoice #": "INV-1", "Job #": "J1", "Costs Total": "$400.00"},
            {"Invoice #": "INV-2", "Job #": "J2", "Costs Total": "$700.00"},
            {"Invoice #": "INV-3", "Job #": "J3", "Costs Total": "$4,500.00"},
            {"Invoice #": "INV-4", "Job #": "J4", "Costs Total": "$50.00"},
            {"Invoice #": "INV-5", "Job #": "J5", "Costs Total": "$500.00"},
        ],
    )
    import_files(db, jobs_path, invoices_path)
    return db


def test_negative_margin_jobs(seeded):
    rows = negative_margin_jobs(seeded)

    assert [row.job_id for row in rows] == ["J2", "J4"]
    assert rows[0].customer_name == "John Roe"
    assert rows[0].gross_profit == Decimal("-200")
    assert rows[1].gross_margin_pct is None


def test_negative_margin_jobs_in_date_range(seeded):
    rows = negative_margin_jobs(seeded, date_from=date(2024, 3, 1))
    assert [row.job_id for row in rows] == ["J4"]

    rows = negative_margin_jobs(seeded, date_to=date(2024, 2, 10))
    assert [row.job_id for row in rows] == ["J2"]


def test_low_margin_job_types_include_undefined_margins(seeded):
    """A job type is flagged when its average margin is below the threshold or unknown."""
    rows = low_margin_job_types(seeded)
    assert [row.job_type for row in rows] == ["Maintenance"]
    assert rows[0].avg_margin_pct is None

    rows = low_margin_job_types(seeded, margin_threshold=Decimal(15))
    assert [row.job_type for row in rows] == ["Maintenance", "AC Repair", "Install"]


def test_unprofitable_customers(seeded):
    [row] = unprofitable_customers(seeded)

    assert row.customer_name == "Acme Corp"
    assert row.job_count == 1
    assert row.total_profit == Decimal("-50")
    assert row.first_job_date == date(2024, 3, 20)


def test_high_revenue_low_margin_jobs(seeded):
    rows = high_revenue_low_margin_jobs(seeded)
    assert [row.job_id for row in rows] == ["J3"]

    assert high_revenue_low_margin_jobs(seeded, margin_threshold=Decimal(5)) == []
    rows = high_revenue_low_margin_jobs(seeded, revenue_threshold=Decimal(400))
    assert [row.job_id for row in rows] == ["J3", "J2"]


def test_profit_by_campaign(seeded):
    rows = profit_by_campaign(seeded)

    assert [(row.campaign_name, row.campaign_category) for row in rows] == [
        ("Spring Promo", "Digital"),
        ("Unknown", "Uncategorized"),
    ]
    assert rows[0].total_profit == Decimal("600")
    assert rows[1].job_count == 3


def test_profit_by_customer(seeded):
    rows = profit_by_customer(seeded, limit=2)

    assert [row.customer_id for row in rows] == [1, 2]
    assert rows[1].job_count == 2
    assert rows[1].total_profit == Decimal("300")


def test_profit_by_job_type_ignores_incomplete_jobs(seeded):
    by_type = {row.job_type: row for row in profit_by_job_type(seeded)}

    assert by_type["Maintenance"].job_count == 1
    assert by_type["AC Repair"].job_count == 2


def test_profitability_summary(seeded):
    summary = profitability_summary(seeded)

    assert summary.total_jobs == 4
    assert summary.total_revenue == Decimal("6500")
    assert summary.total_costs == Decimal("5650")
    assert summary.total_profit == Decimal("850")
    assert summary.avg_margin_pct == Decimal("10")
    assert summary.jobs_with_loss == 2
    assert summary.total_loss == Decimal("-250")
    assert [row["job_type"] for row in summary.job_types][0] == "Install"
    assert [row["job_id"] for row in summary.red_flag_jobs] == ["J2", "J4"]
    assert summary.top_customers[0]["customer_name"] == "Jane Doe"


def test_profitability_summary_in_date_range(seeded):
    summary = profitability_summary(seeded, date_to=date(2024, 2, 28))

    assert summary.date_to == date(2024, 2, 28)
    assert summary.total_jobs == 2
    assert summary.total_profit == Decimal("400")
    assert summary.jobs_with_loss == 1


def test_profitability_summary_without_data(db):
    summary = profitability_summary(db)

    assert summary.total_jobs == 0
    assert summary.total_revenue == Decimal("0")
    assert summary.avg_margin_pct is None
    assert summary.red_flag_jobs == []
