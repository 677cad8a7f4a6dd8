"""Tests for the jobs and invoices CSV parsers."""
from datetime import date
from decimal import Decimal

import pytest

from jobprofit.services.csv_parser import (
    RowValidationError,
    clean_currency,
    parse_invoices_file,
    parse_jobs_file,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$1,234.50", "1234.50"),
        ("(5,517.95)", "-5517.95"),
        ("($20.00)", "-20.00"),
        ("  42 ", "42"),
        ("", ""),
    ],
)
def test_clean_currency(raw, expected):
    assert clean_currency(raw) == expected


def test_parse_jobs(make_export):
    jobs_path, _ = make_export(
        [
            {
                "Job ID": "1001",
                "Customer ID": "1,234",
                "Completion Date": "2024-03-05",
                "Assigned Technicians": "Alex Smith, Bea Jones",
                "Sold By": "Alex Smith",
                "Jobs Subtotal": "(50.00)",
                "Estimate Sales Subtotal": "",
                "Total Hours Worked": "n/a",
                "Estimate Count": "2",
            },
        ],
        [],
    )

    [row] = parse_jobs_file(jobs_path)

    assert row.job_id == "1001"
    assert row.customer_id == 1234
    assert row.job_completion_date == date(2024, 3, 5)
    assert row.assigned_technicians == "Alex Smith, Bea Jones"
    assert row.sold_by == "Alex Smith"
    assert row.primary_technician is None
    assert row.jobs_subtotal == Decimal("-50.00")
    assert row.estimate_sales_subtotal is None
    assert row.total_hours_worked is None
    assert row.estimate_count == 2


def test_parse_invoices(make_export):
    _, invoices_path = make_export(
        [],
        [
            {
                "Invoice #": "INV-1",
                "Job #": "1001",
                "Invoice Date": "03-15-2024",
                "Total": "$1,000.00",
                "Costs Total": "$250.50",
                "Is Adjustment": "yes",
            },
            {
                "Invoice #": "INV-2",
                "Job #": "1001",
                "Invoice Date": "3/16/2024",
                "Is Adjustment": "FALSE",
            },
        ],
    )

    first, second = parse_invoices_file(invoices_path)

    assert first.invoice_date == date(2024, 3, 15)
    assert first.total == Decimal("1000.00")
    assert first.costs_total == Decimal("250.50")
    assert first.is_adjustment is True
    assert second.invoice_date == date(2024, 3, 16)
    assert second.is_adjustment is False


def test_headers_are_case_and_space_insensitive(tmp_path):
    path = tmp_path / "jobs.csv"
    path.write_text(" JOB ID ,customer id,Job Type,STATUS\n7,3,Install,Completed\n")

    [row] = parse_jobs_file(path)

    assert row.job_id == "7"
    assert row.customer_id == 3
    assert row.status == "Completed"


def test_blank_rows_are_skipped(tmp_path):
    path = tmp_path / "jobs.csv"
    path.write_text("Job ID,Customer ID,Job Type,Status\n1,1,Repair,Completed\n,,,\n2,1,Repair,Completed\n")

    assert [row.job_id for row in parse_jobs_file(path)] == ["1", "2"]


def test_missing_required_field_reports_row_and_column(make_export):
    jobs_path, _ = make_export([{"Job ID": "1"}, {"Job ID": "2", "Job Type": ""}], [])

    with pytest.raises(RowValidationError) as exc_info:
        parse_jobs_file(jobs_path)

    assert exc_info.value.row == 3
    assert exc_info.value.column == "Job Type"
    assert "required field is empty" in str(exc_info.value)


def test_malformed_amount_is_rejected(make_export):
    jobs_path, _ = make_export([{"Job ID": "1", "Jobs Subtotal": "lots"}], [])

    with pytest.raises(RowValidationError) as exc_info:
        parse_jobs_file(jobs_path)

    assert exc_info.value.column == "Jobs Subtotal"
    assert exc_info.value.value == "lots"


def test_invalid_invoice_date_is_rejected(make_export):
    _, invoices_path = make_export([], [{"Invoice #": "A", "Job #": "1", "Invoice Date": "15/31/2024"}])

    with pytest.raises(RowValidationError, match="invalid date format"):
        parse_invoices_file(invoices_path)


def test_empty_file(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("")

    with pytest.raises(RowValidationError, match="CSV file is empty"):
        parse_jobs_file(path)


@pytest.mark.parametrize("amount", ["NaN", "Infinity", "-inf", "1e400", "$10,000,000,000.00"])
def test_non_finite_or_oversized_amount_is_rejected(make_export, amount):
    jobs_path, _ = make_export([{"Job ID": "1", "Jobs Subtotal": amount}], [])

    with pytest.raises(RowValidationError) as exc_info:
        parse_jobs_file(jobs_path)

    assert exc_info.value.row == 2
    assert exc_info.value.column == "Jobs Subtotal"
    assert exc_info.value.reason == "not a valid amount"


def test_lenient_fields_drop_unstorable_numbers(make_export):
    jobs_path, invoices_path = make_export(
        [{"Job ID": "1", "Total Hours Worked": "2000000"}],
        [{"Invoice #": "A", "Job #": "1", "Costs Total": "NaN"}],
    )

    [job] = parse_jobs_file(jobs_path)
    [invoice] = parse_invoices_file(invoices_path)

    assert job.total_hours_worked is None
    assert invoice.costs_total is None
