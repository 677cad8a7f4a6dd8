"""CSV parsing for job and invoice exports."""
import csv
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DATE_FORMATS = (
    "%m/%d/%Y",  # M/D/YYYY and MM/DD/YYYY
    "%Y-%m-%d",
    "%m-%d-%Y",
)

TRUE_VALUES = {"TRUE", "YES", "1"}

# Upper bounds (exclusive) of the Numeric(12, 2) money and Numeric(8, 2) hours columns
MAX_AMOUNT = Decimal(10) ** 10
MAX_HOURS = Decimal(10) ** 6


class RowValidationError(ValueError):
    """A row failed validation; the whole import is aborted."""

    def __init__(self, row: int, column: str, value: str, reason: str):
        self.row = row
        self.column = column
        self.value = value
        self.reason = reason
        super().__init__(f"row {row}, column {column}: failed to parse '{value}': {reason}")


@dataclass
class JobRow:
    """A parsed row from the jobs report."""

    job_id: str
    customer_id: int
    job_type: str
    status: str

    customer_name: Optional[str] = None
    customer_type: Optional[str] = None
    customer_city: Optional[str] = None
    customer_state: Optional[str] = None
    customer_zip: Optional[str] = None
    location_city: Optional[str] = None
    location_state: Optional[str] = None
    location_zip: Optional[str] = None

    business_unit: Optional[str] = None
    job_creation_date: Optional[date] = None
    job_schedule_date: Optional[date] = None
    job_completion_date: Optional[date] = None

    assigned_technicians: Optional[str] = None
    sold_by: Optional[str] = None
    primary_technician: Optional[str] = None
    booked_by: Optional[str] = None

    job_campaign_id: Optional[str] = None
    call_campaign_id: Optional[str] = None
    campaign_category: Optional[str] = None

    jobs_subtotal: Optional[Decimal] = None
    job_total: Optional[Decimal] = None
    estimate_sales_subtotal: Optional[Decimal] = None

    invoice_id: Optional[str] = None
    total_hours_worked: Optional[Decimal] = None
    priority: Optional[str] = None
    survey_result: Optional[Decimal] = None
    estimate_count: Optional[int] = None
    opportunity: bool = False
    converted: bool = False


@dataclass
class InvoiceRow:
    """A parsed row from the invoices report."""

    invoice_id: str
    job_id: str
    invoice_date: date

    invoice_status: Optional[str] = None
    invoice_type: Optional[str] = None
    invoice_summary: Optional[str] = None

    total: Optional[Decimal] = None
    balance: Optional[Decimal] = None
    payments: Optional[Decimal] = None

    material_costs: Optional[Decimal] = None
    equipment_costs: Optional[Decimal] = None
    purchase_order_costs: Optional[Decimal] = None
    return_costs: Optional[Decimal] = None
    costs_total: Optional[Decimal] = None

    material_retail: Optional[Decimal] = None
    material_markup: Optional[Decimal] = None
    equipment_retail: Optional[Decimal] = None
    equipment_markup: Optional[Decimal] = None
    labor: Optional[Decimal] = None
    labor_pay: Optional[Decimal] = None
    labor_burden: Optional[Decimal] = None
    total_labor_costs: Optional[Decimal] = None

    income: Optional[Decimal] = None
    discount_total: Optional[Decimal] = None

    is_adjustment: bool = False


def parse_jobs_file(path) -> list[JobRow]:
    """
    Parse a jobs report CSV.

    Args:
        path: Path to the jobs CSV file

    Returns:
        Parsed rows in file order

    Raises:
        RowValidationError: On the first row with a missing or malformed required field
    """
    return [_parse_job_row(row, row_num) for row_num, row in _read_rows(path)]


def parse_invoices_file(path) -> list[InvoiceRow]:
    """
    Parse an invoices report CSV.

    Args:
        path: Path to the invoices CSV file

    Returns:
        Parsed rows in file order

    Raises:
        RowValidationError: On the first row with a missing or malformed required field
    """
    return [_parse_invoice_row(row, row_num) for row_num, row in _read_rows(path)]


def _read_rows(path):
    """Yield (row number, row) with lower-cased, trimmed header keys."""
    with open(Path(path), "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.reader(f, skipinitialspace=True)
        headers = next(reader, None)
        if not headers:
            raise RowValidationError(1, "header", "", "CSV file is empty")

        columns = [h.strip().lower() for h in headers]
        logger.debug(f"📑 {Path(path).name}: {len(columns)} columns")

        for row_num, record in enumerate(reader, start=2):  # Start at 2 (header is row 1)
            if not any(cell.strip() for cell in record):
                continue
            row = {}
            for idx, column in enumerate(columns):
                # First occurrence of a duplicated header wins
                if column not in row:
                    row[column] = record[idx].strip() if idx < len(record) else ""
            yield row_num, row


def _parse_job_row(row: dict, row_num: int) -> JobRow:
    field = row.get
    return JobRow(
        job_id=_required(field("job id", ""), row_num, "Job ID"),
        customer_id=_required_int(field("customer id", ""), row_num, "Customer ID"),
        job_type=_required(field("job type", ""), row_num, "Job Type"),
        status=_required(field("status", ""), row_num, "Status"),
        customer_name=_nullable(field("customer name", "")),
        customer_type=_nullable(field("customer type", "")),
        customer_city=_nullable(field("customer city", "")),
        customer_state=_nullable(field("customer state", "")),
        customer_zip=_nullable(field("customer zip", "")),
        location_city=_nullable(field("location city", "")),
        location_state=_nullable(field("location state", "")),
        location_zip=_nullable(field("location zip", "")),
        business_unit=_nullable(field("business unit", "")),
        job_creation_date=_nullable_date(field("created date", "")),
        job_schedule_date=_nullable_date(field("scheduled date", "")),
        job_completion_date=_nullable_date(field("completion date", "")),
        assigned_technicians=_nullable(field("assigned technicians", "")),
        sold_by=_nullable(field("sold by", "")),
        primary_technician=_nullable(field("primary technician", "")),
        booked_by=_nullable(field("booked by", "")),
        job_campaign_id=_nullable(field("job campaign id", "")),
        call_campaign_id=_nullable(field("call campaign id", "")),
        campaign_category=_nullable(field("campaign category", "")),
        jobs_subtotal=_optional_decimal(field("jobs subtotal", ""), row_num, "Jobs Subtotal"),
        job_total=_optional_decimal(field("jobs total", ""), row_num, "Jobs Total"),
        estimate_sales_subtotal=_optional_decimal(
            field("estimate sales subtotal", ""), row_num, "Estimate Sales Subtotal"
        ),
        invoice_id=_nullable(field("invoice id", "")),
        total_hours_worked=_nullable_decimal(field("total hours worked", ""), MAX_HOURS),
        priority=_nullable(field("priority", "")),
        survey_result=_nullable_decimal(field("survey result", "")),
        estimate_count=_nullable_int(field("estimate count", "") or field("estimates", "")),
        opportunity=_parse_bool(field("opportunity", "")),
        converted=_parse_bool(field("converted", "")),
    )


def _parse_invoice_row(row: dict, row_num: int) -> InvoiceRow:
    field = row.get

    raw_date = field("invoice date", "")
    if not raw_date:
        raise RowValidationError(row_num, "Invoice Date", raw_date, "required field is empty")
    invoice_date = _nullable_date(raw_date)
    if invoice_date is None:
        raise RowValidationError(row_num, "Invoice Date", raw_date, "invalid date format")

    return InvoiceRow(
        invoice_id=_required(field("invoice #", ""), row_num, "Invoice #"),
        job_id=_required(field("job #", ""), row_num, "Job #"),
        invoice_date=invoice_date,
        invoice_status=_nullable(field("invoice status", "")),
        invoice_type=_nullable(field("invoice type", "")),
        invoice_summary=_nullable(field("invoice summary", "")),
        total=_optional_decimal(field("total", ""), row_num, "Total"),
        balance=_nullable_decimal(field("balance", "")),
        payments=_nullable_decimal(field("payments", "")),
        material_costs=_nullable_decimal(field("material costs", "")),
        equipment_costs=_nullable_decimal(field("equipment costs", "")),
        purchase_order_costs=_nullable_decimal(field("purchase order costs", "")),
        return_costs=_nullable_decimal(field("return costs", "")),
        costs_total=_nullable_decimal(field("costs total", "")),
        material_retail=_nullable_decimal(field("material retail", "")),
        material_markup=_nullable_decimal(field("material markup", "")),
        equipment_retail=_nullable_decimal(field("equipment retail", "")),
        equipment_markup=_nullable_decimal(field("equipment markup", "")),
        labor=_nullable_decimal(field("labor", "")),
        labor_pay=_nullable_decimal(field("labor pay", "")),
        labor_burden=_nullable_decimal(field("labor burden", "")),
        total_labor_costs=_nullable_decimal(field("total labor costs", "")),
        income=_nullable_decimal(field("income", "")),
        discount_total=_nullable_decimal(field("discount total", "")),
        is_adjustment=_parse_bool(field("is adjustment", "")),
    )


def _required(value: str, row_num: int, column: str) -> str:
    if not value:
        raise RowValidationError(row_num, column, value, "required field is empty")
    return value


def _required_int(value: str, row_num: int, column: str) -> int:
    _required(value, row_num, column)
    try:
        return int(value.replace(",", ""))
    except ValueError:
        raise RowValidationError(row_num, column, value, "not an integer")


def _optional_decimal(value: str, row_num: int, column: str) -> Optional[Decimal]:
    """Empty is allowed; anything else must be a valid amount."""
    if not value:
        return None
    try:
        return _to_amount(value, MAX_AMOUNT)
    except InvalidOperation:
        raise RowValidationError(row_num, column, value, "not a valid amount")


def _nullable(value: str) -> Optional[str]:
    value = value.strip()
    return value or None


def _nullable_int(value: str) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value.replace(",", ""))
    except ValueError:
        return None


def _nullable_decimal(value: str, limit: Decimal = MAX_AMOUNT) -> Optional[Decimal]:
    if not value:
        return None
    try:
        return _to_amount(value, limit)
    except InvalidOperation:
        return None


def _to_amount(value: str, limit: Decimal) -> Decimal:
    """Parse a finite amount strictly below limit in magnitude; InvalidOperation otherwise."""
    amount = Decimal(clean_currency(value))
    if not amount.is_finite() or abs(amount) >= limit:
        raise InvalidOperation(f"{value!r} is not a storable amount")
    return amount


def _nullable_date(value: str) -> Optional[date]:
    if not value:
        return None
    value = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def _parse_bool(value: str) -> bool:
    return value.strip().upper() in TRUE_VALUES


def clean_currency(value: str) -> str:
    """
    Strip currency formatting from an amount.

    "$1,234.50" becomes "1234.50"; accounting notation "(5,517.95)" becomes "-5517.95".
    """
    value = value.strip()

    negative = False
    if value.startswith("(") and value.endswith(")"):
        negative = True
        value = value[1:-1].strip()

    value = value.replace("$", "").replace(",", "").strip()

    if negative and value:
        value = "-" + value
    return value
