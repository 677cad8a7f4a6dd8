"""Job profitability CLI.

Commands:
- init-db: Create database tables
- import: Import a jobs report and its invoices report
- list: Show import history
- technicians: Show technician performance
- summary, job-types, campaigns, customers: Profitability reports
- red-flags: Jobs, job types and customers that lose money or earn too little

Profitability reports accept --from and --to (YYYY-MM-DD) completion-date bounds.
"""
import logging
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from jobprofit.config import get_settings
from jobprofit.database import Base, SessionLocal, engine
from jobprofit.models import ImportBatch  # noqa: F401 - Import to register models
from jobprofit.services.importer import BatchImporter, ImportStepError
from jobprofit.services.reports import (
    DEFAULT_HIGH_REVENUE_MARGIN_THRESHOLD,
    DEFAULT_HIGH_REVENUE_THRESHOLD,
    DEFAULT_JOB_TYPE_MARGIN_THRESHOLD,
    high_revenue_low_margin_jobs,
    list_import_batches,
    low_margin_job_types,
    negative_margin_jobs,
    profit_by_campaign,
    profit_by_customer,
    profit_by_job_type,
    profitability_summary,
    technician_performance,
    unprofitable_customers,
)

app = typer.Typer(
    name="jobprofit",
    help="Job profitability - import exports and report job and technician metrics",
    no_args_is_help=True,
)

red_flags_cli = typer.Typer(help="Profitability red flags", no_args_is_help=True)
app.add_typer(red_flags_cli, name="red-flags")

console = Console()


@app.callback()
def main():
    """Configure console logging for every command."""
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


@app.command(name="init-db")
def init_db(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Create database tables."""
    if drop:
        console.print("[yellow]Dropping existing tables...[/yellow]")
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command(name="import")
def import_cmd(
    jobs_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Jobs report CSV"),
    invoices_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Invoices report CSV"),
):
    """Import a jobs report and its invoices report."""
    console.print(f"[bold]Jobs file:[/bold]     {jobs_file}")
    console.print(f"[bold]Invoices file:[/bold] {invoices_file}")

    db = SessionLocal()
    try:
        result = BatchImporter(db).import_files(jobs_file, invoices_file)
    except ImportStepError as e:
        console.print(f"[bold red]✗ Import failed:[/bold red] {e}")
        if e.batch_id is not None:
            console.print(f"  Failed batch ID: {e.batch_id}")
        raise typer.Exit(code=1)
    finally:
        db.close()

    if result.already_imported:
        console.print("[cyan]These files have already been imported[/cyan]")
        console.print(f"  Batch ID: {result.batch_id}")
        return

    console.print("[bold green]✓ Import successful[/bold green]")
    table = Table(show_header=False)
    table.add_row("Batch ID", str(result.batch_id))
    table.add_row("Jobs imported", str(result.jobs_imported))
    table.add_row("Invoices imported", str(result.invoices_imported))
    if result.invoices_skipped:
        table.add_row("Invoices skipped", f"{result.invoices_skipped} (no matching job)")
    table.add_row("Customers upserted", str(result.customers_upserted))
    table.add_row("Technicians", str(result.technicians_imported))
    table.add_row("Job metrics", str(result.job_metrics_calculated))
    table.add_row("Technician metrics", str(result.technician_metrics_calculated))
    table.add_row("Duration", f"{result.duration:.2f}s")
    console.print(table)

    if result.warnings:
        console.print("[yellow]Warnings:[/yellow]")
        for warning in result.warnings:
            console.print(f"  - {warning}")


@app.command(name="list")
def list_cmd(
    limit: int = typer.Option(20, "--limit", help="Number of batches to show"),
):
    """Show import history."""
    db = SessionLocal()
    try:
        batches = list_import_batches(db, limit)
    finally:
        db.close()

    if not batches:
        console.print("No imports yet")
        return

    table = Table(title="Import history")
    table.add_column("ID", justify="right")
    table.add_column("Imported at")
    table.add_column("Jobs file")
    table.add_column("Invoices file")
    table.add_column("Jobs", justify="right")
    table.add_column("Invoices", justify="right")
    table.add_column("Status")
    for batch in batches:
        status = {"success": "[green]success[/green]", "failed": "[red]failed[/red]"}.get(
            batch.status, batch.status
        )
        table.add_row(
            str(batch.id),
            batch.imported_at.strftime("%Y-%m-%d %H:%M"),
            batch.job_report_filename,
            batch.invoice_report_filename,
            str(batch.row_count_jobs),
            str(batch.row_count_invoices),
            status,
        )
    console.print(table)


@app.command()
def technicians():
    """Show technician performance, best sellers first."""
    db = SessionLocal()
    try:
        rows = technician_performance(db)
    finally:
        db.close()

    if not rows:
        console.print("No technician metrics yet")
        return

    table = Table(title="Technician performance")
    table.add_column("Technician")
    table.add_column("Sold", justify="right")
    table.add_column("Total sales", justify="right")
    table.add_column("Avg sale", justify="right")
    table.add_column("Conversion", justify="right")
    table.add_column("Serviced", justify="right")
    table.add_column("Avg hours", justify="right")
    table.add_column("Avg margin", justify="right")
    for row in rows:
        table.add_row(
            row.name,
            str(row.jobs_sold),
            _money(row.total_sales),
            _money(row.avg_sale),
            _pct(row.conversion_rate),
            str(row.jobs_serviced),
            _number(row.avg_hours_per_job),
            _pct(row.avg_margin_pct),
        )
    console.print(table)


def _parse_date(value: Optional[str], option: str) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"expected YYYY-MM-DD, got '{value}'", param_hint=option)


def _date_range(date_from: Optional[str], date_to: Optional[str]) -> tuple[Optional[date], Optional[date]]:
    start, end = _parse_date(date_from, "--from"), _parse_date(date_to, "--to")
    if start is not None or end is not None:
        console.print(f"Date range: {start or '(all)'} to {end or '(all)'}")
    return start, end


FROM_OPTION = typer.Option(None, "--from", help="Only jobs completed on or after YYYY-MM-DD")
TO_OPTION = typer.Option(None, "--to", help="Only jobs completed on or before YYYY-MM-DD")


def _run_report(query, *args):
    db = SessionLocal()
    try:
        return query(db, *args)
    finally:
        db.close()


@app.command()
def summary(
    date_from: Optional[str] = FROM_OPTION,
    date_to: Optional[str] = TO_OPTION,
):
    """Executive profitability summary with breakdowns."""
    start, end = _date_range(date_from, date_to)
    report = _run_report(profitability_summary, start, end)

    if report.total_jobs == 0:
        console.print("No completed jobs with metrics in this range")
        return

    overview = Table(title="Profitability summary", show_header=False)
    overview.add_row("Jobs", str(report.total_jobs))
    overview.add_row("Revenue", _money(report.total_revenue))
    overview.add_row("Costs", _money(report.total_costs))
    overview.add_row("Gross profit", _money(report.total_profit))
    overview.add_row("Avg margin", _pct(report.avg_margin_pct))
    overview.add_row("Jobs with loss", str(report.jobs_with_loss))
    overview.add_row("Total loss", _money(-report.total_loss))
    console.print(overview)

    _print_job_types("By job type", report.job_types)

    table = Table(title="Top customers")
    table.add_column("Customer")
    table.add_column("Jobs", justify="right")
    table.add_column("Avg margin", justify="right")
    table.add_column("Total profit", justify="right")
    for row in report.top_customers:
        table.add_row(
            row["customer_name"],
            str(row["job_count"]),
            _pct(row["avg_margin_pct"]),
            _money(row["total_profit"]),
        )
    console.print(table)

    if report.red_flag_jobs:
        _print_jobs("Jobs with negative margins", report.red_flag_jobs)


@app.command(name="job-types")
def job_types(
    date_from: Optional[str] = FROM_OPTION,
    date_to: Optional[str] = TO_OPTION,
):
    """Profitability by job type."""
    start, end = _date_range(date_from, date_to)
    rows = _run_report(profit_by_job_type, start, end)
    if not rows:
        console.print("No completed jobs with metrics")
        return
    _print_job_types("Profitability by job type", [row._mapping for row in rows])


@app.command()
def campaigns(
    date_from: Optional[str] = FROM_OPTION,
    date_to: Optional[str] = TO_OPTION,
):
    """Profitability by marketing campaign."""
    start, end = _date_range(date_from, date_to)
    rows = _run_report(profit_by_campaign, start, end)
    if not rows:
        console.print("No completed jobs with metrics")
        return

    table = Table(title="Profitability by campaign")
    table.add_column("Campaign")
    table.add_column("Category")
    table.add_column("Jobs", justify="right")
    table.add_column("Avg profit", justify="right")
    table.add_column("Avg margin", justify="right")
    table.add_column("Total profit", justify="right")
    for row in rows:
        table.add_row(
            row.campaign_name,
            row.campaign_category,
            str(row.job_count),
            _money(row.avg_gross_profit),
            _pct(row.avg_margin_pct),
            _money(row.total_profit),
        )
    console.print(table)


@app.command()
def customers(
    top: int = typer.Option(25, "--top", help="Number of customers to show"),
    date_from: Optional[str] = FROM_OPTION,
    date_to: Optional[str] = TO_OPTION,
):
    """Most profitable customers."""
    start, end = _date_range(date_from, date_to)
    rows = _run_report(profit_by_customer, top, start, end)
    if not rows:
        console.print("No completed jobs with metrics")
        return

    table = Table(title=f"Top {top} customers by profit")
    table.add_column("Customer")
    table.add_column("Type")
    table.add_column("Jobs", justify="right")
    table.add_column("Avg profit", justify="right")
    table.add_column("Avg margin", justify="right")
    table.add_column("Total profit", justify="right")
    for row in rows:
        table.add_row(
            row.customer_name,
            row.customer_type or "-",
            str(row.job_count),
            _money(row.avg_gross_profit),
            _pct(row.avg_margin_pct),
            _money(row.total_profit),
        )
    console.print(table)


@red_flags_cli.command(name="jobs")
def red_flag_jobs(
    date_from: Optional[str] = FROM_OPTION,
    date_to: Optional[str] = TO_OPTION,
):
    """Jobs with negative margins."""
    start, end = _date_range(date_from, date_to)
    rows = [row._mapping for row in _run_report(negative_margin_jobs, start, end)]
    if not rows:
        console.print("[green]✓ No jobs with negative margins found[/green]")
        return

    _print_jobs("Jobs with negative margins", rows)
    total_loss = sum(row["gross_profit"] for row in rows)
    console.print(f"[yellow]You lost money on {len(rows)} jobs totaling {_money(-total_loss)}[/yellow]")


@red_flags_cli.command(name="job-types")
def red_flag_job_types(
    margin_threshold: float = typer.Option(
        float(DEFAULT_JOB_TYPE_MARGIN_THRESHOLD), "--margin-threshold", help="Margin % threshold"
    ),
    date_from: Optional[str] = FROM_OPTION,
    date_to: Optional[str] = TO_OPTION,
):
    """Job types averaging below the margin threshold."""
    start, end = _date_range(date_from, date_to)
    threshold = Decimal(str(margin_threshold))
    rows = _run_report(low_margin_job_types, threshold, start, end)
    if not rows:
        console.print(f"[green]✓ No job types with average margin below {threshold}% found[/green]")
        return

    _print_job_types(f"Job types with average margin below {threshold}%", [row._mapping for row in rows])
    affected = sum(row.job_count for row in rows)
    console.print(
        f"[yellow]{len(rows)} job types below {threshold}% margin, affecting {affected} jobs[/yellow]"
    )


@red_flags_cli.command(name="customers")
def red_flag_customers(
    date_from: Optional[str] = FROM_OPTION,
    date_to: Optional[str] = TO_OPTION,
):
    """Customers with a negative total margin."""
    start, end = _date_range(date_from, date_to)
    rows = _run_report(unprofitable_customers, start, end)
    if not rows:
        console.print("[green]✓ No customers with negative total margin found[/green]")
        return

    table = Table(title="Customers with negative total margin")
    table.add_column("Customer")
    table.add_column("Jobs", justify="right")
    table.add_column("Revenue", justify="right")
    table.add_column("Costs", justify="right")
    table.add_column("Total loss", justify="right")
    table.add_column("First job")
    table.add_column("Last job")
    for row in rows:
        table.add_row(
            row.customer_name,
            str(row.job_count),
            _money(row.total_revenue),
            _money(row.total_costs),
            _money(row.total_profit),
            str(row.first_job_date or "-"),
            str(row.last_job_date or "-"),
        )
    console.print(table)


@red_flags_cli.command(name="high-revenue")
def red_flag_high_revenue(
    margin_threshold: float = typer.Option(
        float(DEFAULT_HIGH_REVENUE_MARGIN_THRESHOLD), "--margin-threshold", help="Margin % threshold"
    ),
    revenue_threshold: float = typer.Option(
        float(DEFAULT_HIGH_REVENUE_THRESHOLD), "--revenue-threshold", help="Minimum revenue"
    ),
    date_from: Optional[str] = FROM_OPTION,
    date_to: Optional[str] = TO_OPTION,
):
    """High revenue jobs with low margins."""
    start, end = _date_range(date_from, date_to)
    margin, revenue = Decimal(str(margin_threshold)), Decimal(str(revenue_threshold))
    rows = [
        row._mapping
        for row in _run_report(high_revenue_low_margin_jobs, revenue, margin, start, end)
    ]
    if not rows:
        console.print(
            f"[green]✓ No jobs over {_money(revenue)} with margin below {margin}% found[/green]"
        )
        return

    _print_jobs(f"Jobs over {_money(revenue)} with margin below {margin}%", rows)


def _print_job_types(title: str, rows) -> None:
    table = Table(title=title)
    table.add_column("Job type")
    table.add_column("Jobs", justify="right")
    table.add_column("Avg revenue", justify="right")
    table.add_column("Avg profit", justify="right")
    table.add_column("Avg margin", justify="right")
    table.add_column("Total profit", justify="right")
    for row in rows:
        table.add_row(
            row["job_type"],
            str(row["job_count"]),
            _money(row["avg_revenue"]),
            _money(row["avg_gross_profit"]),
            _pct(row["avg_margin_pct"]),
            _money(row["total_profit"]),
        )
    console.print(table)


def _print_jobs(title: str, rows) -> None:
    table = Table(title=title)
    table.add_column("Job ID")
    table.add_column("Customer")
    table.add_column("Job type")
    table.add_column("Revenue", justify="right")
    table.add_column("Costs", justify="right")
    table.add_column("Profit", justify="right")
    table.add_column("Margin", justify="right")
    table.add_column("Completed")
    for row in rows:
        table.add_row(
            row["job_id"],
            row["customer_name"],
            row["job_type"],
            _money(row["revenue"]),
            _money(row["total_costs"]),
            _money(row["gross_profit"]),
            _pct(row["gross_margin_pct"]),
            str(row["job_completion_date"] or "-"),
        )
    console.print(table)


def _money(value: Optional[Decimal]) -> str:
    return "-" if value is None else f"${value:,.2f}"


def _pct(value: Optional[Decimal]) -> str:
    return "-" if value is None else f"{value:.1f}%"


def _number(value: Optional[Decimal]) -> str:
    return "-" if value is None else f"{value:.1f}"


if __name__ == "__main__":
    app()
