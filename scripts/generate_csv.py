"""Generate a sample jobs/invoices export pair for trying the importer."""
import csv
import random
import sys
from datetime import date, timedelta

JOB_HEADERS = [
    "Job ID",
    "Customer ID",
    "Customer Name",
    "Customer Type",
    "Location City",
    "Location State",
    "Location Zip",
    "Job Type",
    "Business Unit",
    "Status",
    "Completion Date",
    "Assigned Technicians",
    "Sold By",
    "Primary Technician",
    "Jobs Subtotal",
    "Jobs Total",
    "Estimate Sales Subtotal",
    "Total Hours Worked",
    "Estimate Count",
]

INVOICE_HEADERS = [
    "Invoice #",
    "Job #",
    "Invoice Date",
    "Invoice Type",
    "Total",
    "Material Costs",
    "Equipment Costs",
    "Costs Total",
    "Is Adjustment",
]

TECHNICIANS = [
    "Alex Moreno",
    "Brooke Chen",
    "Casey Patel",
    "Dana Okafor",
    "Eli Novak",
    "Frankie Ruiz",
]

JOB_TYPES = [
    "AC Repair",
    "Furnace Tune-Up",
    "System Replacement",
    "Water Heater Install",
    "Drain Cleaning",
]

STATUSES = ["Completed"] * 8 + ["Canceled", "Scheduled"]


def export_date(value: date) -> str:
    """M/D/YYYY, the export's date format."""
    return f"{value.month}/{value.day}/{value.year}"


def money(value: float) -> str:
    """Format as the export does, with accounting parentheses for negatives."""
    if value < 0:
        return f"(${-value:,.2f})"
    return f"${value:,.2f}"


def generate_csv(num_jobs: int, jobs_file: str, invoices_file: str) -> None:
    """
    Write a jobs report and a matching invoices report.

    Args:
        num_jobs: Number of job rows to generate
        jobs_file: Output path for the jobs CSV
        invoices_file: Output path for the invoices CSV
    """
    start = date(2024, 1, 1)

    with open(jobs_file, "w", newline="") as jf, open(invoices_file, "w", newline="") as inf:
        jobs = csv.writer(jf)
        invoices = csv.writer(inf)
        jobs.writerow(JOB_HEADERS)
        invoices.writerow(INVOICE_HEADERS)

        for i in range(num_jobs):
            job_id = str(100000 + i)
            customer_id = random.randint(1, max(1, num_jobs // 3))
            completed = start + timedelta(days=random.randint(0, 364))
            primary = random.choice(TECHNICIANS)
            sold_by = primary if random.random() < 0.6 else random.choice(TECHNICIANS)
            helpers = random.sample(TECHNICIANS, k=random.randint(1, 2))
            subtotal = round(random.uniform(150, 12000), 2)
            estimate_sales = round(subtotal * random.uniform(0.8, 1.2), 2) if random.random() < 0.3 else 0

            jobs.writerow([
                job_id,
                customer_id,
                f"Customer {customer_id}",
                random.choice(["Residential", "Commercial"]),
                "Springfield",
                "IL",
                f"627{customer_id % 100:02d}",
                random.choice(JOB_TYPES),
                "HVAC Service",
                random.choice(STATUSES),
                export_date(completed),
                ", ".join(helpers),
                sold_by,
                primary,
                money(subtotal),
                money(round(subtotal * 1.08, 2)),
                money(estimate_sales),
                round(random.uniform(0.5, 16), 2),
                random.randint(0, 3),
            ])

            for n in range(random.randint(1, 2)):
                costs = round(subtotal * random.uniform(0.2, 0.7) / (n + 1), 2)
                invoices.writerow([
                    f"{job_id}-{n + 1}",
                    job_id,
                    export_date(completed),
                    "Service",
                    money(subtotal),
                    money(costs * 0.7),
                    money(costs * 0.3),
                    money(costs),
                    "FALSE",
                ])

            if random.random() < 0.05:
                invoices.writerow([
                    f"{job_id}-ADJ",
                    job_id,
                    export_date(completed + timedelta(days=7)),
                    "Adjustment",
                    money(subtotal),
                    "",
                    "",
                    money(round(subtotal * 0.4, 2)),
                    "TRUE",
                ])

            if (i + 1) % 10000 == 0:
                print(f"Generated {i+1:,} jobs...")

    print(f"✅ Generated {num_jobs:,} jobs in {jobs_file} and their invoices in {invoices_file}")


def main():
    """Main function to parse arguments and generate CSVs."""
    if len(sys.argv) < 2:
        print("Usage: python generate_csv.py <num_jobs> [jobs_file] [invoices_file]")
        print("Example: python generate_csv.py 5000 jobs.csv invoices.csv")
        sys.exit(1)

    num_jobs = int(sys.argv[1])
    jobs_file = sys.argv[2] if len(sys.argv) > 2 else f"jobs_{num_jobs}.csv"
    invoices_file = sys.argv[3] if len(sys.argv) > 3 else f"invoices_{num_jobs}.csv"

    print(f"Generating {num_jobs:,} jobs...")
    generate_csv(num_jobs, jobs_file, invoices_file)


if __name__ == "__main__":
    main()
