"""Tests for the HTTP API."""
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace

from jobprofit.api import imports as imports_api
from jobprofit.services.importer import import_files


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_list_imports_empty(client):
    response = client.get("/api/imports")
    assert response.status_code == 200
    assert response.json() == []


def test_get_missing_import(client):
    response = client.get("/api/imports/999")
    assert response.status_code == 404
    assert response.json()["detail"] == "Import batch not found"


def seed(db, make_export):
    jobs_path, invoices_path = make_export(
        [
            {
                "Job ID": "1001",
                "Job Type": "AC Repair",
                "Sold By": "Alex Smith",
                "Primary Technician": "Alex Smith",
                "Jobs Subtotal": "$1,000.00",
            },
            {
                "Job ID": "1002",
                "Job Type": "Install",
                "Primary Technician": "Bea Jones",
                "Jobs Subtotal": "$400.00",
            },
        ],
        [
            {"Invoice #": "INV-1", "Job #": "1001", "Costs Total": "$250.00"},
            {"Invoice #": "INV-2", "Job #": "1002", "Costs Total": "$300.00"},
        ],
    )
    result = import_files(db, jobs_path, invoices_path)
    db.close()
    return result


def test_list_and_get_imports(client, db, make_export):
    result = seed(db, make_export)

    response = client.get("/api/imports")
    assert response.status_code == 200
    [batch] = response.json()
    assert batch["id"] == result.batch_id
    assert batch["status"] == "success"
    assert batch["job_report_filename"] == "export_jobs.csv"
    assert batch["row_count_jobs"] == 2

    response = client.get(f"/api/imports/{result.batch_id}")
    assert response.status_code == 200
    assert response.json()["invoice_report_filename"] == "export_invoices.csv"


def test_technician_report(client, db, make_export):
    seed(db, make_export)

    response = client.get("/api/reports/technicians")
    assert response.status_code == 200
    alex, bea = response.json()

    assert alex["name"] == "Alex Smith"
    assert Decimal(alex["total_sales"]) == Decimal("1000")
    assert alex["jobs_sold"] == 1
    assert Decimal(alex["conversion_rate"]) == Decimal("100")
    assert Decimal(alex["avg_margin_pct"]) == Decimal("75")

    assert bea["name"] == "Bea Jones"
    assert Decimal(bea["total_sales"]) == Decimal("0")
    assert bea["jobs_serviced"] == 1
    assert bea["avg_sale"] is None


def test_job_type_report(client, db, make_export):
    seed(db, make_export)

    response = client.get("/api/reports/job-types")
    assert response.status_code == 200
    by_type = {row["job_type"]: row for row in response.json()}

    assert by_type["AC Repair"]["job_count"] == 1
    assert Decimal(by_type["AC Repair"]["total_profit"]) == Decimal("750")
    assert Decimal(by_type["Install"]["total_profit"]) == Decimal("100")


def test_upload_queues_import(client, tmp_path, monkeypatch):
    queued = []

    def fake_delay(jobs_path, invoices_path):
        queued.append((jobs_path, invoices_path))
        return SimpleNamespace(id="task-123")

    monkeypatch.setattr(imports_api, "process_import", SimpleNamespace(delay=fake_delay))
    monkeypatch.setattr(imports_api.settings, "upload_dir", str(tmp_path))

    response = client.post(
        "/api/imports",
        files={
            "jobs_file": ("jobs.csv", b"Job ID,Customer ID,Job Type,Status\n", "text/csv"),
            "invoices_file": ("invoices.csv", b"Invoice #,Job #,Invoice Date\n", "text/csv"),
        },
    )

    assert response.status_code == 202
    assert response.json()["task_id"] == "task-123"
    [(jobs_path, invoices_path)] = queued
    assert jobs_path.startswith(str(tmp_path))
    assert Path(invoices_path).read_text().startswith("Invoice #")


def test_upload_rejects_non_csv(client, tmp_path, monkeypatch):
    monkeypatch.setattr(imports_api.settings, "upload_dir", str(tmp_path))

    response = client.post(
        "/api/imports",
        files={
            "jobs_file": ("jobs.txt", b"hello", "text/plain"),
            "invoices_file": ("invoices.csv", b"Invoice #\n", "text/csv"),
        },
    )

    assert response.status_code == 400
    assert list(tmp_path.iterdir()) == []


def test_task_status_includes_result(client, monkeypatch):
    payload = {
        "batch_id": 1,
        "already_imported": False,
        "jobs_imported": 2,
        "invoices_imported": 2,
        "invoices_skipped": 0,
        "customers_upserted": 1,
        "technicians_imported": 2,
        "job_metrics_calculated": 2,
        "technician_metrics_calculated": 2,
        "duration": 0.5,
        "warnings": [],
        "jobs_without_invoices": [],
    }
    fake = SimpleNamespace(
        state="SUCCESS",
        result=payload,
        successful=lambda: True,
        failed=lambda: False,
    )
    monkeypatch.setattr(imports_api, "AsyncResult", lambda task_id, app: fake)

    response = client.get("/api/imports/tasks/task-123")

    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "SUCCESS"
    assert data["result"]["jobs_imported"] == 2
    assert data["error"] is None


def test_unknown_task_reports_pending(client, monkeypatch):
    """Celery cannot tell an unknown task id from a queued one."""
    fake = SimpleNamespace(
        state="PENDING",
        result=None,
        successful=lambda: False,
        failed=lambda: False,
    )
    monkeypatch.setattr(imports_api, "AsyncResult", lambda task_id, app: fake)

    response = client.get("/api/imports/tasks/no-such-task")

    assert response.status_code == 200
    assert response.json() == {
        "task_id": "no-such-task",
        "state": "PENDING",
        "result": None,
        "error": None,
    }


def test_red_flag_reports(client, db, make_export):
    seed(db, make_export)

    response = client.get("/api/reports/red-flags/jobs")
    assert response.status_code == 200
    assert response.json() == []

    response = client.get("/api/reports/red-flags/job-types", params={"margin_threshold": 30})
    assert response.status_code == 200
    assert [row["job_type"] for row in response.json()] == ["Install"]

    response = client.get("/api/reports/red-flags/customers")
    assert response.status_code == 200
    assert response.json() == []

    response = client.get(
        "/api/reports/red-flags/high-revenue", params={"revenue_threshold": 100, "margin_threshold": 80}
    )
    assert response.status_code == 200
    assert [row["job_id"] for row in response.json()] == ["1001", "1002"]


def test_summary_report(client, db, make_export):
    seed(db, make_export)

    response = client.get("/api/reports/summary")
    assert response.status_code == 200
    data = response.json()
    assert data["total_jobs"] == 2
    assert Decimal(data["total_profit"]) == Decimal("850")
    assert data["jobs_with_loss"] == 0
    assert {row["job_type"] for row in data["job_types"]} == {"AC Repair", "Install"}

    response = client.get("/api/reports/summary", params={"from": "2030-01-01"})
    assert response.status_code == 200
    assert response.json()["total_jobs"] == 0
    assert response.json()["date_from"] == "2030-01-01"


def test_report_rejects_bad_date(client):
    response = client.get("/api/reports/red-flags/jobs", params={"to": "not-a-date"})
    assert response.status_code == 422
