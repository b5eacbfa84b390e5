from decimal import Decimal

from fastapi import status


def _seed(add_employee):
    add_employee("Amina Otieno", 100000, employee_id="emp-001")
    add_employee("Brian Kamau", 50000, employee_id="emp-002")


def _generate(client, month=7, year=2025, **options):
    return client.post("/api/payroll/generate", json={"month": month, "year": year, **options})


def test_generate_payroll(client, add_employee):
    _seed(add_employee)
    response = _generate(client, generated_by="hr.ops")
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["success"] is True
    assert data["batch_id"].startswith("PAYROLL-2025-07-")
    assert data["summary"]["total_employees"] == 2
    assert data["metadata"]["errors"] == []


def test_generate_twice_conflicts(client, add_employee):
    _seed(add_employee)
    batch_id = _generate(client).json()["batch_id"]

    response = _generate(client)
    assert response.status_code == status.HTTP_409_CONFLICT
    body = response.json()
    assert body["success"] is False
    error = body["errors"][0]
    assert error["code"] == "PAYROLL_PERIOD_CONFLICT"
    assert error["details"]["batch_id"] == batch_id
    assert error["details"]["existing"]["status"] == "draft"


def test_generate_validation_lists_all_errors(client, add_employee):
    _seed(add_employee)
    response = _generate(client, month=13, year=1999)
    assert response.status_code == 422
    errors = response.json()["errors"]
    assert [e["code"] for e in errors] == ["VALIDATION_FAILED", "VALIDATION_FAILED"]
    assert errors[0]["msg"] == "Month must be between 1 and 12"


def test_generate_reports_unreadable_employee_row(client, add_employee):
    _seed(add_employee)
    add_employee("Bad Sacco", 40000, employee_id="emp-003", deductions=[{"type": "Sacco", "amount": Decimal("-10")}])

    response = _generate(client)
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["summary"]["total_employees"] == 2
    assert data["metadata"]["errors"][0].startswith("Failed to calculate payroll for Bad Sacco (emp-003): ")


def test_generate_with_malformed_body(client):
    response = client.post("/api/payroll/generate", json={"month": "July"})
    assert response.status_code == 422
    assert response.json()["success"] is False


def test_generate_without_employees(client):
    response = _generate(client)
    assert response.status_code == 422
    assert response.json()["errors"][0]["code"] == "PAYROLL_GENERATION_FAILED"


def test_preview(client, add_employee):
    _seed(add_employee)
    response = client.post("/api/payroll/preview", json={"month": 7, "year": 2025})
    assert response.status_code == 200
    data = response.json()
    assert len(data["items"]) == 2
    assert data["summary"]["batch_id"] is None
    assert client.get("/api/payroll").json() == []


def test_get_payroll_details(client, add_employee):
    _seed(add_employee)
    batch_id = _generate(client).json()["batch_id"]

    response = client.get(f"/api/payroll/{batch_id}")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "draft"
    assert [item["employee_id"] for item in data["items"]] == ["emp-001", "emp-002"]
    first = data["items"][0]
    assert [d["type"] for d in first["deductions"][:4]] == ["SHIF", "NSSF", "Housing Levy", "PAYE"]
    assert Decimal(first["net_salary"]) == Decimal(first["adjusted_gross"]) + Decimal(first["total_benefits"]) - Decimal(first["total_deductions"])
    assert data["analytics"] is not None


def test_get_unknown_payroll(client):
    response = client.get("/api/payroll/PAYROLL-2025-07-NOPE")
    assert response.status_code == 404
    assert response.json()["errors"][0]["code"] == "PAYROLL_NOT_FOUND"


def test_status_transitions(client, add_employee):
    _seed(add_employee)
    batch_id = _generate(client).json()["batch_id"]

    response = client.patch(f"/api/payroll/{batch_id}/status", json={"status": "finalized", "actor": "alice"})
    assert response.status_code == 200
    assert response.json()["status"] == "finalized"
    assert response.json()["finalized_by"] == "alice"

    response = client.patch(f"/api/payroll/{batch_id}/status", json={"status": "paid", "actor": "alice"})
    assert response.status_code == 409
    assert response.json()["errors"][0]["code"] == "INVALID_STATUS_TRANSITION"

    response = client.patch(f"/api/payroll/{batch_id}/status", json={"status": "archived", "actor": "alice"})
    assert response.status_code == 422


def test_list_and_statistics(client, add_employee):
    _seed(add_employee)
    july = _generate(client, month=7).json()["batch_id"]
    _generate(client, month=8)
    client.patch(f"/api/payroll/{july}/status", json={"status": "cancelled", "actor": "alice"})

    listing = client.get("/api/payroll", params={"year": 2025}).json()
    assert [b["month"] for b in listing] == [8, 7]

    cancelled = client.get("/api/payroll", params={"status": "cancelled"}).json()
    assert [b["id"] for b in cancelled] == [july]

    assert client.get("/api/payroll", params={"status": "bogus"}).status_code == 422

    stats = client.get("/api/payroll/statistics/2025").json()
    assert stats["total_payrolls"] == 1
    assert Decimal(stats["average_employees"]) == Decimal("2")


def test_statutory_calculator(client):
    response = client.post("/api/payroll/statutory", json={"income": 100000})
    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["total_deductions"]) == Decimal("28553")
    assert Decimal(data["breakdown"]["PAYE"]) == Decimal("19983")
    assert data["pension"]["is_capped"] is False
