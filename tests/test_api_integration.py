"""
Integration tests for the Loan Tracker API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from fastapi.testclient import TestClient

from loan_tracker.api import create_app
from loan_tracker.api.dependencies import LoanSystem, get_loan_system
from loan_tracker.config import LoanTrackerConfig


NEW_BORROWER = {
    "name": "Maria Santos",
    "contact": "555-0101",
    "address": "12 Harbor Rd",
    "loanAmount": 1000,
    "interestRate": 12,
    "term": 10,
    "interestType": "monthly",
    "nextDueDate": "2024-03-01",
    "monthlyPayment": 220,
}


@pytest.fixture
def loan_system(tmp_path) -> LoanSystem:
    """File-backed loan system in a temporary directory"""
    config = LoanTrackerConfig(mongodb_uri=None, data_file=tmp_path / "data.json")
    return LoanSystem(config)


@pytest.fixture
def client(loan_system):
    """Test client with the loan system dependency overridden"""
    app = create_app()
    app.dependency_overrides[get_loan_system] = lambda: loan_system
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create(client, **overrides) -> dict:
    r = client.post("/api/loans", json={**NEW_BORROWER, **overrides})
    assert r.status_code == 201
    return r.json()


class TestHealthEndpoints:
    """Test health, debug and unknown paths"""

    def test_health(self, client):
        r = client.get("/api/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    def test_debug(self, client, loan_system):
        """Debug reports storage mode and file access"""
        r = client.get("/api/debug")
        assert r.status_code == 200
        data = r.json()
        assert data["environment"]["mongodbUri"] is False
        assert data["environment"]["mongodbDb"] == "loanapp"
        assert data["filesystem"]["dataFile"] == str(loan_system.file_store.path)
        assert data["filesystem"]["canWriteDataDir"] is True
        assert data["storage"]["state"] == "file-active"

    def test_unknown_path(self, client):
        """Unmatched paths list the available endpoints"""
        r = client.get("/api/nope")
        assert r.status_code == 404
        data = r.json()
        assert data["error"] == "API endpoint not found"
        assert "/api/nope" in data["message"]
        assert len(data["availableEndpoints"]) == 3


class TestBorrowerFlow:
    """End-to-end borrower management tests"""

    def test_create_borrower(self, client):
        """Creating returns the stored borrower with its balance"""
        data = create(client)
        assert data["id"]
        assert data["remainingBalance"] == 2200
        assert data["totalPenalties"] == 0
        assert data["payments"] == []
        assert data["penalties"] == []
        assert data["interestType"] == "monthly"
        assert data["nextDueDate"].startswith("2024-03-01")
        assert data["createdAt"]

    def test_create_missing_fields(self, client):
        r = client.post("/api/loans", json={"name": "Only Name"})
        assert r.status_code == 400
        assert r.json()["detail"] == "Missing required borrower fields."

    def test_create_invalid_number(self, client):
        r = client.post("/api/loans", json={**NEW_BORROWER, "loanAmount": "lots"})
        assert r.status_code == 400

    def test_create_out_of_range_amount(self, client):
        """Oversized amounts are a client error"""
        r = client.post("/api/loans", json={**NEW_BORROWER, "loanAmount": "1e19"})
        assert r.status_code == 400
        assert r.json()["detail"] == "loanAmount is out of range."

    def test_create_numeric_name(self, client):
        """Numeric names are accepted and stored as text"""
        data = create(client, name=12345)
        assert data["name"] == "12345"

    def test_list_borrowers(self, client):
        """Listing returns every borrower, newest first"""
        first = create(client, name="First")
        second = create(client, name="Second")

        r = client.get("/api/loans")
        assert r.status_code == 200
        ids = [b["id"] for b in r.json()]
        assert set(ids) == {first["id"], second["id"]}
        assert r.json() == client.get("/api/loans").json()

    def test_get_borrower(self, client):
        created = create(client)
        r = client.get(f"/api/loans/{created['id']}")
        assert r.status_code == 200
        assert r.json() == created

    def test_get_unknown_borrower(self, client):
        r = client.get("/api/loans/does-not-exist")
        assert r.status_code == 404
        assert r.json()["detail"] == "Borrower not found."

    def test_payment(self, client):
        """Payments reduce the balance"""
        created = create(client)
        r = client.put(f"/api/loans?id={created['id']}", json={"payment": {"amount": 500, "note": "cash"}})
        assert r.status_code == 200
        assert r.json() == {"message": "Payment added successfully.", "remainingBalance": 1700}

        stored = client.get(f"/api/loans/{created['id']}").json()
        assert stored["payments"][0]["amount"] == 500
        assert stored["payments"][0]["note"] == "cash"

    def test_overpayment(self, client):
        created = create(client)
        r = client.put(f"/api/loans?id={created['id']}", json={"payment": {"amount": 10000}})
        assert r.json()["remainingBalance"] == 0

    def test_invalid_payment(self, client):
        created = create(client)
        r = client.put(f"/api/loans?id={created['id']}", json={"payment": {"amount": 0}})
        assert r.status_code == 400
        assert r.json()["detail"] == "Payment amount must be greater than zero."

    def test_penalty(self, client):
        """Penalties raise both totals"""
        created = create(client)
        r = client.put(f"/api/loans?id={created['id']}", json={"penalty": {"amount": 50, "reason": "Late"}})
        assert r.status_code == 200
        assert r.json() == {
            "message": "Penalty added successfully.",
            "remainingBalance": 2250,
            "totalPenalties": 50,
        }

    def test_update_without_payment_or_penalty(self, client):
        created = create(client)
        r = client.put(f"/api/loans?id={created['id']}", json={})
        assert r.status_code == 400
        assert r.json()["detail"] == "Invalid request. Specify 'payment' or 'penalty'."

    def test_update_without_id(self, client):
        r = client.put("/api/loans", json={"payment": {"amount": 10}})
        assert r.status_code == 400
        assert r.json()["detail"] == "Missing borrower id."

    def test_update_unknown_borrower(self, client):
        r = client.put("/api/loans?id=missing", json={"payment": {"amount": 10}})
        assert r.status_code == 404

    def test_delete(self, client):
        """Deleting twice reports not found the second time"""
        created = create(client)
        r = client.delete(f"/api/loans?id={created['id']}")
        assert r.status_code == 200
        assert r.json()["message"] == "Borrower deleted successfully."

        r = client.delete(f"/api/loans?id={created['id']}")
        assert r.status_code == 404

    def test_delete_without_id(self, client):
        r = client.delete("/api/loans")
        assert r.status_code == 400

    def test_storage_failure_is_server_error(self, client, loan_system):
        """Persistence failures map to 500"""
        loan_system.file_store.path.write_text("corrupt")
        r = client.get("/api/loans")
        assert r.status_code == 500

    def test_full_borrower_lifecycle(self, client):
        """create → payment → penalty → get → delete"""
        created = create(client)
        borrower_id = created["id"]

        client.put(f"/api/loans?id={borrower_id}", json={"payment": {"amount": 700}})
        client.put(f"/api/loans?id={borrower_id}", json={"penalty": {"amount": 25}})

        stored = client.get(f"/api/loans/{borrower_id}").json()
        assert stored["remainingBalance"] == 1525
        assert stored["totalPenalties"] == 25
        assert len(stored["payments"]) == 1
        assert len(stored["penalties"]) == 1

        assert client.delete(f"/api/loans?id={borrower_id}").status_code == 200
        assert client.get("/api/loans").json() == []
