"""Integration tests for API endpoints"""

import logging
import pytest
from decimal import Decimal
from unittest.mock import patch
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from budget_tracker.config import settings
from budget_tracker.domain.exceptions import SnapshotConflictError, StorageFailureError
from budget_tracker.infrastructure.database.models import BankTransaction

pytestmark = pytest.mark.integration


def import_rows(client: TestClient, account_id: int, rows: list):
    return client.post(f"/v1/accounts/{account_id}/transactions", json={"transactions": rows})


def row(day: str, balance: str, amount: str = "100.00", description: str = "Transaction") -> dict:
    return {
        "booking_date": day,
        "transaction_date": day,
        "description": description,
        "amount": amount,
        "balance": balance,
    }


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "budget_snapshot_generation_total" in response.text


def test_request_id_header(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert client.get("/health").headers["X-Request-ID"]


def test_create_and_list_accounts(client: TestClient):
    response = client.post("/v1/accounts", json={"name": "Household", "user_id": "alice"})
    assert response.status_code == 201
    account_id = response.json()["id"]

    client.post("/v1/accounts", json={"name": "Other", "user_id": "bob"})

    data = client.get("/v1/accounts?user_id=alice").json()
    assert data["user_id"] == "alice"
    assert [a["id"] for a in data["accounts"]] == [account_id]


def test_import_generates_full_history(client: TestClient, account):
    """Import workflow regenerates snapshots from first to last transaction"""
    response = import_rows(
        client,
        account.id,
        [row("2024-01-01", "1000.00"), row("2024-01-15", "1500.00"), row("2024-01-31", "1300.00")],
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["imported_count"] == 3
    assert data["duplicate_count"] == 0
    assert data["snapshots_processed"] == 31

    history = client.get(f"/v1/accounts/{account.id}/snapshots").json()["snapshots"]
    assert len(history) == 31
    assert Decimal(history[13]["balance"]) == Decimal("1000.00")  # Jan 14
    assert Decimal(history[14]["balance"]) == Decimal("1500.00")  # Jan 15


def test_import_reports_duplicates(client: TestClient, account):
    rows = [row("2024-01-01", "1000.00", description="Salary")]
    import_rows(client, account.id, rows)

    data = import_rows(client, account.id, rows).json()

    assert data["imported_count"] == 0
    assert data["duplicate_count"] == 1
    assert data["warnings"]


def test_import_without_regeneration(client: TestClient, account, monkeypatch):
    monkeypatch.setattr(settings, "regenerate_on_import", False)

    data = import_rows(client, account.id, [row("2024-01-01", "1000.00")]).json()

    assert data["imported_count"] == 1
    assert data["snapshots_processed"] == 0
    assert client.get(f"/v1/accounts/{account.id}/snapshots").json()["snapshots"] == []


def test_import_validation(client: TestClient, account):
    assert import_rows(client, account.id, []).status_code == 422
    assert import_rows(client, account.id, [row("2024-01-01", "10.005")]).status_code == 422


def test_import_unknown_account(client: TestClient):
    assert import_rows(client, 999, [row("2024-01-01", "1.00")]).status_code == 404


def test_generate_range_endpoint(client: TestClient, account):
    import_rows(client, account.id, [row("2024-01-15", "1000.00")])

    response = client.post(
        f"/v1/accounts/{account.id}/snapshots/generate",
        json={"start_date": "2024-01-01", "end_date": "2024-01-31"},
    )

    assert response.status_code == 200
    assert response.json() == {"account_id": account.id, "account_ids": None, "snapshots_processed": 17}

    history = client.get(
        f"/v1/accounts/{account.id}/snapshots",
        params={"start_date": "2024-01-20", "end_date": "2024-01-31"},
    ).json()["snapshots"]
    assert [h["snapshot_date"] for h in history][0] == "2024-01-20"
    assert len(history) == 12


def test_generate_range_invalid_range(client: TestClient, account):
    response = client.post(
        f"/v1/accounts/{account.id}/snapshots/generate",
        json={"start_date": "2024-01-31", "end_date": "2024-01-01"},
    )
    assert response.status_code == 400


def test_generate_range_unknown_account(client: TestClient):
    response = client.post(
        "/v1/accounts/999/snapshots/generate",
        json={"start_date": "2024-01-01", "end_date": "2024-01-31"},
    )
    assert response.status_code == 404


@patch("budget_tracker.infrastructure.database.repositories.TransactionRepository.get_date_span")
def test_regenerate_storage_failure(mock_span, client: TestClient, account):
    mock_span.side_effect = StorageFailureError("database unavailable")

    response = client.post(f"/v1/accounts/{account.id}/snapshots/regenerate")

    assert response.status_code == 503


def test_regenerate_account(client: TestClient, account):
    import_rows(client, account.id, [row("2024-01-01", "1.00"), row("2024-01-05", "5.00")])

    response = client.post(f"/v1/accounts/{account.id}/snapshots/regenerate")

    assert response.status_code == 200
    assert response.json()["snapshots_processed"] == 5


def test_regenerate_many_and_per_user(client: TestClient):
    first = client.post("/v1/accounts", json={"name": "A", "user_id": "carol"}).json()["id"]
    second = client.post("/v1/accounts", json={"name": "B", "user_id": "carol"}).json()["id"]
    import_rows(client, first, [row("2024-01-01", "10.00")])
    import_rows(client, second, [row("2024-02-01", "20.00"), row("2024-02-03", "30.00")])

    response = client.post("/v1/snapshots/regenerate", json={"account_ids": [first, second]})
    assert response.status_code == 200
    assert response.json()["snapshots_processed"] == 4

    response = client.post("/v1/users/carol/snapshots/regenerate")
    assert response.status_code == 200
    assert response.json()["account_ids"] == [first, second]
    assert response.json()["snapshots_processed"] == 4


def test_regenerate_many_requires_accounts(client: TestClient):
    assert client.post("/v1/snapshots/regenerate", json={"account_ids": []}).status_code == 422


def test_snapshot_history_reversed_bounds(client: TestClient, account):
    response = client.get(
        f"/v1/accounts/{account.id}/snapshots",
        params={"start_date": "2024-02-01", "end_date": "2024-01-01"},
    )
    assert response.status_code == 400


def database_down() -> OperationalError:
    return OperationalError("SELECT", {}, Exception("could not connect to server"))


@patch("budget_tracker.infrastructure.database.repositories.SnapshotRepository.upsert_balances")
def test_import_regeneration_conflict(mock_upsert, client: TestClient, db, account):
    """A concurrent generator during import maps to 409; the import stays committed"""
    mock_upsert.side_effect = SnapshotConflictError("Snapshot already exists")

    response = import_rows(client, account.id, [row("2024-01-01", "1000.00")])

    assert response.status_code == 409
    assert db.query(BankTransaction).filter(BankTransaction.account_id == account.id).count() == 1


@patch("budget_tracker.infrastructure.database.repositories.SnapshotRepository.upsert_balances")
def test_import_regeneration_storage_failure_keeps_import(mock_upsert, client: TestClient, db, account):
    mock_upsert.side_effect = StorageFailureError("database unavailable")

    response = import_rows(
        client,
        account.id,
        [row("2024-01-01", "1000.00"), row("2024-01-03", "900.00", description="Groceries")],
    )

    assert response.status_code == 503
    assert db.query(BankTransaction).filter(BankTransaction.account_id == account.id).count() == 2

    # Re-import reports the committed rows as duplicates
    mock_upsert.side_effect = None
    data = import_rows(client, account.id, [row("2024-01-01", "1000.00")]).json()
    assert data["duplicate_count"] == 1


def test_import_storage_failure_rolls_back(client: TestClient, db, account):
    with patch.object(db, "flush", side_effect=database_down()):
        response = import_rows(client, account.id, [row("2024-01-01", "1000.00")])

    assert response.status_code == 503
    assert db.query(BankTransaction).count() == 0


@patch("budget_tracker.infrastructure.database.repositories.TransactionRepository.get_date_span")
def test_regenerate_unexpected_error(mock_span, client: TestClient, db, account, caplog):
    """Unexpected errors roll back and log at ERROR with the request id"""
    mock_span.side_effect = RuntimeError("boom")

    with patch.object(db, "rollback", wraps=db.rollback) as mock_rollback:
        with caplog.at_level(logging.ERROR):
            response = client.post(
                f"/v1/accounts/{account.id}/snapshots/regenerate",
                headers={"X-Request-ID": "req-boom"},
            )

    assert response.status_code == 500
    assert response.json()["detail"] == "Internal server error"
    assert mock_rollback.called
    errors = [r for r in caplog.records if r.levelno == logging.ERROR]
    assert errors
    assert errors[-1].request_id == "req-boom"


@patch("budget_tracker.infrastructure.database.repositories.TransactionRepository.get_date_span")
def test_import_regeneration_unexpected_error(mock_span, client: TestClient, db, account):
    mock_span.side_effect = RuntimeError("boom")

    with patch.object(db, "rollback", wraps=db.rollback) as mock_rollback:
        response = import_rows(client, account.id, [row("2024-01-01", "1000.00")])

    assert response.status_code == 500
    assert mock_rollback.called
    assert db.query(BankTransaction).count() == 1


@patch("budget_tracker.infrastructure.database.repositories.TransactionRepository.get_date_span")
def test_regenerate_many_unexpected_error(mock_span, client: TestClient, account):
    mock_span.side_effect = RuntimeError("boom")

    response = client.post("/v1/snapshots/regenerate", json={"account_ids": [account.id]})

    assert response.status_code == 500


def test_snapshot_history_storage_failure(client: TestClient, db, account):
    with patch.object(db, "query", side_effect=database_down()):
        response = client.get(f"/v1/accounts/{account.id}/snapshots")

    assert response.status_code == 503


@patch("budget_tracker.infrastructure.database.repositories.SnapshotRepository.get_snapshots")
def test_snapshot_history_read_failure(mock_snapshots, client: TestClient, account):
    mock_snapshots.side_effect = StorageFailureError("database unavailable")

    assert client.get(f"/v1/accounts/{account.id}/snapshots").status_code == 503


def test_list_accounts_storage_failure(client: TestClient, db):
    with patch.object(db, "query", side_effect=database_down()):
        response = client.get("/v1/accounts?user_id=alice")

    assert response.status_code == 503


def test_regenerate_user_storage_failure(client: TestClient, db):
    with patch.object(db, "query", side_effect=database_down()):
        response = client.post("/v1/users/carol/snapshots/regenerate")

    assert response.status_code == 503
