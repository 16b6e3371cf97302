"""
API tests.

The app state is replaced with an in-memory store and a fake bank adapter.
"""
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from finsync.adapters import get_adapter
from finsync.adapters.base import BankAdapter
from finsync.adapters.exceptions import AuthError
from finsync.api.main import app
from finsync.api.state import AppState, get_app_state
from finsync.common.config import Settings
from finsync.common.models import Account, Balance, Transaction
from finsync.storage import MemoryLedgerStore
from tests.conftest import make_tx
from tests.parsing.test_csv_parsers import DKB_CSV


class FakeBank(BankAdapter):
    institution_id = "fake"
    institution_name = "Fake Bank"

    def __init__(self):
        self.fail = False
        self.account = Account(id="fake_a", external_id="a", institution_id="fake",
                               name="Girokonto", holder_name="Max Mustermann")

    def fetch_accounts(self, credentials):
        if self.fail:
            raise AuthError("Authentication failed (HTTP 401)")
        return [Account(**self.account.to_dict())]

    def fetch_transactions(self, account_id, credentials, since=None):
        transactions = [
            make_tx("2025-01-05", -12.99, "Netflix Abo", "Netflix", account_id=account_id),
            make_tx("2025-02-04", -12.99, "Netflix Abo", "Netflix", account_id=account_id),
            make_tx("2025-03-06", -12.99, "Netflix Abo", "Netflix", account_id=account_id),
            make_tx("2025-03-01", 3000.0, "Gehalt Maerz", "Arbeitgeber AG", account_id=account_id),
            make_tx("2025-03-10", -850.0, "Miete Maerz", "Hausverwaltung", account_id=account_id),
        ]
        return [Transaction.from_dict(t.to_dict()) for t in transactions]

    def fetch_balances(self, account_id, credentials):
        return Balance(account_id=account_id, amount=2500.0, currency="EUR",
                       fetched_at=datetime.now(timezone.utc).isoformat())


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def bank():
    return FakeBank()


@pytest.fixture
def state(bank):
    def adapter_factory(institution_id):
        if institution_id == "fake":
            return bank
        return get_adapter(institution_id)

    settings = Settings(banks={"fake": {"cookie": "session=configured"}})
    return AppState(settings=settings, store=MemoryLedgerStore(), adapter_factory=adapter_factory)


@pytest.fixture
def client(state):
    app.dependency_overrides[get_app_state] = lambda: state
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def synced(client):
    response = client.post("/api/sync/fake")
    assert response.status_code == 200
    return response.json()


# ============================================================================
# TEST: HEALTH AND SYNC
# ============================================================================

def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_request_id_is_echoed(client):
    response = client.get("/api/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"


def test_institutions(client):
    ids = [i["institution_id"] for i in client.get("/api/sync/institutions").json()]
    assert "dkb" in ids


class TestSyncEndpoint:

    def test_sync_with_configured_credentials(self, synced):
        assert synced["status"] == "success"
        assert synced["institution_id"] == "fake"
        assert synced["accounts_synced"] == 1
        assert synced["new_transactions"] == 5

    def test_sync_with_body_credentials(self, client):
        response = client.post("/api/sync/fake", json={"cookie": "session=abc", "xsrf_token": "t"})
        assert response.status_code == 200
        assert response.json()["status"] == "success"

    def test_second_sync_adds_nothing(self, client, synced):
        assert client.post("/api/sync/fake").json()["new_transactions"] == 0

    def test_missing_credentials(self, client):
        response = client.post("/api/sync/dkb")
        assert response.status_code == 400
        assert "No credentials configured" in response.json()["detail"]

    def test_unknown_institution(self, client):
        response = client.post("/api/sync/nobank", json={"cookie": "x"})
        assert response.status_code == 400
        assert "Unknown institution" in response.json()["detail"]

    def test_adapter_failure_is_reported_in_metadata(self, client, bank):
        bank.fail = True
        response = client.post("/api/sync/fake")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "error"
        assert "401" in body["error"]

    def test_history_newest_first(self, client, synced, bank):
        bank.fail = True
        client.post("/api/sync/fake")

        history = client.get("/api/sync/history", params={"institution_id": "fake"}).json()
        assert [h["status"] for h in history] == ["error", "success"]
        assert len(client.get("/api/sync/history", params={"limit": 1}).json()) == 1


# ============================================================================
# TEST: ACCOUNTS AND TRANSACTIONS
# ============================================================================

class TestAccountsEndpoint:

    def test_accounts_with_latest_balance(self, client, synced):
        accounts = client.get("/api/accounts").json()
        assert len(accounts) == 1
        assert accounts[0]["id"] == "fake_a"
        assert accounts[0]["balance"]["amount"] == 2500.0

    def test_total_balance(self, client, synced):
        assert client.get("/api/accounts/total-balance").json() == {"total_balance": 2500.0}

    def test_balance_history(self, client, synced):
        client.post("/api/sync/fake")
        assert len(client.get("/api/accounts/balances", params={"account_id": "fake_a"}).json()) == 2

    def test_single_account(self, client, synced):
        assert client.get("/api/accounts/fake_a").json()["name"] == "Girokonto"
        assert client.get("/api/accounts/missing").status_code == 404


class TestTransactionsEndpoint:

    def test_list_newest_first(self, client, synced):
        body = client.get("/api/transactions").json()
        assert body["total"] == 5
        assert body["items"][0]["date"] == "2025-03-10"

    def test_pagination(self, client, synced):
        body = client.get("/api/transactions", params={"limit": 2, "offset": 4}).json()
        assert body["total"] == 5
        assert len(body["items"]) == 1

    def test_filters(self, client, synced):
        credits = client.get("/api/transactions", params={"direction": "credit"}).json()
        assert [t["description"] for t in credits["items"]] == ["Gehalt Maerz"]

        netflix = client.get("/api/transactions", params={"search": "netflix", "start_date": "2025-02-01"}).json()
        assert netflix["total"] == 2

        rent = client.get("/api/transactions", params={"category": "Rent & Housing"}).json()
        assert rent["total"] == 1

    def test_invalid_direction(self, client, synced):
        assert client.get("/api/transactions", params={"direction": "sideways"}).status_code == 422

    def test_recurring(self, client, synced):
        groups = client.get("/api/transactions/recurring").json()
        assert len(groups) == 1
        assert groups[0]["counterparty"] == "Netflix"
        assert groups[0]["count"] == 3
        assert groups[0]["average_amount"] == 12.99

    def test_coverage(self, client, synced):
        coverage = client.get("/api/transactions/coverage").json()
        assert coverage["total"] == 5
        assert coverage["categorized"] == 5


# ============================================================================
# TEST: STATISTICS
# ============================================================================

class TestStatsEndpoint:

    def test_dashboard(self, client, synced):
        stats = client.get("/api/stats/dashboard").json()

        assert stats["total_balance"] == 2500.0
        assert stats["total_income"] == 3000.0
        assert stats["total_expenses"] == 888.97
        assert stats["transaction_count"] == 5
        assert 0.0 <= stats["recurring_ratio"] <= 100.0
        assert 0.0 <= stats["discretionary_ratio"] <= 100.0
        assert [m["month"] for m in stats["monthly_cash_flow"]] == ["2025-01", "2025-02", "2025-03"]

    def test_largest_expense(self, client, synced):
        assert client.get("/api/stats/largest-expense").json()["description"] == "Miete Maerz"

    def test_largest_expense_empty_ledger(self, client):
        response = client.get("/api/stats/largest-expense")
        assert response.status_code == 200
        assert response.json() is None

    def test_single_metrics(self, client, synced):
        assert "daily_average_spend" in client.get("/api/stats/daily-average").json()
        assert "expense_volatility" in client.get("/api/stats/volatility").json()
        assert "month_over_month_trend" in client.get("/api/stats/trend").json()
        assert client.get("/api/stats/emergency-fund").json()["total_balance"] == 2500.0
        assert isinstance(client.get("/api/stats/categories").json(), list)
        assert len(client.get("/api/stats/cash-flow").json()) == 3
        assert set(client.get("/api/stats/spending-mix").json()) == {"recurring_ratio", "discretionary_ratio"}


# ============================================================================
# TEST: CSV IMPORT
# ============================================================================

class TestCsvImportEndpoint:

    def test_import_dkb_export(self, client, state):
        response = client.post(
            "/api/import/csv",
            files={"file": ("umsaetze.csv", DKB_CSV.encode("utf-8"), "text/csv")},
            data={"account_id": "dkb_csv1", "holder_name": "Max Mustermann"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["format"] == "dkb"
        assert body["sync"]["institution_id"] == "csv:dkb"
        assert body["sync"]["new_transactions"] == 3
        assert body["parse"]["rows_skipped"] == 1

        ledger = state.store.read()
        assert ledger.get_account("dkb_csv1").holder_name == "Max Mustermann"
        assert any(t.is_internal_transfer for t in ledger.transactions)

    def test_unrecognised_file(self, client):
        response = client.post(
            "/api/import/csv",
            files={"file": ("other.csv", b"Datum;Betrag\n01.01.2025;1,00\n", "text/csv")},
            data={"account_id": "x"},
        )
        assert response.status_code == 400
        assert "not recognised" in response.json()["detail"]

    def test_file_without_valid_rows(self, client):
        header = DKB_CSV.split("\n")[4]
        response = client.post(
            "/api/import/csv",
            files={"file": ("empty.csv", (header + "\n").encode("utf-8"), "text/csv")},
            data={"account_id": "x", "csv_format": "dkb"},
        )
        assert response.status_code == 400
