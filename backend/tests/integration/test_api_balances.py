"""Integration tests for balances API endpoints."""

from decimal import Decimal

from api.helpers import get_balance_service
from main import app
from services.balance_service import BalanceService
from tests.fixtures.mocks import MockDataSource


def test_get_balances(client):
    """Per-currency rows for fetched accounts; the failed one is reported."""
    response = client.get("/api/balances")
    assert response.status_code == 200
    data = response.json()

    assert data["account_count"] == 3
    assert data["failed_account_ids"] == ["acc_c"]
    assert data["all_failed"] is False
    rows = [(r["account_id"], r["currency"], Decimal(r["total"])) for r in data["rows"]]
    assert rows == [("acc_a", "CAD", Decimal("150")), ("acc_b", "USD", Decimal("100"))]


def test_get_balances_totals_by_currency(client):
    response = client.get("/api/balances")
    totals = {r["currency"]: Decimal(r["total"]) for r in response.json()["totals_by_currency"]}
    assert totals == {"CAD": Decimal("150"), "USD": Decimal("100")}


def test_get_balances_all_failed(client):
    """When every fetch fails the call still succeeds and says so."""
    failing = MockDataSource(failing={"acc_a", "acc_b", "acc_c"})
    app.dependency_overrides[get_balance_service] = lambda: BalanceService(data_source=failing)

    response = client.get("/api/balances")
    assert response.status_code == 200
    data = response.json()
    assert data["all_failed"] is True
    assert data["rows"] == []
    assert data["failed_account_ids"] == ["acc_a", "acc_b", "acc_c"]


def test_get_balances_provider_failure(client_with_failing_provider):
    response = client_with_failing_provider.get("/api/balances")
    assert response.status_code == 502


def test_get_holdings(client):
    response = client.get("/api/balances/holdings")
    assert response.status_code == 200
    data = response.json()
    assert [(h["account_id"], h["symbol"]) for h in data["holdings"]] == [
        ("acc_a", "XEQT.TO"),
        ("acc_b", "AAPL"),
    ]
    assert Decimal(data["holdings"][1]["market_value"]) == Decimal("50")
    assert data["failed_account_ids"] == ["acc_c"]
