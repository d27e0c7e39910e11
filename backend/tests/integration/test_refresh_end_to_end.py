"""End-to-end refresh: signed client -> batch fetch -> aggregation -> history log."""

from datetime import date
from decimal import Decimal

import httpx

from integrations.batch_fetcher import BatchFetcher
from integrations.provider_protocol import ProviderAccount
from services.balance_service import BalanceService
from services.currency_aggregator import CurrencyRow
from services.history_service import HistoryLog, HistoryService, HistoryState
from tests.fixtures.mocks import (
    SAMPLE_ACCOUNTS,
    SAMPLE_HOLDINGS_A,
    SAMPLE_HOLDINGS_B,
    SAMPLE_HOLDINGS_EMPTY,
    SAMPLE_HOLDINGS_MIXED,
    make_client,
)

MIXED_ACCOUNTS = [
    ProviderAccount(id="acc_1", name="Taxable", institution="Questrade"),
    ProviderAccount(id="acc_2", name="Margin", institution="IBKR"),
    ProviderAccount(id="acc_3", name="New", institution="Wealthsimple"),
]


def _handler(request: httpx.Request) -> httpx.Response:
    assert "Signature" in request.headers
    if request.url.path.endswith("/acc_a/holdings"):
        return httpx.Response(200, json=SAMPLE_HOLDINGS_A)
    if request.url.path.endswith("/acc_b/holdings"):
        return httpx.Response(200, json=SAMPLE_HOLDINGS_B)
    return httpx.Response(500, json={"detail": "upstream failure"})


class _MixedHandler:
    """Serves acc_1 a mixed payload, acc_3 an empty one; acc_2 always 500s."""

    def __init__(self):
        self.paths: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        assert "Signature" in request.headers
        self.paths.append(request.url.path)
        if request.url.path.endswith("/acc_1/holdings"):
            return httpx.Response(200, json=SAMPLE_HOLDINGS_MIXED)
        if request.url.path.endswith("/acc_3/holdings"):
            return httpx.Response(200, json=SAMPLE_HOLDINGS_EMPTY)
        return httpx.Response(500, json={"detail": "upstream failure"})


def test_three_accounts_one_failing(db):
    client = make_client(_handler)
    balance_service = BalanceService(data_source=BatchFetcher(client))

    refresh = balance_service.refresh(SAMPLE_ACCOUNTS)
    assert [(r.account_id, r.currency, r.cash, r.holdings_value, r.total) for r in refresh.rows] == [
        ("acc_a", "CAD", Decimal("100"), Decimal("50"), Decimal("150")),
        ("acc_b", "USD", Decimal("50"), Decimal("50"), Decimal("100")),
    ]
    assert refresh.failed_account_ids == ["acc_c"]

    history = HistoryService(balance_service=balance_service)
    today = date(2024, 5, 1)
    first = history.capture(db, SAMPLE_ACCOUNTS, today=today)
    second = history.capture(db, SAMPLE_ACCOUNTS, today=today)

    assert first.state is HistoryState.NO_ENTRY_TODAY
    assert second.state is HistoryState.HAS_ENTRY_TODAY
    entries = HistoryLog(db).entries()
    assert [(e.account_id, e.currency, e.total) for e in entries] == [
        ("acc_a", "CAD", Decimal("150")),
        ("acc_b", "USD", Decimal("100")),
    ]


class TestMixedCurrencyRefresh:
    """Mixed-currency account, failing account and empty account together."""

    EXPECTED_ROWS = [
        CurrencyRow("acc_1", "CAD", Decimal("200"), Decimal("0"), Decimal("200")),
        CurrencyRow("acc_1", "USD", Decimal("0"), Decimal("150"), Decimal("150")),
        CurrencyRow("acc_3", "USD", Decimal("0"), Decimal("0"), Decimal("0")),
    ]

    def test_fetch_map_has_one_entry_per_account(self):
        handler = _MixedHandler()
        results = BatchFetcher(make_client(handler)).fetch_for_accounts(MIXED_ACCOUNTS, "holdings")

        assert set(results) == {"acc_1", "acc_2", "acc_3"}
        assert results["acc_2"] is None
        assert results["acc_1"] == SAMPLE_HOLDINGS_MIXED
        assert results["acc_3"] == {}
        assert len(handler.paths) == 3

    def test_aggregation_over_successful_accounts(self):
        balance_service = BalanceService(data_source=BatchFetcher(make_client(_MixedHandler())))

        refresh = balance_service.refresh(MIXED_ACCOUNTS)

        assert refresh.rows == self.EXPECTED_ROWS
        assert refresh.failed_account_ids == ["acc_2"]
        assert refresh.partially_failed is True

    def test_history_holds_three_rows_after_two_captures(self, db):
        balance_service = BalanceService(data_source=BatchFetcher(make_client(_MixedHandler())))
        history = HistoryService(balance_service=balance_service)
        today = date(2024, 5, 1)

        first = history.capture(db, MIXED_ACCOUNTS, today=today)
        second = history.capture(db, MIXED_ACCOUNTS, today=today)

        assert first.rows_written == 3
        assert second.state is HistoryState.HAS_ENTRY_TODAY
        assert second.rows_replaced == 3
        entries = HistoryLog(db).entries()
        assert [
            (e.snapshot_date, e.account_id, e.currency, e.cash, e.holdings_value, e.total)
            for e in entries
        ] == [
            (today, r.account_id, r.currency, r.cash, r.holdings_value, r.total)
            for r in self.EXPECTED_ROWS
        ]
