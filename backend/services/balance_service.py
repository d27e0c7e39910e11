"""Balance service - refreshes per-account balances across all accounts."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from config import settings
from integrations.batch_fetcher import BatchFetcher, failed_accounts
from integrations.provider_protocol import AccountDataSource, ProviderAccount
from integrations.snaptrade_client import SnapTradeClient
from services.currency_aggregator import CurrencyRow, HoldingRow, aggregate_currency_rows, flatten_positions

logger = logging.getLogger(__name__)


@dataclass
class BalanceRefreshResult:
    """Aggregated rows for every account that could be fetched."""

    rows: list[CurrencyRow] = field(default_factory=list)
    holdings: list[HoldingRow] = field(default_factory=list)
    payloads: dict[str, dict[str, Any] | None] = field(default_factory=dict)
    failed_account_ids: list[str] = field(default_factory=list)

    @property
    def account_count(self) -> int:
        return len(self.payloads)

    @property
    def all_failed(self) -> bool:
        """No account could be refreshed."""
        return bool(self.payloads) and len(self.failed_account_ids) == len(self.payloads)

    @property
    def partially_failed(self) -> bool:
        """Some, but not all, accounts failed."""
        return bool(self.failed_account_ids) and not self.all_failed


def chunked(items: list, size: int) -> list[list]:
    """Split ``items`` into consecutive lists of at most ``size`` items."""
    return [items[i:i + size] for i in range(0, len(items), size)]


class BalanceService:
    """Fetches holdings payloads in bounded batches and aggregates them."""

    def __init__(
        self,
        data_source: Optional[AccountDataSource] = None,
        batch_size: int | None = None,
    ):
        """Initialize with an optional data source for dependency injection.

        Args:
            data_source: Batch fetcher. If None, a SnapTrade-backed
                BatchFetcher is created on first use.
            batch_size: Max accounts per concurrent batch.
        """
        self._data_source = data_source
        self._batch_size = batch_size or settings.FETCH_BATCH_SIZE

    @property
    def data_source(self) -> AccountDataSource:
        if self._data_source is None:
            self._data_source = BatchFetcher(SnapTradeClient())
        return self._data_source

    def fetch_payloads(
        self, accounts: list[ProviderAccount], endpoint_suffix: str = "holdings"
    ) -> dict[str, dict[str, Any] | None]:
        """Fetch one payload per account, one bounded batch at a time.

        Returns:
            Dict with one entry per account; ``None`` marks a failed fetch.
        """
        payloads: dict[str, dict[str, Any] | None] = {}
        for batch in chunked(accounts, self._batch_size):
            payloads.update(self.data_source.fetch_for_accounts(batch, endpoint_suffix))
        return payloads

    def refresh(
        self, accounts: list[ProviderAccount], endpoint_suffix: str = "holdings"
    ) -> BalanceRefreshResult:
        """Fetch and aggregate balances for all accounts.

        Accounts whose fetch failed are reported in ``failed_account_ids``
        and contribute no rows.
        """
        payloads = self.fetch_payloads(accounts, endpoint_suffix)
        result = BalanceRefreshResult(
            payloads=payloads,
            failed_account_ids=failed_accounts(payloads),
        )
        for account in accounts:
            payload = payloads.get(account.id)
            if payload is None:
                continue
            result.rows.extend(aggregate_currency_rows(account.id, payload))
            result.holdings.extend(flatten_positions(account.id, payload))

        if result.all_failed:
            logger.warning("Balance refresh: no accounts could be refreshed")
        else:
            logger.info(
                "Balance refresh: %d rows from %d accounts (%d failed)",
                len(result.rows), result.account_count, len(result.failed_account_ids),
            )
        return result
