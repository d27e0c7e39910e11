"""Balances API endpoints."""

import logging

from fastapi import APIRouter, Depends

from api.helpers import get_balance_service, get_snaptrade_client, provider_http_error
from integrations.exceptions import ProviderError
from integrations.snaptrade_client import SnapTradeClient
from schemas import BalanceSummaryResponse, CurrencyRowResponse, HoldingRowResponse, HoldingsResponse
from services.balance_service import BalanceService
from services.currency_aggregator import summarize_by_currency

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/balances", tags=["balances"])


@router.get("", response_model=BalanceSummaryResponse)
def get_balances(
    client: SnapTradeClient = Depends(get_snaptrade_client),
    balance_service: BalanceService = Depends(get_balance_service),
):
    """Refresh every account and return per-currency rows.

    Accounts that could not be fetched are listed in
    ``failed_account_ids``; the call itself still succeeds.
    """
    try:
        accounts = client.list_accounts()
        result = balance_service.refresh(accounts)
    except ProviderError as e:
        raise provider_http_error(e, "refreshing balances")

    return BalanceSummaryResponse(
        rows=[CurrencyRowResponse.model_validate(row) for row in result.rows],
        totals_by_currency=[
            CurrencyRowResponse.model_validate(row)
            for row in summarize_by_currency(result.rows).values()
        ],
        account_count=result.account_count,
        failed_account_ids=result.failed_account_ids,
        all_failed=result.all_failed,
    )


@router.get("/holdings", response_model=HoldingsResponse)
def get_holdings(
    client: SnapTradeClient = Depends(get_snaptrade_client),
    balance_service: BalanceService = Depends(get_balance_service),
):
    """Return every position across all accounts, flattened for display."""
    try:
        accounts = client.list_accounts()
        result = balance_service.refresh(accounts)
    except ProviderError as e:
        raise provider_http_error(e, "fetching holdings")

    return HoldingsResponse(
        holdings=[HoldingRowResponse.model_validate(h) for h in result.holdings],
        failed_account_ids=result.failed_account_ids,
    )
