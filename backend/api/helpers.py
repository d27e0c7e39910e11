"""Shared API helpers for route handlers.

Service dependencies (overridable in tests) and provider error mapping.
"""

import logging
from typing import Iterator

from fastapi import Depends, HTTPException

from integrations.batch_fetcher import BatchFetcher
from integrations.exceptions import ProviderAuthError, ProviderError
from integrations.snaptrade_client import SnapTradeClient
from services.balance_service import BalanceService
from services.history_service import HistoryService

logger = logging.getLogger(__name__)


def get_snaptrade_client() -> Iterator[SnapTradeClient]:
    """Provide a SnapTrade client for the duration of one request."""
    client = SnapTradeClient()
    try:
        yield client
    finally:
        client.close()


def get_balance_service(
    client: SnapTradeClient = Depends(get_snaptrade_client),
) -> BalanceService:
    """Provide a BalanceService sharing the request's client."""
    return BalanceService(data_source=BatchFetcher(client))


def get_history_service(
    balance_service: BalanceService = Depends(get_balance_service),
) -> HistoryService:
    """Provide a HistoryService sharing the request's BalanceService."""
    return HistoryService(balance_service=balance_service)


def provider_http_error(exc: ProviderError, action: str) -> HTTPException:
    """Map a provider error to the HTTP error returned to clients.

    Args:
        exc: The provider error.
        action: What was being attempted, e.g. ``"listing accounts"``.

    Returns:
        HTTPException with status 502; auth failures name the provider.
    """
    if isinstance(exc, ProviderAuthError):
        logger.warning("Provider auth error while %s: %s", action, exc)
        return HTTPException(
            status_code=502,
            detail=(
                f"Provider authentication failed for {exc.provider_name}. "
                "Please check your credentials and try again."
            ),
        )
    logger.warning("Provider error while %s: %s", action, exc)
    return HTTPException(
        status_code=502,
        detail=f"A provider error occurred while {action}. Check the logs for details.",
    )
