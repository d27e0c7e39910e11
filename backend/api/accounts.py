"""Accounts API endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from api.helpers import get_snaptrade_client, provider_http_error
from integrations.exceptions import ProviderError
from integrations.snaptrade_client import SnapTradeClient
from schemas import AccountResponse, ConnectUrlResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


@router.get("", response_model=list[AccountResponse])
def list_accounts(client: SnapTradeClient = Depends(get_snaptrade_client)):
    """List the user's linked brokerage accounts."""
    try:
        return client.list_accounts()
    except ProviderError as e:
        raise provider_http_error(e, "listing accounts")


@router.get("/connect-url", response_model=ConnectUrlResponse)
def get_connect_url(
    broker: Optional[str] = None,
    custom_redirect: Optional[str] = None,
    reconnect: Optional[str] = None,
    client: SnapTradeClient = Depends(get_snaptrade_client),
):
    """Return a connection-portal URL for linking (or relinking) a brokerage."""
    try:
        url = client.get_login_url(
            broker=broker, custom_redirect=custom_redirect, reconnect=reconnect
        )
    except ProviderError as e:
        raise provider_http_error(e, "requesting a connection URL")
    return ConnectUrlResponse(redirect_uri=url)
