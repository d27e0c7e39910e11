"""SnapTrade REST API client.

Talks to the API directly over httpx so every request can be signed
exactly the way the server verifies it (see :mod:`integrations.signing`).
A single call goes through :meth:`SnapTradeClient.execute`; transient
failures are retried by :meth:`SnapTradeClient.execute_with_retry`.
"""

import json
import logging
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable
from urllib.parse import urlsplit

import httpx

from config import settings
from integrations.exceptions import (
    ProviderAPIError,
    ProviderAPIAuthError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
    ProviderError,
    RateLimitedError,
    ServerError,
)
from integrations.parsing_utils import parse_iso_datetime, resolve_currency_code
from integrations.provider_protocol import CredentialContext, ProviderAccount, SignedRequest
from integrations.signing import canonicalize_query, sign_request
from integrations.symbol_parser import extract_symbol

logger = logging.getLogger(__name__)

PROVIDER_NAME = "SnapTrade"


@dataclass
class ProviderActivity:
    """Normalized activity/transaction from the provider."""

    account_id: str  # Provider's account ID this activity belongs to
    external_id: str  # Provider's unique ID for this activity
    activity_date: datetime  # Trade date
    type: str  # e.g., "buy", "sell", "dividend", "contribution"
    amount: Decimal | None = None
    description: str | None = None
    settlement_date: datetime | None = None
    ticker: str | None = None
    units: Decimal | None = None
    price: Decimal | None = None
    currency: str = "USD"
    fee: Decimal | None = None
    raw_data: dict | None = None


def raise_for_response(response: httpx.Response, path: str) -> None:
    """Raise the typed error for a non-2xx response.

    Args:
        response: The HTTP response.
        path: Request path, used in the error message.

    Raises:
        RateLimitedError: HTTP 429.
        ProviderAPIAuthError: HTTP 401/403.
        ServerError: HTTP 5xx.
        ProviderAPIError: Any other non-2xx status.
    """
    status = response.status_code
    if 200 <= status < 300:
        return
    body = response.text
    if status == 429:
        raise RateLimitedError(
            f"SnapTrade rate limit exceeded on {path}",
            provider_name=PROVIDER_NAME,
            body=body,
        )
    if status in (401, 403):
        raise ProviderAPIAuthError(
            f"SnapTrade authentication failed on {path} (HTTP {status})",
            provider_name=PROVIDER_NAME,
            status_code=status,
            body=body,
        )
    if status >= 500:
        raise ServerError(
            f"SnapTrade server error on {path} (HTTP {status})",
            provider_name=PROVIDER_NAME,
            status_code=status,
            body=body,
        )
    raise ProviderAPIError(
        f"SnapTrade API error on {path} (HTTP {status})",
        provider_name=PROVIDER_NAME,
        status_code=status,
        body=body,
    )


def parse_json_body(response: httpx.Response, path: str) -> Any:
    """Decode a JSON response body; an empty body decodes to ``None``."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise ProviderDataError(
            f"SnapTrade returned malformed JSON for {path}",
            provider_name=PROVIDER_NAME,
        ) from exc


class SnapTradeClient:
    """Signed HTTP client for the SnapTrade API."""

    def __init__(
        self,
        credentials: CredentialContext | None = None,
        *,
        base_url: str | None = None,
        http_client: httpx.Client | None = None,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        retry_budget: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        app_settings=None,
    ):
        """Initialize the client.

        Args:
            credentials: Signing credentials (defaults to the credential
                provider built from settings).
            base_url: API root including the version prefix.
            http_client: Shared httpx client (one is created if omitted).
            max_attempts: Attempts per call in execute_with_retry.
            base_delay: First backoff delay in seconds; doubles per attempt.
            retry_budget: Max seconds spent retrying one call (0 = no cap).
            sleep: Delay function, injectable for tests.
            clock: Monotonic clock, injectable for tests.
            app_settings: Settings override (defaults to global settings).
        """
        cfg = app_settings or settings
        if credentials is None:
            from services.credential_manager import get_context

            credentials = get_context(cfg)
        self.credentials = credentials
        self.base_url = (base_url or cfg.SNAPTRADE_BASE_URL).rstrip("/")
        self._base_path = urlsplit(self.base_url).path.rstrip("/")
        self._owns_http = http_client is None
        self.http = http_client or httpx.Client(timeout=cfg.REQUEST_TIMEOUT_SECONDS)
        self.max_attempts = max_attempts or cfg.REQUEST_MAX_ATTEMPTS
        self.base_delay = cfg.REQUEST_BASE_DELAY_SECONDS if base_delay is None else base_delay
        self.retry_budget = (
            cfg.REQUEST_RETRY_BUDGET_SECONDS if retry_budget is None else retry_budget
        )
        self._sleep = sleep
        self._clock = clock

    @property
    def provider_name(self) -> str:
        return PROVIDER_NAME

    def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "SnapTradeClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def is_configured(self) -> bool:
        """Check if app and user credentials are all present."""
        return self.credentials.has_app_credentials() and self.credentials.has_user_credentials()

    def check_credentials(self, include_user: bool = True) -> None:
        """Raise an error if credentials are not configured."""
        if not self.credentials.has_app_credentials():
            raise ProviderAuthError(
                "SnapTrade API credentials not configured. "
                "Set SNAPTRADE_CLIENT_ID and SNAPTRADE_CONSUMER_KEY in .env",
                provider_name=PROVIDER_NAME,
            )
        if include_user and not self.credentials.has_user_credentials():
            raise ProviderAuthError(
                "SnapTrade credentials not configured. "
                "Run 'python -m scripts.setup_snaptrade register' first.",
                provider_name=PROVIDER_NAME,
            )

    # -------------------------------------------------------------------------
    # Request construction and execution
    # -------------------------------------------------------------------------

    def build_request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: Any = None,
        *,
        timestamp: int | None = None,
        include_user: bool = True,
    ) -> SignedRequest:
        """Build a signed request without sending it.

        Args:
            method: HTTP method.
            path: Path relative to the API root, e.g. ``/accounts``.
            params: Endpoint-specific query parameters.
            body: JSON body, or ``None`` for no body.
            timestamp: Unix seconds to sign with (defaults to now). A batch
                passes one shared value to every request.
            include_user: Add ``userId``/``userSecret`` to the query.

        Returns:
            The SignedRequest.
        """
        method = method.upper()
        query_params: dict[str, Any] = dict(params or {})
        query_params["clientId"] = self.credentials.client_id
        query_params["timestamp"] = str(int(time.time()) if timestamp is None else timestamp)
        if include_user:
            query_params["userId"] = self.credentials.user_id
            query_params["userSecret"] = self.credentials.user_secret

        query = canonicalize_query(query_params)
        full_path = f"{self._base_path}{path}"
        signature = sign_request(self.credentials.consumer_secret, body, full_path, query)

        headers = {"Signature": signature, "Accept": "application/json"}
        content = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            content = json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

        return SignedRequest(
            method=method,
            url=f"{self.base_url}{path}?{query}",
            headers=headers,
            body=content,
        )

    def send(self, request: SignedRequest) -> httpx.Response:
        """Send a signed request, mapping transport failures to ProviderConnectionError."""
        try:
            return self.http.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body,
            )
        except httpx.HTTPError as exc:
            raise ProviderConnectionError(
                f"SnapTrade connection failed: {exc}",
                provider_name=PROVIDER_NAME,
            ) from exc

    def execute(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: Any = None,
        *,
        include_user: bool = True,
    ) -> Any:
        """Perform one authenticated call and return the parsed JSON body.

        Raises:
            ProviderAuthError: Credentials missing or rejected.
            RateLimitedError: HTTP 429.
            ServerError: HTTP 5xx.
            ProviderAPIError: Any other non-2xx status.
            ProviderDataError: The body is not valid JSON.
            ProviderConnectionError: Network failure.
        """
        self.check_credentials(include_user)
        request = self.build_request(method, path, params, body, include_user=include_user)
        response = self.send(request)
        raise_for_response(response, path)
        return parse_json_body(response, path)

    def execute_with_retry(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: Any = None,
        *,
        include_user: bool = True,
        max_attempts: int | None = None,
    ) -> Any:
        """Call :meth:`execute`, retrying rate limits, 5xx and network errors.

        Backoff starts at ``base_delay`` and doubles each attempt.
        Non-retriable errors propagate immediately; after the last attempt
        (or once the retry budget is spent) the last error propagates.
        """
        attempts = max_attempts or self.max_attempts
        started = self._clock()
        for attempt in range(attempts):
            try:
                return self.execute(method, path, params, body, include_user=include_user)
            except ProviderError as exc:
                if not exc.retriable or attempt == attempts - 1:
                    raise
                delay = self.base_delay * (2 ** attempt)
                elapsed = self._clock() - started
                if self.retry_budget and elapsed + delay > self.retry_budget:
                    logger.warning(
                        "SnapTrade: retry budget of %.0fs exhausted for %s %s",
                        self.retry_budget, method, path,
                    )
                    raise
                logger.warning(
                    "SnapTrade request %s %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    method, path, attempt + 1, attempts, delay, exc,
                )
                self._sleep(delay)

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    def list_accounts(self) -> list[ProviderAccount]:
        """Fetch the user's linked accounts."""
        raw_accounts = self.execute_with_retry("GET", "/accounts") or []
        accounts = []
        for raw in raw_accounts:
            if not isinstance(raw, dict):
                continue
            acc_id = str(raw.get("id", ""))
            if not acc_id:
                continue
            accounts.append(
                ProviderAccount(
                    id=acc_id,
                    name=raw.get("name") or "Unknown Account",
                    institution=raw.get("institution_name")
                    or self._extract_brokerage_name(raw.get("brokerage_authorization")),
                    sync_state=self._extract_sync_state(raw),
                    account_number=raw.get("number"),
                )
            )
        logger.info("SnapTrade: %d accounts listed", len(accounts))
        return accounts

    def get_account_holdings(self, account_id: str) -> dict[str, Any]:
        """Fetch positions and balances for a single account."""
        return self.execute_with_retry("GET", f"/accounts/{account_id}/holdings") or {}

    def get_activities(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        account_ids: list[str] | None = None,
    ) -> list[ProviderActivity]:
        """Fetch activities/transactions.

        Args:
            start_date: Start of date range (defaults to 90 days ago).
            end_date: End of date range (defaults to today).
            account_ids: Restrict to these accounts (defaults to all).

        Returns:
            List of ProviderActivity objects.
        """
        if end_date is None:
            end_date = date.today()
        if start_date is None:
            start_date = end_date - timedelta(days=90)

        params = {"startDate": start_date.isoformat(), "endDate": end_date.isoformat()}
        if account_ids:
            params["accounts"] = ",".join(account_ids)

        raw_activities = self.execute_with_retry("GET", "/activities", params) or []

        activities = []
        for raw in raw_activities:
            activity = self._map_activity(raw)
            if activity:
                activities.append(activity)
        return activities

    def get_login_url(
        self,
        broker: str | None = None,
        custom_redirect: str | None = None,
        reconnect: str | None = None,
        connection_type: str | None = None,
    ) -> str:
        """Request a connection-portal URL for linking a brokerage.

        The URL is returned as-is; opening it is the caller's concern.
        """
        body: dict[str, Any] = {}
        if broker:
            body["broker"] = broker
        if custom_redirect:
            body["customRedirect"] = custom_redirect
        if reconnect:
            body["reconnect"] = reconnect
        if connection_type:
            body["connectionType"] = connection_type

        data = self.execute_with_retry("POST", "/snapTrade/login", body=body)
        redirect = data.get("redirectURI") if isinstance(data, dict) else None
        if not redirect:
            raise ProviderDataError(
                "SnapTrade login response did not include a redirect URI",
                provider_name=PROVIDER_NAME,
            )
        return redirect

    def register_user(self, user_id: str) -> dict[str, str]:
        """Register a SnapTrade user and return its ``userId``/``userSecret``."""
        data = self.execute_with_retry(
            "POST", "/snapTrade/registerUser", body={"userId": user_id}, include_user=False
        )
        if not isinstance(data, dict) or not data.get("userSecret"):
            raise ProviderDataError(
                "SnapTrade registration response did not include a user secret",
                provider_name=PROVIDER_NAME,
            )
        return {"userId": str(data.get("userId") or user_id), "userSecret": data["userSecret"]}

    # -------------------------------------------------------------------------
    # Response mapping helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _extract_brokerage_name(brokerage_auth) -> str:
        """Extract brokerage name from a nested authorization object."""
        if not isinstance(brokerage_auth, dict):
            return "Unknown"
        brokerage = brokerage_auth.get("brokerage")
        if isinstance(brokerage, dict):
            return brokerage.get("name") or "Unknown"
        if isinstance(brokerage, str):
            return brokerage
        return "Unknown"

    @staticmethod
    def _extract_sync_state(raw_account: dict) -> str:
        """Read ``sync_status.holdings`` into a simple state string."""
        sync_status = raw_account.get("sync_status")
        holdings_meta = sync_status.get("holdings") if isinstance(sync_status, dict) else None
        if not isinstance(holdings_meta, dict):
            return "unknown"
        if holdings_meta.get("initial_sync_completed") is False:
            return "syncing"
        if holdings_meta.get("initial_sync_completed") or holdings_meta.get("last_successful_sync"):
            return "synced"
        return "unknown"

    def _map_activity(self, raw) -> ProviderActivity | None:
        """Map a single raw activity dict to ProviderActivity."""
        if not isinstance(raw, dict):
            return None

        external_id = str(raw.get("id") or "")
        if not external_id:
            return None
        activity_date = parse_iso_datetime(raw.get("trade_date"))
        if not activity_date:
            return None

        account = raw.get("account")
        if isinstance(account, dict):
            account_id = str(account.get("id") or "")
        else:
            account_id = str(account or raw.get("account_id") or "")

        symbol_data = raw.get("symbol")
        ticker = None
        if symbol_data:
            ticker = extract_symbol(symbol_data).symbol
            if ticker == "N/A":
                ticker = None

        currency_data = raw.get("currency")
        if currency_data is None and isinstance(symbol_data, dict):
            currency_data = symbol_data.get("currency")

        activity_type = raw.get("type")
        fee_raw = raw.get("fee") or raw.get("commission")

        return ProviderActivity(
            account_id=account_id,
            external_id=external_id,
            activity_date=activity_date,
            type=str(activity_type).lower() if activity_type else "unknown",
            description=raw.get("description"),
            settlement_date=parse_iso_datetime(raw.get("settlement_date")),
            ticker=ticker,
            units=_optional_decimal(raw.get("units")),
            price=_optional_decimal(raw.get("price")),
            amount=_optional_decimal(raw.get("amount")),
            currency=resolve_currency_code(currency_data),
            fee=_optional_decimal(fee_raw),
            raw_data=raw,
        )


def _optional_decimal(value) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except ArithmeticError:
        return None
