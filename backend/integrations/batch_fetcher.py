"""Concurrent per-account fetches with per-account failure isolation.

One batch issues a signed ``GET /accounts/{id}/{suffix}`` per account,
all signed with the same timestamp and all in flight at once. Every
account gets an entry in the result: the decoded payload, or ``None``
when that account's request failed. A failure never raises past this
module and never affects sibling results.

Batch size equals the number of accounts passed in. Callers with large
account sets chunk them (see ``FETCH_BATCH_SIZE``).
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from integrations.exceptions import ProviderError
from integrations.provider_protocol import ProviderAccount, SignedRequest
from integrations.snaptrade_client import SnapTradeClient, parse_json_body, raise_for_response

logger = logging.getLogger(__name__)


class BatchFetcher:
    """Fan-out/fan-in fetcher built on a :class:`SnapTradeClient`."""

    def __init__(self, client: SnapTradeClient, max_workers: int | None = None):
        """Initialize the fetcher.

        Args:
            client: Client used to sign and send requests (its httpx client
                is shared by all worker threads).
            max_workers: Thread cap per batch. Defaults to the batch size, so
                every request in the batch is in flight at once.
        """
        self._client = client
        self._max_workers = max_workers

    def build_requests(
        self,
        accounts: list[ProviderAccount],
        endpoint_suffix: str,
        timestamp: int,
    ) -> dict[str, SignedRequest]:
        """Sign one request per account, all with the same timestamp.

        Each path embeds a distinct account id, so signatures still differ
        per request.
        """
        suffix = endpoint_suffix.strip("/")
        return {
            account.id: self._client.build_request(
                "GET", f"/accounts/{account.id}/{suffix}", timestamp=timestamp
            )
            for account in accounts
        }

    def fetch_for_accounts(
        self, accounts: list[ProviderAccount], endpoint_suffix: str
    ) -> dict[str, dict[str, Any] | None]:
        """Fetch ``endpoint_suffix`` for every account concurrently.

        Args:
            accounts: Accounts to fetch.
            endpoint_suffix: Per-account endpoint, e.g. ``"holdings"``.

        Returns:
            Dict with exactly one key per account id: the decoded payload,
            or ``None`` if that account's request failed.
        """
        if not accounts:
            return {}
        self._client.check_credentials()

        timestamp = int(time.time())
        requests = self.build_requests(accounts, endpoint_suffix, timestamp)
        workers = min(self._max_workers or len(requests), len(requests))

        logger.info(
            "Fetching %s for %d accounts", endpoint_suffix, len(requests)
        )
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                account_id: executor.submit(self._fetch_one, account_id, request)
                for account_id, request in requests.items()
            }
            results = {account_id: future.result() for account_id, future in futures.items()}

        failed = len(failed_accounts(results))
        if failed:
            logger.warning(
                "%d of %d account fetches failed for %s",
                failed, len(results), endpoint_suffix,
            )
        return results

    def _fetch_one(self, account_id: str, request: SignedRequest) -> dict[str, Any] | None:
        path = request.url.split("?", 1)[0]
        try:
            response = self._client.send(request)
            raise_for_response(response, path)
            payload = parse_json_body(response, path)
        except ProviderError as exc:
            logger.warning("Fetch failed for account %s: %s", account_id, exc)
            return None
        except Exception:
            logger.error("Unexpected error fetching account %s", account_id, exc_info=True)
            return None

        if not isinstance(payload, dict):
            logger.warning(
                "Fetch for account %s returned %s, expected an object",
                account_id, type(payload).__name__,
            )
            return None
        return payload


def failed_accounts(results: dict[str, dict[str, Any] | None]) -> list[str]:
    """Return the account ids whose fetch failed (``None`` entries)."""
    return [account_id for account_id, payload in results.items() if payload is None]
