"""Shared data types and protocols for the brokerage provider integration.

This module defines the normalized structures the rest of the system works
with, independent of the raw JSON shapes returned by the provider.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class ProviderAccount:
    """Normalized account data from the provider.

    Immutable for the duration of one refresh cycle.
    """

    id: str  # Provider's external ID for the account
    name: str  # Account name/nickname
    institution: str  # Brokerage/bank name
    sync_state: str = "unknown"  # "synced" | "syncing" | "unknown"
    account_number: str | None = None  # Account number (if available)


@dataclass(frozen=True, repr=False)
class CredentialContext:
    """Credentials needed to sign a request.

    All values are plain strings; unset values are empty strings.
    """

    client_id: str = ""
    consumer_secret: str = ""
    user_id: str = ""
    user_secret: str = ""

    def has_app_credentials(self) -> bool:
        return bool(self.client_id and self.consumer_secret)

    def has_user_credentials(self) -> bool:
        return bool(self.user_id and self.user_secret)

    def __repr__(self) -> str:
        # Never expose secrets in logs or tracebacks
        return (
            f"CredentialContext(client_id={self.client_id!r}, "
            f"user_id={self.user_id!r}, secrets=***)"
        )


@dataclass
class SignedRequest:
    """A fully built, signed request ready to send. Never persisted."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None
    mute_errors: bool = True  # Non-2xx responses are returned, not raised


class AccountDataSource(Protocol):
    """Anything that can fetch one payload per account in a single batch.

    Implementations must return exactly one entry per input account, using
    ``None`` for accounts whose fetch failed.
    """

    def fetch_for_accounts(
        self, accounts: list[ProviderAccount], endpoint_suffix: str
    ) -> dict[str, dict[str, Any] | None]:
        ...
