"""External API integrations.

This package contains:
- Signing: canonical query strings and request signatures
- SnapTrade client: signed requests with retry
- Batch fetcher: concurrent per-account fetches with failure isolation
- Symbol parser: normalization of the provider's symbol field
"""

from integrations.provider_protocol import (
    AccountDataSource,
    CredentialContext,
    ProviderAccount,
    SignedRequest,
)

__all__ = [
    "AccountDataSource",
    "CredentialContext",
    "ProviderAccount",
    "SignedRequest",
]
