"""Typed exception hierarchy for provider errors.

Every error raised by the request layer derives from ProviderError and
says whether it is worth retrying via ``retriable``.
"""


class ProviderError(Exception):
    """Base class for errors raised while talking to the provider.

    ``provider_name`` identifies the provider in messages and API errors.
    """

    retriable = False

    def __init__(self, message: str, provider_name: str = ""):
        self.provider_name = provider_name
        super().__init__(message)


class ProviderAuthError(ProviderError):
    """Credentials missing, expired, or invalid (HTTP 401/403)."""

    pass


class ProviderConnectionError(ProviderError):
    """Network failures such as timeouts or refused connections.

    Retriable by default.
    """

    def __init__(self, message: str, provider_name: str = "", retriable: bool = True):
        self.retriable = retriable
        super().__init__(message, provider_name)


class ProviderAPIError(ProviderError):
    """Non-2xx response from the provider API."""

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        status_code: int | None = None,
        body: str | None = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message, provider_name)

    @property
    def retriable(self) -> bool:
        """429 (rate limit) and 5xx errors are retriable."""
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class RateLimitedError(ProviderAPIError):
    """HTTP 429, the provider's throttling signal."""

    def __init__(self, message: str, provider_name: str = "", body: str | None = None):
        super().__init__(message, provider_name, status_code=429, body=body)


class ServerError(ProviderAPIError):
    """HTTP 5xx from the provider."""

    pass


class ProviderAPIAuthError(ProviderAuthError, ProviderAPIError):
    """HTTP 401/403: an auth failure that still carries status and body."""

    pass


class ProviderDataError(ProviderError):
    """Malformed or unparseable response from the provider."""

    pass
