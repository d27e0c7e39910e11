"""Credential storage and the read-only credential provider.

Secrets live in the system keychain (via ``keyring``) or in the
environment / ``.env``. :func:`get_context` is the only place the
request layer reads them from; nothing here ever logs a secret value.
"""

import logging

from integrations.provider_protocol import CredentialContext

logger = logging.getLogger(__name__)

SERVICE_NAME = "brokerage-ledger"

CREDENTIAL_KEYS: frozenset[str] = frozenset(
    {
        "SNAPTRADE_CLIENT_ID",
        "SNAPTRADE_CONSUMER_KEY",
        "SNAPTRADE_USER_ID",
        "SNAPTRADE_USER_SECRET",
    }
)


def _keyring():
    """Import keyring lazily; ``None`` when it is not installed."""
    try:
        import keyring
    except ImportError:
        return None
    return keyring


def _check_key(key: str, action: str) -> bool:
    if key in CREDENTIAL_KEYS:
        return True
    logger.warning("Refusing to %s non-credential key %s", action, key)
    return False


def get_credential(key: str) -> str | None:
    """Look up ``key`` in the keychain.

    Returns ``None`` when the key is absent, keyring is not installed,
    or the backend errors.
    """
    backend = _keyring()
    if backend is None:
        return None
    try:
        return backend.get_password(SERVICE_NAME, key)
    except Exception:
        logger.debug("Keychain lookup failed for %s", key, exc_info=True)
        return None


def set_credential(key: str, value: str) -> bool:
    """Store a credential in the keychain.

    Returns:
        ``True`` on success; ``False`` for unknown keys, blank values,
        a missing keyring, or a backend error.
    """
    if not _check_key(key, "store"):
        return False
    if not value or not value.strip():
        logger.warning("Refusing to store a blank value for %s", key)
        return False

    backend = _keyring()
    if backend is None:
        logger.warning("keyring is not installed; %s was not stored", key)
        return False
    try:
        backend.set_password(SERVICE_NAME, key, value)
    except Exception:
        logger.warning("Keychain rejected %s", key, exc_info=True)
        return False
    logger.info("Stored %s in keychain", key)
    return True


def delete_credential(key: str) -> bool:
    """Remove a credential from the keychain; ``True`` if it was removed."""
    if not _check_key(key, "delete"):
        return False

    backend = _keyring()
    if backend is None:
        return False
    try:
        backend.delete_password(SERVICE_NAME, key)
    except Exception:
        logger.debug("Keychain delete failed for %s", key, exc_info=True)
        return False
    logger.info("Deleted %s from keychain", key)
    return True


def list_credentials() -> dict[str, str]:
    """Return the credentials currently stored in the keychain, by key."""
    stored = {key: get_credential(key) for key in sorted(CREDENTIAL_KEYS)}
    return {key: value for key, value in stored.items() if value is not None}


def get_context(app_settings=None) -> CredentialContext:
    """Build the signing credentials from settings.

    Settings already layer keychain, environment and ``.env`` values.

    Args:
        app_settings: A ``Settings`` instance (defaults to the global one).

    Returns:
        A CredentialContext; unset values are empty strings.
    """
    if app_settings is None:
        from config import settings as app_settings

    return CredentialContext(
        client_id=app_settings.SNAPTRADE_CLIENT_ID or "",
        consumer_secret=app_settings.SNAPTRADE_CONSUMER_KEY or "",
        user_id=app_settings.SNAPTRADE_USER_ID or "",
        user_secret=app_settings.SNAPTRADE_USER_SECRET or "",
    )
