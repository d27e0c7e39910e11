"""Centralized logging configuration.

Signed request URLs carry ``userSecret`` in the query string and every
request has a ``Signature`` header, so a filter on the root handlers
masks both before anything is written.
"""

import logging
import re

from config import settings

NOISY_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
    "urllib3",
    "keyring",
)

_SECRET_PATTERN = re.compile(r"(userSecret=|['\"]?Signature['\"]?\s*[:=]\s*['\"]?)[^&\s'\",}]+")


class SecretRedactingFilter(logging.Filter):
    """Replace user secrets and request signatures in log records with ``***``."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _SECRET_PATTERN.sub(r"\1***", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(level: str | None = None) -> None:
    """Configure logging for the application.

    Args:
        level: Root level override (defaults to ``settings.LOG_LEVEL``).
    """
    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%H:%M:%S",
        level=getattr(logging, (level or settings.LOG_LEVEL).upper()),
        force=True,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(SecretRedactingFilter())

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
