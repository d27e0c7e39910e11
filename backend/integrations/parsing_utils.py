"""Shared parsing utilities for provider payloads.

Centralises the tolerant value coercion the provider integration needs:
numbers that may be missing or strings, currency codes that may be nested
objects, ISO 8601 timestamps, and local calendar days.
"""

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

DEFAULT_CURRENCY = "USD"
# Values at or beyond 1e19 in magnitude are treated as malformed
MAX_DECIMAL_EXPONENT = 18


def to_decimal(value) -> Decimal:
    """Coerce a number-like value to Decimal, treating anything invalid as 0.

    Args:
        value: An int, float, Decimal, numeric string, or None.

    Returns:
        The Decimal value, or ``Decimal("0")`` for missing/malformed input.
        Non-finite values and magnitudes too large for later arithmetic
        count as malformed.
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return Decimal("0")
    if not result.is_finite() or result.adjusted() > MAX_DECIMAL_EXPONENT:
        return Decimal("0")
    return result


def resolve_currency_code(value) -> str:
    """Extract a currency code from the shapes the provider uses.

    Accepts ``{"code": "CAD", ...}`` objects or bare ``"CAD"`` strings.
    Anything missing, blank, or malformed resolves to ``USD``.
    """
    if isinstance(value, dict):
        value = value.get("code")
    if isinstance(value, str) and value.strip():
        return value.strip().upper()
    return DEFAULT_CURRENCY


def parse_iso_datetime(value) -> datetime | None:
    """Parse an ISO 8601 string (or date/datetime object) to a UTC-aware datetime.

    Handles the formats the provider produces:
    - Z suffix ("2024-01-15T10:30:00Z")
    - Standard ISO with colon offset ("2024-06-28 18:42:46+00:00")
    - +0000 no-colon offset ("2024-01-15T10:30:00+0000")
    - Date-only strings ("2024-06-28")

    Returns:
        A timezone-aware UTC datetime, or None if the value cannot be parsed.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    value_str = str(value)

    if value_str.endswith("Z"):
        value_str = value_str[:-1] + "+00:00"

    if (
        len(value_str) >= 5
        and value_str[-5] in ("+", "-")
        and value_str[-4:].isdigit()
    ):
        value_str = value_str[:-2] + ":" + value_str[-2:]

    try:
        dt = datetime.fromisoformat(value_str)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except (ValueError, TypeError):
        pass

    try:
        d = date.fromisoformat(str(value))
        return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
    except (ValueError, TypeError):
        return None


def to_local_date(value: date | datetime) -> date:
    """Normalize a date or datetime to the local calendar day.

    Naive datetimes are assumed to be UTC (SQLite strips tzinfo), so a
    5 PM PT capture stored as 01:00 UTC the next day still maps back to
    the day it was taken on.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone().date()
    return value
