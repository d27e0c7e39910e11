"""Currency aggregation over raw per-account holdings payloads.

Pure functions, no I/O. Malformed input degrades to defaults instead of
raising, so one odd payload never removes an account from the output.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from integrations.parsing_utils import DEFAULT_CURRENCY, resolve_currency_code, to_decimal
from integrations.symbol_parser import extract_symbol

BALANCE_FIELDS = ("balances", "account_balances")


@dataclass(frozen=True)
class CurrencyRow:
    """Cash, holdings value and total for one account in one currency."""

    account_id: str
    currency: str
    cash: Decimal
    holdings_value: Decimal
    total: Decimal


@dataclass(frozen=True)
class HoldingRow:
    """One position flattened for display."""

    account_id: str
    symbol: str
    description: str
    units: Decimal
    price: Decimal
    average_cost: Decimal
    market_value: Decimal
    currency: str


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def resolve_balances(payload: dict[str, Any] | None) -> list:
    """Return the balances array, preferring ``balances`` over ``account_balances``."""
    if not isinstance(payload, dict):
        return []
    for field_name in BALANCE_FIELDS:
        value = payload.get(field_name)
        if value is not None:
            return _as_list(value)
    return []


def resolve_positions(payload: dict[str, Any] | None) -> list:
    if not isinstance(payload, dict):
        return []
    return _as_list(payload.get("positions"))


def position_currency(position: dict) -> str:
    """Currency of a position: its own ``currency``, else its symbol's."""
    currency = position.get("currency")
    if currency is None:
        symbol = position.get("symbol")
        if isinstance(symbol, dict):
            currency = symbol.get("currency")
            inner = symbol.get("symbol")
            if currency is None and isinstance(inner, dict):
                currency = inner.get("currency")
    return resolve_currency_code(currency)


def aggregate_currency_rows(account_id: str, payload: dict[str, Any] | None) -> list[CurrencyRow]:
    """Group an account's balances and positions by currency.

    Cash comes from the balances array, holdings value from
    ``units * price`` over positions. Currencies are emitted in the order
    first seen. An account with no usable data yields exactly one zero
    ``USD`` row.

    Args:
        account_id: Account the payload belongs to.
        payload: Raw holdings response (may be ``None`` or malformed).

    Returns:
        One CurrencyRow per currency, never empty.
    """
    cash: dict[str, Decimal] = {}
    holdings: dict[str, Decimal] = {}

    def bucket(code: str) -> None:
        if code not in cash:
            cash[code] = Decimal("0")
            holdings[code] = Decimal("0")

    for balance in resolve_balances(payload):
        if not isinstance(balance, dict):
            continue
        code = resolve_currency_code(balance.get("currency"))
        bucket(code)
        cash[code] += to_decimal(balance.get("cash"))

    for position in resolve_positions(payload):
        if not isinstance(position, dict):
            continue
        code = position_currency(position)
        bucket(code)
        holdings[code] += to_decimal(position.get("units")) * to_decimal(position.get("price"))

    if not cash:
        bucket(DEFAULT_CURRENCY)

    return [
        CurrencyRow(
            account_id=account_id,
            currency=code,
            cash=cash[code],
            holdings_value=holdings[code],
            total=cash[code] + holdings[code],
        )
        for code in cash
    ]


def flatten_positions(account_id: str, payload: dict[str, Any] | None) -> list[HoldingRow]:
    """Flatten an account's positions into display rows."""
    rows = []
    for position in resolve_positions(payload):
        if not isinstance(position, dict):
            continue
        descriptor = extract_symbol(position.get("symbol"))
        units = to_decimal(position.get("units"))
        price = to_decimal(position.get("price"))
        rows.append(
            HoldingRow(
                account_id=account_id,
                symbol=descriptor.symbol,
                description=descriptor.description,
                units=units,
                price=price,
                average_cost=to_decimal(position.get("average_purchase_price")),
                market_value=units * price,
                currency=position_currency(position),
            )
        )
    return rows


def summarize_by_currency(rows: list[CurrencyRow]) -> dict[str, CurrencyRow]:
    """Total CurrencyRows across accounts, keyed by currency.

    The ``account_id`` of each summary row is ``"*"``.
    """
    totals: dict[str, CurrencyRow] = {}
    for row in rows:
        existing = totals.get(row.currency)
        if existing is None:
            totals[row.currency] = CurrencyRow("*", row.currency, row.cash, row.holdings_value, row.total)
        else:
            totals[row.currency] = CurrencyRow(
                "*",
                row.currency,
                existing.cash + row.cash,
                existing.holdings_value + row.holdings_value,
                existing.total + row.total,
            )
    return totals
