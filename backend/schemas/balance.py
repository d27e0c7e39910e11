"""Pydantic schemas for balance endpoints."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class CurrencyRowResponse(BaseModel):
    """Cash, holdings value and total for one account in one currency."""

    account_id: str
    currency: str
    cash: Decimal
    holdings_value: Decimal
    total: Decimal

    model_config = ConfigDict(from_attributes=True)


class HoldingRowResponse(BaseModel):
    """A single position flattened for display."""

    account_id: str
    symbol: str
    description: str
    units: Decimal
    price: Decimal
    average_cost: Decimal
    market_value: Decimal
    currency: str

    model_config = ConfigDict(from_attributes=True)


class BalanceSummaryResponse(BaseModel):
    """Result of a balance refresh across all accounts.

    ``failed_account_ids`` lets clients tell "some accounts failed" apart
    from "no accounts could be refreshed" (``all_failed``).
    """

    rows: list[CurrencyRowResponse]
    totals_by_currency: list[CurrencyRowResponse]
    account_count: int
    failed_account_ids: list[str]
    all_failed: bool


class HoldingsResponse(BaseModel):
    """Flattened holdings across all accounts."""

    holdings: list[HoldingRowResponse]
    failed_account_ids: list[str]
