"""Pydantic schemas for API request/response validation."""

from schemas.account import AccountResponse, ConnectUrlResponse
from schemas.balance import (
    BalanceSummaryResponse,
    CurrencyRowResponse,
    HoldingRowResponse,
    HoldingsResponse,
)
from schemas.history import CaptureResponse, HistorySnapshotResponse

__all__ = [
    "AccountResponse",
    "BalanceSummaryResponse",
    "CaptureResponse",
    "ConnectUrlResponse",
    "CurrencyRowResponse",
    "HistorySnapshotResponse",
    "HoldingRowResponse",
    "HoldingsResponse",
]
