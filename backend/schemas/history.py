"""Pydantic schemas for history endpoints."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class HistorySnapshotResponse(BaseModel):
    """Schema for one row of the history log."""

    snapshot_date: date
    account_id: str
    account_name: str | None = None
    currency: str
    cash: Decimal
    holdings_value: Decimal
    total: Decimal
    captured_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class CaptureResponse(BaseModel):
    """Outcome of a history capture."""

    snapshot_date: date
    state: str
    rows_written: int
    rows_replaced: int
    failed_account_ids: list[str]
