"""HistorySnapshot model - one account-currency row of a daily capture."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, Date, DateTime, Integer, Numeric, String

from database import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


class HistorySnapshot(Base):
    """One row of the append-only daily history log.

    ``position`` orders the log. Rows for one calendar day form a
    contiguous run; recapturing a day replaces that run in place, and
    rows for earlier days are never touched.
    """

    __tablename__ = "history_snapshots"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    position = Column(Integer, nullable=False, index=True)
    snapshot_date = Column(Date, nullable=False, index=True)  # Local calendar day
    account_id = Column(String, nullable=False, index=True)  # Provider's account ID
    account_name = Column(String, nullable=True)
    currency = Column(String(8), nullable=False, default="USD")
    cash = Column(Numeric(18, 4), nullable=False, default=Decimal("0"))
    holdings_value = Column(Numeric(18, 4), nullable=False, default=Decimal("0"))
    total = Column(Numeric(18, 4), nullable=False, default=Decimal("0"))
    captured_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
