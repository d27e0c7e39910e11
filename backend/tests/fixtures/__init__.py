"""Test fixtures and sample data."""
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from models import HistorySnapshot
from services.history_service import HistoryLog


def add_history_rows(
    db: Session,
    snapshot_date: date,
    account_totals: list[tuple[str, Decimal]],
    currency: str = "USD",
) -> list[HistorySnapshot]:
    """Append one day's rows to the history log.

    Args:
        db: Database session
        snapshot_date: Calendar day of the rows
        account_totals: List of (account_id, total) tuples; the total is
                        stored as cash with no holdings value

    Returns:
        The created rows
    """
    rows = [
        HistorySnapshot(
            snapshot_date=snapshot_date,
            account_id=account_id,
            account_name=account_id.title(),
            currency=currency,
            cash=total,
            holdings_value=Decimal("0"),
            total=total,
            captured_at=datetime(
                snapshot_date.year, snapshot_date.month, snapshot_date.day, 12, tzinfo=timezone.utc
            ),
        )
        for account_id, total in account_totals
    ]
    HistoryLog(db).append(rows)
    db.commit()
    return rows


@pytest.fixture
def history_rows(db):
    """Two earlier days already in the log."""
    first = add_history_rows(db, date(2024, 1, 1), [("acc_a", Decimal("100"))])
    second = add_history_rows(db, date(2024, 1, 2), [("acc_a", Decimal("110"))])
    return first + second
