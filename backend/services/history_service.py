"""History service - maintains the daily account value history log.

The log is an ordered sequence of HistorySnapshot rows. A capture either
appends a new day's rows or, if today already has rows, replaces that
contiguous run in place, so there is at most one batch per calendar day
and the latest capture wins. Earlier days are never modified.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from integrations.parsing_utils import to_local_date
from integrations.provider_protocol import ProviderAccount
from models import HistorySnapshot
from services.balance_service import BalanceService
from services.currency_aggregator import aggregate_currency_rows

logger = logging.getLogger(__name__)


class HistoryState(str, Enum):
    """Whether the log already holds a batch for today."""

    NO_ENTRY_TODAY = "no_entry_today"
    HAS_ENTRY_TODAY = "has_entry_today"


@dataclass(frozen=True)
class HistoryStatus:
    """Result of scanning the log; ``[start, end)`` is today's run."""

    state: HistoryState
    start: int | None = None
    end: int | None = None


@dataclass
class CaptureResult:
    """Outcome of one history capture."""

    snapshot_date: date
    state: HistoryState
    rows_written: int = 0
    rows_replaced: int = 0
    failed_account_ids: list[str] = field(default_factory=list)


def determine_state(entries: list, today: date) -> HistoryStatus:
    """Find the first contiguous run of entries dated ``today``.

    Entry dates are normalized to the local calendar day before comparing.

    Args:
        entries: Log entries in log order (anything with ``snapshot_date``).
        today: The caller's local calendar day.

    Returns:
        HistoryStatus with the index range of today's run, if any.
    """
    start = None
    for index, entry in enumerate(entries):
        is_today = to_local_date(entry.snapshot_date) == today
        if is_today and start is None:
            start = index
        elif not is_today and start is not None:
            return HistoryStatus(HistoryState.HAS_ENTRY_TODAY, start, index)
    if start is not None:
        return HistoryStatus(HistoryState.HAS_ENTRY_TODAY, start, len(entries))
    return HistoryStatus(HistoryState.NO_ENTRY_TODAY)


class HistoryLog:
    """Ordered access to the history_snapshots table.

    ``replace_range`` runs inside the caller's transaction; it is atomic
    only as far as that transaction is.
    """

    def __init__(self, db: Session):
        self._db = db

    def entries(self) -> list[HistorySnapshot]:
        return (
            self._db.query(HistorySnapshot)
            .order_by(HistorySnapshot.position, HistorySnapshot.captured_at)
            .all()
        )

    def _next_position(self) -> int:
        current = self._db.query(func.max(HistorySnapshot.position)).scalar()
        return 0 if current is None else current + 1

    def append(self, rows: list[HistorySnapshot]) -> None:
        """Add rows at the end of the log."""
        position = self._next_position()
        for offset, row in enumerate(rows):
            row.position = position + offset
            self._db.add(row)
        self._db.flush()

    def replace_range(self, start: int, end: int, rows: list[HistorySnapshot]) -> list[HistorySnapshot]:
        """Remove entries ``[start, end)`` and insert ``rows`` in their place.

        Entries after the range keep their relative order.

        Returns:
            The removed entries.
        """
        entries = self.entries()
        removed = entries[start:end]
        trailing = entries[end:]
        if removed:
            base = removed[0].position
        elif trailing:
            base = trailing[0].position
        else:
            base = self._next_position()

        for entry in removed:
            self._db.delete(entry)
        self._db.flush()

        for offset, row in enumerate(rows):
            row.position = base + offset
            self._db.add(row)

        next_position = base + len(rows)
        for entry in trailing:
            if entry.position < next_position:
                entry.position = next_position
            next_position = entry.position + 1

        self._db.flush()
        return removed


class HistoryService:
    """Captures daily snapshots of account values into the history log."""

    # Serializes read-then-write captures within this process. Writers in
    # other processes sharing the database are not covered.
    _write_lock = threading.Lock()

    def __init__(self, balance_service: Optional[BalanceService] = None):
        """Initialize with an optional BalanceService for dependency injection.

        Args:
            balance_service: Used to fetch payloads when a capture is not
                given them. Created on first use if None.
        """
        self._balance_service = balance_service

    @property
    def balance_service(self) -> BalanceService:
        if self._balance_service is None:
            self._balance_service = BalanceService()
        return self._balance_service

    @staticmethod
    def build_snapshot_rows(
        accounts: list[ProviderAccount],
        payloads: dict[str, dict[str, Any] | None],
        snapshot_date: date,
        captured_at: datetime,
    ) -> list[HistorySnapshot]:
        """Aggregate each fetched account into HistorySnapshot rows.

        Accounts whose payload is ``None`` (failed fetch) or missing are
        skipped.
        """
        rows = []
        for account in accounts:
            payload = payloads.get(account.id)
            if payload is None:
                continue
            for currency_row in aggregate_currency_rows(account.id, payload):
                rows.append(
                    HistorySnapshot(
                        snapshot_date=snapshot_date,
                        account_id=account.id,
                        account_name=account.name,
                        currency=currency_row.currency,
                        cash=currency_row.cash,
                        holdings_value=currency_row.holdings_value,
                        total=currency_row.total,
                        captured_at=captured_at,
                    )
                )
        return rows

    def capture(
        self,
        db: Session,
        accounts: list[ProviderAccount],
        payloads: dict[str, dict[str, Any] | None] | None = None,
        today: date | datetime | None = None,
    ) -> CaptureResult:
        """Write today's snapshot, replacing any earlier capture from today.

        Args:
            db: Database session (committed on success).
            accounts: Accounts to capture.
            payloads: Already-fetched holdings payloads keyed by account id.
                Fetched via the BalanceService when omitted.
            today: The local calendar day to capture for (defaults to today).
                A naive datetime is read as local wall-clock time, an aware
                one is converted to local time first.

        Returns:
            CaptureResult describing what was written.
        """
        snapshot_date = _capture_day(today)
        if payloads is None:
            payloads = self.balance_service.fetch_payloads(accounts)

        failed = [a.id for a in accounts if payloads.get(a.id) is None]
        captured_at = datetime.now(timezone.utc)
        rows = self.build_snapshot_rows(accounts, payloads, snapshot_date, captured_at)

        with self._write_lock:
            log = HistoryLog(db)
            status = determine_state(log.entries(), snapshot_date)
            result = CaptureResult(
                snapshot_date=snapshot_date,
                state=status.state,
                failed_account_ids=failed,
            )

            if not rows:
                logger.warning(
                    "History capture for %s skipped: no account data (%d failed)",
                    snapshot_date, len(failed),
                )
                return result

            if status.state is HistoryState.NO_ENTRY_TODAY:
                log.append(rows)
            else:
                # Keep today's earlier values for accounts that failed this time
                entries = log.entries()
                failed_ids = set(failed)
                carried = [
                    _copy_snapshot(entry)
                    for entry in entries[status.start:status.end]
                    if entry.account_id in failed_ids
                ]
                removed = log.replace_range(status.start, status.end, rows + carried)
                result.rows_replaced = len(removed)
                rows = rows + carried

            db.commit()

        result.rows_written = len(rows)
        logger.info(
            "History capture for %s: %d rows written (%s, %d replaced, %d accounts failed)",
            snapshot_date, result.rows_written, status.state.value,
            result.rows_replaced, len(failed),
        )
        return result

    @staticmethod
    def list_history(
        db: Session,
        start: date | None = None,
        end: date | None = None,
        account_id: str | None = None,
    ) -> list[HistorySnapshot]:
        """Return log entries in log order, optionally filtered."""
        query = db.query(HistorySnapshot)
        if start is not None:
            query = query.filter(HistorySnapshot.snapshot_date >= start)
        if end is not None:
            query = query.filter(HistorySnapshot.snapshot_date <= end)
        if account_id is not None:
            query = query.filter(HistorySnapshot.account_id == account_id)
        return query.order_by(HistorySnapshot.position, HistorySnapshot.captured_at).all()


def _copy_snapshot(entry: HistorySnapshot) -> HistorySnapshot:
    return HistorySnapshot(
        snapshot_date=entry.snapshot_date,
        account_id=entry.account_id,
        account_name=entry.account_name,
        currency=entry.currency,
        cash=entry.cash,
        holdings_value=entry.holdings_value,
        total=entry.total,
        captured_at=entry.captured_at,
    )


def _capture_day(today: date | datetime | None) -> date:
    """Local calendar day for a capture; naive datetimes are local time."""
    if today is None:
        return date.today()
    if isinstance(today, datetime):
        if today.tzinfo is None:
            return today.date()
        return today.astimezone().date()
    return today
