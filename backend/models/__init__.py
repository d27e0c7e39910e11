"""SQLAlchemy ORM models."""

from .history_snapshot import HistorySnapshot

__all__ = ["HistorySnapshot"]
