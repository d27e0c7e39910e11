"""API route handlers."""
from . import accounts, balances, history

__all__ = ["accounts", "balances", "history"]
