#!/usr/bin/env python3
"""
Setup and maintenance commands for the SnapTrade integration.

Usage:
    1. Get API credentials from https://snaptrade.com
    2. Set SNAPTRADE_CLIENT_ID and SNAPTRADE_CONSUMER_KEY in .env
    3. Run: python -m scripts.setup_snaptrade register
    4. Add the generated SNAPTRADE_USER_SECRET to .env (or the keychain)
    5. Run: python -m scripts.setup_snaptrade connect
    6. Open the URL in a browser to connect your brokerage(s)
    7. Run: python -m scripts.setup_snaptrade list     (to see accounts)
    8. Run: python -m scripts.setup_snaptrade capture  (daily history snapshot)
    9. Run: python -m scripts.setup_snaptrade activities --start 2024-01-01
"""

import argparse
import os
import sys
from datetime import date

# Add backend to path so we can import from there
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv

load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))

from database import get_session_local, init_db  # noqa: E402
from integrations.batch_fetcher import BatchFetcher  # noqa: E402
from integrations.exceptions import ProviderError  # noqa: E402
from integrations.snaptrade_client import SnapTradeClient  # noqa: E402
from logging_config import setup_logging  # noqa: E402
from services.balance_service import BalanceService  # noqa: E402
from services.credential_manager import set_credential  # noqa: E402
from services.history_service import HistoryService  # noqa: E402


def _offer_keychain_store(credentials: dict[str, str]) -> None:
    """Prompt the user to store credentials in the system keychain."""
    answer = input("\nStore these credentials in the keychain? [Y/n] ").strip().lower()
    if answer in ("", "y", "yes"):
        for key, value in credentials.items():
            if set_credential(key, value):
                print(f"  Stored {key} in keychain")
            else:
                print(f"  Failed to store {key}")
    else:
        print("  Skipped keychain storage.")


def register_user(client: SnapTradeClient, user_id: str) -> int:
    """Register a new SnapTrade user and print the user secret."""
    print(f"Registering user: {user_id}")
    try:
        result = client.register_user(user_id)
    except ProviderError as e:
        print(f"Error registering user: {e}")
        return 1

    print("\n" + "=" * 60)
    print("SUCCESS! Add this to your backend/.env file:")
    print("=" * 60)
    print(f"SNAPTRADE_USER_ID={result['userId']}")
    print(f"SNAPTRADE_USER_SECRET={result['userSecret']}")
    print("=" * 60 + "\n")
    _offer_keychain_store(
        {"SNAPTRADE_USER_ID": result["userId"], "SNAPTRADE_USER_SECRET": result["userSecret"]}
    )
    return 0


def generate_connect_url(client: SnapTradeClient, broker: str | None) -> int:
    """Print a connection-portal URL for linking a brokerage."""
    try:
        url = client.get_login_url(broker=broker)
    except ProviderError as e:
        print(f"Error generating connect URL: {e}")
        return 1

    print("\n" + "=" * 60)
    print("Open this URL in your browser to connect a brokerage:")
    print("=" * 60)
    print(url)
    print("=" * 60 + "\n")
    return 0


def list_accounts(client: SnapTradeClient) -> int:
    """Print the linked accounts."""
    try:
        accounts = client.list_accounts()
    except ProviderError as e:
        print(f"Error listing accounts: {e}")
        return 1

    print("\n" + "=" * 60)
    print(f"Found {len(accounts)} account(s):")
    print("=" * 60)
    for account in accounts:
        print(f"  {account.name} ({account.institution})")
        print(f"    ID:     {account.id}")
        print(f"    Status: {account.sync_state}")
    print("=" * 60 + "\n")
    return 0


def list_activities(
    client: SnapTradeClient,
    start_date: date | None = None,
    end_date: date | None = None,
    account_ids: list[str] | None = None,
) -> int:
    """Print account activities (trades, dividends, transfers) in a date range."""
    try:
        activities = client.get_activities(start_date, end_date, account_ids)
    except ProviderError as e:
        print(f"Error fetching activities: {e}")
        return 1

    print("\n" + "=" * 60)
    print(f"Found {len(activities)} activity record(s):")
    print("=" * 60)
    for activity in activities:
        line = f"  {activity.activity_date.date()}  {activity.type:<12} {activity.account_id}"
        if activity.ticker:
            line += f"  {activity.ticker}"
        if activity.units is not None:
            line += f"  {activity.units} units"
        if activity.amount is not None:
            line += f"  {activity.amount} {activity.currency}"
        print(line)
    print("=" * 60 + "\n")
    return 0


def capture_history(client: SnapTradeClient) -> int:
    """Capture today's balances into the history log."""
    init_db()
    db = get_session_local()()
    try:
        accounts = client.list_accounts()
        history = HistoryService(BalanceService(BatchFetcher(client)))
        result = history.capture(db, accounts)
    except ProviderError as e:
        print(f"Error capturing history: {e}")
        return 1
    finally:
        db.close()

    print(
        f"Captured {result.rows_written} row(s) for {result.snapshot_date} "
        f"({result.state.value}, {result.rows_replaced} replaced)"
    )
    if result.failed_account_ids:
        print(f"Accounts that could not be refreshed: {', '.join(result.failed_account_ids)}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="SnapTrade setup utility")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    register_parser = subparsers.add_parser("register", help="Register a new SnapTrade user")
    register_parser.add_argument(
        "--user-id",
        default="ledger-user",
        help="User ID for the SnapTrade user (default: ledger-user)",
    )

    connect_parser = subparsers.add_parser("connect", help="Generate URL to connect a brokerage")
    connect_parser.add_argument("--broker", default=None, help="Preselect a brokerage slug")

    subparsers.add_parser("list", help="List linked accounts")
    subparsers.add_parser("capture", help="Capture today's balances into the history log")

    activities_parser = subparsers.add_parser("activities", help="List account activities")
    activities_parser.add_argument(
        "--start", type=date.fromisoformat, default=None, help="Start date, YYYY-MM-DD (default: 90 days ago)"
    )
    activities_parser.add_argument(
        "--end", type=date.fromisoformat, default=None, help="End date, YYYY-MM-DD (default: today)"
    )
    activities_parser.add_argument(
        "--account", dest="accounts", action="append", default=None, help="Account ID (repeatable)"
    )

    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        return 0

    setup_logging()
    with SnapTradeClient() as client:
        if args.command == "register":
            return register_user(client, args.user_id)
        if args.command == "connect":
            return generate_connect_url(client, args.broker)
        if args.command == "list":
            return list_accounts(client)
        if args.command == "activities":
            return list_activities(client, args.start, args.end, args.accounts)
        return capture_history(client)


if __name__ == "__main__":
    sys.exit(main())
