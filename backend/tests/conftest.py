"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.helpers import get_balance_service, get_history_service, get_snaptrade_client
from database import Base, get_db
from main import app
from services.balance_service import BalanceService
from services.history_service import HistoryService
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import history_rows  # noqa: F401
from tests.fixtures.mocks import (
    SAMPLE_ACCOUNTS,
    SAMPLE_HOLDINGS_A,
    SAMPLE_HOLDINGS_B,
    MockDataSource,
    MockSnapTradeClient,
)


@pytest.fixture(name="db")
def db_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="mock_data_source")
def mock_data_source_fixture():
    """Data source with payloads for accounts A and B; C always fails."""
    return MockDataSource(
        payloads={"acc_a": SAMPLE_HOLDINGS_A, "acc_b": SAMPLE_HOLDINGS_B},
        failing={"acc_c"},
    )


@pytest.fixture(name="mock_snaptrade_client")
def mock_snaptrade_client_fixture():
    """Mock client listing the three sample accounts."""
    return MockSnapTradeClient(accounts=SAMPLE_ACCOUNTS)


def _install_overrides(db, snaptrade_client, data_source):
    def override_get_db():
        try:
            yield db
        finally:
            pass

    balance_service = BalanceService(data_source=data_source)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_snaptrade_client] = lambda: snaptrade_client
    app.dependency_overrides[get_balance_service] = lambda: balance_service
    app.dependency_overrides[get_history_service] = lambda: HistoryService(
        balance_service=balance_service
    )


@pytest.fixture(name="client")
def client_fixture(db, mock_snaptrade_client, mock_data_source):
    """Create a test client with the test database and mocked provider."""
    _install_overrides(db, mock_snaptrade_client, mock_data_source)
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="client_with_failing_provider")
def client_with_failing_provider_fixture(db, mock_data_source):
    """Create a test client whose provider rejects credentials."""
    failing_client = MockSnapTradeClient(should_fail=True, failure_type="auth")
    _install_overrides(db, failing_client, mock_data_source)
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
