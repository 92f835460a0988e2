"""Shared test fixtures and configuration."""

import os
import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

# Set up test environment variables before importing modules
os.environ.setdefault("STRIPE_API_KEY", "sk_test_dummy_key_for_testing")
os.environ.setdefault("API_KEY", "test_api_key_12345")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RECONCILIATION_SCHEDULER_ENABLED", "false")

from payment_reconciliation.config import ReconciliationConfig
from payment_reconciliation.database import (
    Base,
    TransactionRepository,
    TransactionStatus,
    create_async_engine,
    get_async_session_factory,
)
from payment_reconciliation.providers import MockProviderConfig, MockProviderGateway
from payment_reconciliation.reconciliation import ReconciliationEngine


@pytest.fixture
def mock_api_key():
    """Set up mock API key for authentication."""
    with patch.dict(os.environ, {"API_KEY": "test_api_key_12345"}):
        yield "test_api_key_12345"


@pytest.fixture
def auth_headers(mock_api_key):
    """Return headers with authentication."""
    return {"Authorization": f"Bearer {mock_api_key}"}


# Database fixtures
@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(
        database_url="sqlite+aiosqlite:///:memory:",
        echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return get_async_session_factory(db_engine)


@pytest.fixture
async def db_session(session_factory):
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def repository(session_factory):
    return TransactionRepository(session_factory)


@pytest.fixture
def mock_provider():
    """Mock provider with the demo table, no random failures and no latency."""
    return MockProviderGateway(MockProviderConfig(failure_rate=0.0, latency_ms=0, seed=42))


@pytest.fixture
def config():
    return ReconciliationConfig(batch_size=100, max_attempts=5)


@pytest.fixture
def engine(repository, mock_provider, config):
    return ReconciliationEngine(repository, mock_provider, config)


@pytest.fixture
def create_transaction(repository):
    """Factory inserting ledger transactions with increasing creation times."""
    base_time = datetime.utcnow() - timedelta(days=1)
    counter = {"n": 0}
    
    async def _create(
        provider_reference: str,
        status: TransactionStatus = TransactionStatus.PENDING,
        amount: str = "100.00",
        currency: str = "USD",
        reconciliation_attempts=0,
        created_at=None,
    ):
        counter["n"] += 1
        return await repository.create(
            provider_reference=provider_reference,
            amount=Decimal(amount),
            currency=currency,
            provider_name="MockProvider",
            status=status,
            created_at=created_at or base_time + timedelta(minutes=counter["n"]),
            reconciliation_attempts=reconciliation_attempts,
        )
    
    return _create
