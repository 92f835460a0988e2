"""Tests for database models and the transaction repository."""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import select

from payment_reconciliation.database import (
    DatabaseManager,
    Transaction,
    TransactionStatus,
    get_database_url,
)
from payment_reconciliation.exceptions import VersionConflict


class TestTransactionModel:
    """Tests for the Transaction model."""
    
    async def test_create_transaction_defaults(self, db_session):
        txn = Transaction(
            amount=Decimal("100.00"),
            currency="USD",
            provider_reference="PROV-001",
        )
        db_session.add(txn)
        await db_session.flush()
        
        assert txn.id is not None
        assert txn.status == "pending"
        assert txn.version == 0
        assert txn.reconciliation_attempts == 0
        assert txn.created_at is not None
        assert txn.updated_at is not None
    
    async def test_to_dict(self, db_session):
        txn = Transaction(
            amount=Decimal("250.50"),
            currency="EUR",
            provider_reference="PROV-002",
            provider_name="MockProvider",
            reconciled_at=None,
            last_error=None,
        )
        db_session.add(txn)
        await db_session.flush()
        
        data = txn.to_dict()
        
        assert data["provider_reference"] == "PROV-002"
        assert data["status"] == "pending"
        assert data["reconciled_at"] is None
        assert data["version"] == 0


class TestDatabaseUrl:
    """Tests for database URL resolution."""
    
    def test_postgres_urls_use_asyncpg(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgres://user:pw@localhost/ledger")
        assert get_database_url() == "postgresql+asyncpg://user:pw@localhost/ledger"
        
        monkeypatch.setenv("DATABASE_URL", "postgresql://user:pw@localhost/ledger")
        assert get_database_url() == "postgresql+asyncpg://user:pw@localhost/ledger"
    
    def test_default_is_sqlite(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        assert get_database_url().startswith("sqlite+aiosqlite")


class TestDatabaseManager:
    """Tests for explicit database lifecycle."""
    
    def test_session_factory_requires_initialize(self):
        manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
        with pytest.raises(RuntimeError):
            manager.session_factory
    
    async def test_initialize_creates_schema(self):
        manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
        await manager.initialize()
        try:
            async with manager.session() as session:
                result = await session.execute(select(Transaction))
                assert result.scalars().all() == []
        finally:
            await manager.shutdown()


class TestTransactionRepository:
    """Tests for TransactionRepository."""
    
    async def test_create_and_fetch(self, repository):
        created = await repository.create(
            provider_reference="PROV-001",
            amount=Decimal("100.00"),
            currency="usd",
            provider_name="MockProvider",
        )
        
        assert created.currency == "USD"
        assert created.version == 0
        fetched = await repository.fetch_by_id(created.id)
        assert fetched.provider_reference == "PROV-001"
        assert fetched.status == TransactionStatus.PENDING
        by_reference = await repository.fetch_by_provider_reference("PROV-001")
        assert by_reference.id == created.id
    
    async def test_fetch_missing_returns_none(self, repository):
        assert await repository.fetch_by_id("does-not-exist") is None
        assert await repository.fetch_by_provider_reference("PROV-404") is None
    
    async def test_save_bumps_version(self, repository, create_transaction):
        txn = await create_transaction("PROV-001")
        
        saved = await repository.save(
            txn.model_copy(update={
                "status": TransactionStatus.COMPLETED,
                "reconciliation_attempts": 1,
            }),
            expected_version=0,
        )
        
        assert saved.version == 1
        stored = await repository.fetch_by_id(txn.id)
        assert stored.status == TransactionStatus.COMPLETED
        assert stored.reconciliation_attempts == 1
        assert stored.version == 1
    
    async def test_stale_save_raises_version_conflict(self, repository, create_transaction):
        txn = await create_transaction("PROV-001")
        await repository.save(txn.model_copy(update={"last_error": "first"}), expected_version=0)
        
        with pytest.raises(VersionConflict) as exc_info:
            await repository.save(txn.model_copy(update={"last_error": "second"}), expected_version=0)
        
        assert exc_info.value.expected_version == 0
        assert exc_info.value.actual_version == 1
        stored = await repository.fetch_by_id(txn.id)
        assert stored.last_error == "first"
        assert stored.version == 1
    
    async def test_save_of_deleted_row_raises_version_conflict(self, repository, create_transaction):
        txn = await create_transaction("PROV-001")
        ghost = txn.model_copy(update={"id": "missing-id"})
        
        with pytest.raises(VersionConflict) as exc_info:
            await repository.save(ghost, expected_version=0)
        
        assert exc_info.value.actual_version is None
        assert "no longer exists" in str(exc_info.value)
    
    async def test_save_truncates_long_error(self, repository, create_transaction):
        txn = await create_transaction("PROV-001")
        
        await repository.save(txn.model_copy(update={"last_error": "x" * 800}), expected_version=0)
        
        stored = await repository.fetch_by_id(txn.id)
        assert len(stored.last_error) == 500
    
    async def test_eligible_page_orders_oldest_first(self, repository, create_transaction):
        now = datetime.utcnow()
        newest = await create_transaction("PROV-001", created_at=now - timedelta(hours=1))
        oldest = await create_transaction("PROV-002", created_at=now - timedelta(hours=3))
        middle = await create_transaction("PROV-003", created_at=now - timedelta(hours=2))
        
        page = await repository.fetch_eligible_page(
            TransactionStatus.PENDING, max_attempts=5, page_index=0, page_size=10
        )
        
        assert [t.id for t in page.items] == [oldest.id, middle.id, newest.id]
        assert page.has_next is False
        assert page.page_index == 0
    
    async def test_eligible_page_reports_next_page(self, repository, create_transaction):
        for i in range(3):
            await create_transaction(f"PROV-00{i + 1}")
        
        first = await repository.fetch_eligible_page(
            TransactionStatus.PENDING, max_attempts=5, page_index=0, page_size=2
        )
        second = await repository.fetch_eligible_page(
            TransactionStatus.PENDING, max_attempts=5, page_size=2,
            after=first.last_key, page_index=1,
        )
        
        assert len(first.items) == 2
        assert first.has_next is True
        assert len(second.items) == 1
        assert second.has_next is False
    
    async def test_next_page_keeps_rows_after_earlier_ones_complete(
        self, repository, create_transaction
    ):
        created = [await create_transaction(f"PROV-00{i + 1}") for i in range(5)]
        
        first = await repository.fetch_eligible_page(
            TransactionStatus.PENDING, max_attempts=5, page_size=2
        )
        for txn in first.items:
            done = txn.model_copy(update={"status": TransactionStatus.COMPLETED})
            await repository.save(done, expected_version=txn.version)
        second = await repository.fetch_eligible_page(
            TransactionStatus.PENDING, max_attempts=5, page_size=2,
            after=first.last_key, page_index=1,
        )
        
        assert [t.id for t in first.items] == [created[0].id, created[1].id]
        assert [t.id for t in second.items] == [created[2].id, created[3].id]
        assert second.has_next is True
    
    async def test_eligible_page_filters_status_and_attempts(self, repository, create_transaction):
        unset = await create_transaction("PROV-001", reconciliation_attempts=None)
        below = await create_transaction("PROV-002", reconciliation_attempts=2)
        await create_transaction("PROV-003", reconciliation_attempts=3)
        await create_transaction("PROV-004", status=TransactionStatus.COMPLETED)
        
        page = await repository.fetch_eligible_page(
            TransactionStatus.PENDING, max_attempts=3, page_index=0, page_size=10
        )
        
        assert {t.id for t in page.items} == {unset.id, below.id}
    
    async def test_count_by_status(self, repository, create_transaction):
        await create_transaction("PROV-001")
        await create_transaction("PROV-002")
        await create_transaction("PROV-100", status=TransactionStatus.COMPLETED)
        
        assert await repository.count_by_status(TransactionStatus.PENDING) == 2
        assert await repository.count_by_status(TransactionStatus.COMPLETED) == 1
        assert await repository.count_by_status(TransactionStatus.REFUNDED) == 0
    
    async def test_list_by_status_paginates(self, repository, create_transaction):
        for i in range(5):
            await create_transaction(f"PROV-00{i + 1}")
        
        first = await repository.list_by_status(TransactionStatus.PENDING, limit=2, offset=0)
        last = await repository.list_by_status(TransactionStatus.PENDING, limit=2, offset=4)
        
        assert [t.provider_reference for t in first] == ["PROV-001", "PROV-002"]
        assert [t.provider_reference for t in last] == ["PROV-005"]
    
    async def test_list_needing_review(self, repository, create_transaction):
        stuck = await create_transaction("PROV-001", reconciliation_attempts=5)
        await create_transaction("PROV-002", reconciliation_attempts=1)
        await create_transaction(
            "PROV-003", status=TransactionStatus.FAILED, reconciliation_attempts=7
        )
        
        review = await repository.list_needing_review(TransactionStatus.PENDING, min_attempts=5)
        
        assert [t.id for t in review] == [stuck.id]
