"""Repository layer for transaction persistence operations."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import select, update, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..exceptions import VersionConflict
from ..reconciliation.models import LedgerTransaction
from ..reconciliation.store import EligiblePage, PageCursor, TransactionStore
from .models import Transaction, TransactionStatus

logger = logging.getLogger(__name__)


class TransactionRepository(TransactionStore):
    """SQL-backed transaction store.

    Every operation runs in its own short session and commits before
    returning, so one transaction's write never rides on another's.
    """
    
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize the repository with a session factory.
        
        Args:
            session_factory: Factory producing AsyncSession instances.
        """
        self.session_factory = session_factory
    
    async def create(
        self,
        provider_reference: str,
        amount: Decimal,
        currency: str,
        provider_name: Optional[str] = None,
        status: TransactionStatus = TransactionStatus.PENDING,
        created_at: Optional[datetime] = None,
        reconciliation_attempts: Optional[int] = 0,
        reconciled_at: Optional[datetime] = None,
    ) -> LedgerTransaction:
        """Create a new ledger transaction.
        
        Args:
            provider_reference: Provider's unique reference.
            amount: Transaction amount.
            currency: Three-letter currency code.
            provider_name: Provider the payment was made with.
            status: Initial status.
            created_at: Creation time override, used for seeding backlogs.
            reconciliation_attempts: Initial attempt counter.
            reconciled_at: Reconciliation time for already-settled rows.
        
        Returns:
            The created transaction.
        """
        now = datetime.utcnow()
        row = Transaction(
            provider_reference=provider_reference,
            amount=amount,
            currency=currency.upper(),
            provider_name=provider_name,
            status=TransactionStatus(status).value,
            reconciliation_attempts=reconciliation_attempts,
            reconciled_at=reconciled_at,
            last_error=None,
            version=0,
            created_at=created_at or now,
            updated_at=now,
        )
        async with self.session_factory() as session:
            session.add(row)
            await session.commit()
        
        logger.info(f"Created transaction {row.id} ({provider_reference}) with status {row.status}")
        return LedgerTransaction.model_validate(row)
    
    async def fetch_by_id(self, transaction_id: str) -> Optional[LedgerTransaction]:
        async with self.session_factory() as session:
            row = await session.get(Transaction, transaction_id)
            return LedgerTransaction.model_validate(row) if row else None
    
    async def fetch_by_provider_reference(self, provider_reference: str) -> Optional[LedgerTransaction]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Transaction).where(Transaction.provider_reference == provider_reference)
            )
            row = result.scalar_one_or_none()
            return LedgerTransaction.model_validate(row) if row else None
    
    async def fetch_eligible_page(
        self,
        status: TransactionStatus,
        max_attempts: int,
        page_size: int,
        after: Optional[PageCursor] = None,
        page_index: int = 0,
    ) -> EligiblePage:
        conditions = [
            Transaction.status == TransactionStatus(status).value,
            or_(
                Transaction.reconciliation_attempts.is_(None),
                Transaction.reconciliation_attempts < max_attempts,
            ),
        ]
        if after is not None:
            # Keyset on (created_at, id), matching the sort order
            conditions.append(
                or_(
                    Transaction.created_at > after.created_at,
                    and_(
                        Transaction.created_at == after.created_at,
                        Transaction.id > after.id,
                    ),
                )
            )
        
        # One extra row tells us whether another page follows.
        async with self.session_factory() as session:
            result = await session.execute(
                select(Transaction)
                .where(and_(*conditions))
                .order_by(Transaction.created_at.asc(), Transaction.id.asc())
                .limit(page_size + 1)
            )
            rows = list(result.scalars().all())
        
        has_next = len(rows) > page_size
        items = [LedgerTransaction.model_validate(r) for r in rows[:page_size]]
        return EligiblePage(items=items, page_index=page_index, has_next=has_next)
    
    async def save(
        self,
        transaction: LedgerTransaction,
        expected_version: int,
    ) -> LedgerTransaction:
        now = datetime.utcnow()
        new_version = expected_version + 1
        
        async with self.session_factory() as session:
            result = await session.execute(
                update(Transaction)
                .where(
                    and_(
                        Transaction.id == transaction.id,
                        Transaction.version == expected_version,
                    )
                )
                .values(
                    status=TransactionStatus(transaction.status).value,
                    reconciled_at=transaction.reconciled_at,
                    reconciliation_attempts=transaction.reconciliation_attempts,
                    last_error=transaction.last_error[:500] if transaction.last_error else None,
                    version=new_version,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            
            if result.rowcount != 1:
                await session.rollback()
                current = await session.execute(
                    select(Transaction.version).where(Transaction.id == transaction.id)
                )
                raise VersionConflict(
                    transaction_id=transaction.id,
                    expected_version=expected_version,
                    actual_version=current.scalar_one_or_none(),
                )
            
            await session.commit()
        
        logger.debug(
            f"Saved transaction {transaction.id} at version {new_version} "
            f"(status {TransactionStatus(transaction.status).value})"
        )
        return transaction.model_copy(update={"version": new_version, "updated_at": now})
    
    async def count_by_status(self, status: TransactionStatus) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(Transaction)
                .where(Transaction.status == TransactionStatus(status).value)
            )
            return int(result.scalar_one())
    
    async def list_by_status(
        self,
        status: TransactionStatus,
        limit: int = 100,
        offset: int = 0,
    ) -> List[LedgerTransaction]:
        """List transactions by status, oldest first.
        
        Args:
            status: Status to filter by.
            limit: Maximum number of results.
            offset: Offset for pagination.
        
        Returns:
            List of transactions.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                select(Transaction)
                .where(Transaction.status == TransactionStatus(status).value)
                .order_by(Transaction.created_at.asc(), Transaction.id.asc())
                .limit(limit)
                .offset(offset)
            )
            return [LedgerTransaction.model_validate(r) for r in result.scalars().all()]
    
    async def list_needing_review(
        self,
        status: TransactionStatus,
        min_attempts: int,
    ) -> List[LedgerTransaction]:
        """List transactions whose attempt counter reached ``min_attempts``.
        
        These are no longer picked up by automatic runs and are left for
        manual review.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                select(Transaction)
                .where(
                    and_(
                        Transaction.status == TransactionStatus(status).value,
                        Transaction.reconciliation_attempts >= min_attempts,
                    )
                )
                .order_by(Transaction.created_at.asc())
            )
            return [LedgerTransaction.model_validate(r) for r in result.scalars().all()]
