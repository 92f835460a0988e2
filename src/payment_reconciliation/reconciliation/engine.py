"""Reconciliation engine: converges pending ledger transactions to the
status reported by the payment provider."""

import logging
from datetime import datetime
from typing import Optional

from ..config import MAX_PAGES, ReconciliationConfig
from ..database.models import TransactionStatus
from ..exceptions import ProviderFault, RunAlreadyInProgress, VersionConflict
from ..providers.base import ProviderGateway, ProviderStatus
from .accumulator import RunAccumulator
from .metrics import ReconciliationMetrics
from .models import (
    ErrorCategory,
    LedgerTransaction,
    ReconciliationResult,
    ReconciliationStats,
    TransactionOutcome,
)
from .run_token import RunToken
from .status_mapper import format_failure_reason, map_provider_status
from .store import TransactionStore

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Transaction not found at provider"

_OUTCOMES = {
    TransactionStatus.COMPLETED: TransactionOutcome.UPDATED_TO_COMPLETED,
    TransactionStatus.FAILED: TransactionOutcome.UPDATED_TO_FAILED,
    TransactionStatus.REFUNDED: TransactionOutcome.UPDATED_TO_REFUNDED,
}


class ReconciliationEngine:
    """Pages through eligible PENDING transactions and reconciles each one.

    Guarantees:
    - at most one run executes at a time per engine instance;
    - a failure on one transaction is recorded and never stops the batch;
    - every write is a versioned compare-and-swap through the store.

    Only failing to start (``RunAlreadyInProgress``) and failing to read a
    page from the store escape ``run_reconciliation``.
    """
    
    def __init__(
        self,
        store: TransactionStore,
        provider: ProviderGateway,
        config: Optional[ReconciliationConfig] = None,
        max_pages: int = MAX_PAGES,
        metrics: Optional[ReconciliationMetrics] = None,
    ):
        """Initialize the engine.
        
        Args:
            store: Transaction store to read pages from and write updates to.
            provider: Gateway to the payment provider.
            config: Batch size and attempt ceiling. Defaults to ReconciliationConfig().
            max_pages: Page-count ceiling for a single run.
            metrics: Prometheus counters and run timer. A private registry is
                created when omitted.
        """
        self.store = store
        self.provider = provider
        self.config = config or ReconciliationConfig()
        self.max_pages = max_pages
        self.metrics = metrics or ReconciliationMetrics()
        self._run_token = RunToken()
    
    @property
    def is_running(self) -> bool:
        return self._run_token.is_held
    
    async def run_reconciliation(self) -> ReconciliationResult:
        """Reconcile all eligible pending transactions.
        
        Returns:
            ReconciliationResult for the finished run.
        
        Raises:
            RunAlreadyInProgress: If another run is executing.
        """
        if not self._run_token.try_acquire():
            logger.warning("Reconciliation already in progress, skipping this run")
            raise RunAlreadyInProgress()
        
        try:
            accumulator = RunAccumulator(started_at=datetime.utcnow())
            logger.info(
                f"Starting reconciliation of pending transactions "
                f"(batch size {self.config.batch_size}, max attempts {self.config.max_attempts})"
            )
            
            with self.metrics.duration.time():
                await self._process_all_pending(accumulator)
            result = accumulator.snapshot(completed_at=datetime.utcnow())
            
            logger.info(
                f"Reconciliation completed in {result.duration_ms}ms. "
                f"Processed: {result.total_processed}, "
                f"Updated to COMPLETED: {result.updated_to_completed}, "
                f"Updated to FAILED: {result.updated_to_failed}, "
                f"Updated to REFUNDED: {result.updated_to_refunded}, "
                f"Still pending: {result.still_pending}, "
                f"Errors: {result.errors}"
            )
            return result
        finally:
            self._run_token.release()
    
    async def _process_all_pending(self, accumulator: RunAccumulator) -> None:
        page_index = 0
        cursor = None
        
        while True:
            page = await self.store.fetch_eligible_page(
                status=TransactionStatus.PENDING,
                max_attempts=self.config.max_attempts,
                page_size=self.config.batch_size,
                after=cursor,
                page_index=page_index,
            )
            logger.debug(f"Processing page {page_index} with {len(page.items)} transactions")
            
            for transaction in page.items:
                await self._process_transaction(transaction, accumulator)
            
            accumulator.record_page()
            page_index += 1
            cursor = page.last_key
            
            if not page.has_next:
                break
            
            if page_index >= self.max_pages:
                logger.warning(
                    f"Reached maximum page limit ({self.max_pages}), stopping reconciliation"
                )
                accumulator.page_limit_reached = True
                break
    
    async def _process_transaction(
        self,
        transaction: LedgerTransaction,
        accumulator: RunAccumulator,
    ) -> None:
        self.metrics.transactions.inc()
        try:
            outcome = await self.reconcile_transaction(transaction)
        except ProviderFault as e:
            self.metrics.provider_errors.inc()
            logger.warning(f"Provider API error for transaction {transaction.id}: {e.message}")
            accumulator.record_error(transaction, e.message, ErrorCategory.PROVIDER_ERROR)
            await self._save_error_state(transaction, e.message)
        except VersionConflict as e:
            self.metrics.failure.inc()
            message = f"Version conflict: {e}"
            logger.warning(f"Skipping transaction {transaction.id}: {message}")
            accumulator.record_error(transaction, message, ErrorCategory.VERSION_CONFLICT)
        except Exception as e:
            self.metrics.failure.inc()
            message = f"Unexpected error: {e}"
            logger.error(
                f"Unexpected error reconciling transaction {transaction.id}: {e}",
                exc_info=True,
            )
            accumulator.record_error(transaction, message, ErrorCategory.UNEXPECTED_ERROR)
            await self._save_error_state(transaction, message)
        else:
            if outcome != TransactionOutcome.STILL_PENDING:
                self.metrics.success.inc()
            accumulator.record_outcome(outcome)
    
    async def reconcile_transaction(self, transaction: LedgerTransaction) -> TransactionOutcome:
        """Reconcile a single transaction against the provider.
        
        The attempt counter is always incremented. Status, reconciled_at and
        the failure reason only change when the provider reports a different
        terminal status, so repeating the call against an unchanged provider
        response only moves the counter.
        
        Args:
            transaction: Transaction as read from the store. Not mutated.
        
        Returns:
            TransactionOutcome describing what changed.
        
        Raises:
            ProviderFault: If the provider lookup failed.
            VersionConflict: If the record changed since it was read.
        """
        logger.debug(
            f"Reconciling transaction {transaction.id} with provider reference "
            f"{transaction.provider_reference}"
        )
        
        working = transaction.model_copy()
        working.reconciliation_attempts = transaction.attempts + 1
        
        snapshot = await self.provider.get_status(transaction.provider_reference)
        new_status = map_provider_status(snapshot.status, transaction.status)
        
        if new_status is not None:
            logger.info(
                f"Updating transaction {transaction.id} from {transaction.status.value} "
                f"to {new_status.value} based on provider status {snapshot.status.value}"
            )
            working.status = new_status
            working.reconciled_at = datetime.utcnow()
            if new_status == TransactionStatus.FAILED:
                working.last_error = format_failure_reason(
                    snapshot.error_code, snapshot.error_message
                )
        elif snapshot.status == ProviderStatus.PROCESSING:
            logger.debug(f"Transaction {transaction.id} still processing at provider")
        elif snapshot.status == ProviderStatus.NOT_FOUND:
            logger.warning(
                f"Transaction {transaction.id} not found at provider. "
                f"Reference: {transaction.provider_reference}"
            )
            working.last_error = NOT_FOUND_MESSAGE
        
        await self.store.save(working, expected_version=transaction.version)
        
        if new_status is None:
            return TransactionOutcome.STILL_PENDING
        return _OUTCOMES.get(new_status, TransactionOutcome.STILL_PENDING)
    
    async def _save_error_state(self, transaction: LedgerTransaction, message: str) -> None:
        """Best-effort write of the attempt and error after a failed reconciliation."""
        degraded = transaction.model_copy(update={
            "reconciliation_attempts": transaction.attempts + 1,
            "last_error": message,
        })
        try:
            await self.store.save(degraded, expected_version=transaction.version)
        except Exception:
            logger.error(
                f"Failed to save error state for transaction {transaction.id}",
                exc_info=True,
            )
    
    async def get_stats(self) -> ReconciliationStats:
        """Current ledger counts by status, read fresh from the store."""
        return ReconciliationStats(
            pending_count=await self.store.count_by_status(TransactionStatus.PENDING),
            completed_count=await self.store.count_by_status(TransactionStatus.COMPLETED),
            failed_count=await self.store.count_by_status(TransactionStatus.FAILED),
            refunded_count=await self.store.count_by_status(TransactionStatus.REFUNDED),
            is_running=self.is_running,
        )
