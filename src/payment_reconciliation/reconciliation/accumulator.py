"""Incremental tally of a reconciliation run."""

from datetime import datetime
from typing import List, Optional

from .models import (
    ErrorCategory,
    LedgerTransaction,
    ReconciliationErrorDetail,
    ReconciliationResult,
    TransactionOutcome,
)


class RunAccumulator:
    """Append-only counters for one run.

    Owned by the engine while the run executes; ``snapshot`` hands out an
    immutable ``ReconciliationResult``. Each processed transaction must be
    recorded exactly once, either through ``record_outcome`` or
    ``record_error``.
    """

    def __init__(self, started_at: Optional[datetime] = None):
        self.started_at = started_at or datetime.utcnow()
        self.total_processed = 0
        self.updated_to_completed = 0
        self.updated_to_failed = 0
        self.updated_to_refunded = 0
        self.still_pending = 0
        self.pages_processed = 0
        self.page_limit_reached = False
        self._errors: List[ReconciliationErrorDetail] = []

    @property
    def errors(self) -> int:
        return len(self._errors)

    @property
    def successfully_reconciled(self) -> int:
        return self.updated_to_completed + self.updated_to_failed + self.updated_to_refunded

    def record_page(self) -> None:
        self.pages_processed += 1

    def record_outcome(self, outcome: TransactionOutcome) -> None:
        self.total_processed += 1
        if outcome == TransactionOutcome.UPDATED_TO_COMPLETED:
            self.updated_to_completed += 1
        elif outcome == TransactionOutcome.UPDATED_TO_FAILED:
            self.updated_to_failed += 1
        elif outcome == TransactionOutcome.UPDATED_TO_REFUNDED:
            self.updated_to_refunded += 1
        else:
            self.still_pending += 1

    def record_error(
        self,
        transaction: LedgerTransaction,
        message: str,
        category: ErrorCategory,
    ) -> None:
        self.total_processed += 1
        self._errors.append(ReconciliationErrorDetail(
            transaction_id=transaction.id,
            provider_reference=transaction.provider_reference,
            error_message=message,
            category=category,
            occurred_at=datetime.utcnow(),
        ))

    def snapshot(self, completed_at: Optional[datetime] = None) -> ReconciliationResult:
        return ReconciliationResult(
            started_at=self.started_at,
            completed_at=completed_at,
            total_processed=self.total_processed,
            successfully_reconciled=self.successfully_reconciled,
            updated_to_completed=self.updated_to_completed,
            updated_to_failed=self.updated_to_failed,
            updated_to_refunded=self.updated_to_refunded,
            still_pending=self.still_pending,
            errors=self.errors,
            pages_processed=self.pages_processed,
            page_limit_reached=self.page_limit_reached,
            error_details=list(self._errors),
        )
