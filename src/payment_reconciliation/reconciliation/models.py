"""Models for transaction reconciliation runs."""

import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, ConfigDict, Field

from ..database.models import TransactionStatus


class TransactionOutcome(str, enum.Enum):
    """What a single successful reconciliation attempt did to a transaction."""
    UPDATED_TO_COMPLETED = "updated_to_completed"
    UPDATED_TO_FAILED = "updated_to_failed"
    UPDATED_TO_REFUNDED = "updated_to_refunded"
    STILL_PENDING = "still_pending"


class ErrorCategory(str, enum.Enum):
    """Classification of per-transaction faults recorded in a run result."""
    PROVIDER_ERROR = "provider_error"
    VERSION_CONFLICT = "version_conflict"
    UNEXPECTED_ERROR = "unexpected_error"


class LedgerTransaction(BaseModel):
    """A ledger transaction as seen by the reconciliation engine.

    Detached from any database session; the engine mutates copies and
    writes them back through ``TransactionStore.save``.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Internal transaction ID")
    provider_reference: str = Field(..., description="Provider's transaction reference")
    status: TransactionStatus = Field(default=TransactionStatus.PENDING)
    amount: Optional[Decimal] = Field(None, description="Transaction amount")
    currency: Optional[str] = Field(None, description="Three-letter currency code")
    provider_name: Optional[str] = Field(None, description="Provider the transaction was made with")
    created_at: Optional[datetime] = Field(None, description="Transaction creation time")
    updated_at: Optional[datetime] = Field(None, description="Last write time")
    reconciled_at: Optional[datetime] = Field(None, description="Time of the last status change by reconciliation")
    reconciliation_attempts: Optional[int] = Field(default=0, description="Reconciliation attempts so far")
    last_error: Optional[str] = Field(None, description="Most recent failure or not-found diagnostic")
    version: int = Field(default=0, description="Optimistic concurrency token")

    @property
    def attempts(self) -> int:
        """Attempt count, treating a missing counter as zero."""
        return self.reconciliation_attempts or 0


class ReconciliationErrorDetail(BaseModel):
    """A per-transaction fault recorded during a run."""
    model_config = ConfigDict(frozen=True)

    transaction_id: str
    provider_reference: str
    error_message: str
    category: ErrorCategory
    occurred_at: datetime = Field(default_factory=datetime.utcnow)


class ReconciliationResult(BaseModel):
    """Statistics for one finished reconciliation run."""
    model_config = ConfigDict(frozen=True)

    started_at: datetime
    completed_at: Optional[datetime] = None
    total_processed: int = 0
    successfully_reconciled: int = 0
    updated_to_completed: int = 0
    updated_to_failed: int = 0
    updated_to_refunded: int = 0
    still_pending: int = 0
    errors: int = 0
    pages_processed: int = 0
    page_limit_reached: bool = False
    error_details: List[ReconciliationErrorDetail] = Field(default_factory=list)

    @property
    def duration_ms(self) -> int:
        if self.completed_at is None:
            return 0
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    @property
    def error_rate(self) -> float:
        if self.total_processed == 0:
            return 0.0
        return self.errors / self.total_processed

    def to_summary_dict(self) -> Dict[str, Any]:
        """Return the run statistics without per-transaction error details."""
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "statistics": {
                "total_processed": self.total_processed,
                "successfully_reconciled": self.successfully_reconciled,
                "updated_to_completed": self.updated_to_completed,
                "updated_to_failed": self.updated_to_failed,
                "updated_to_refunded": self.updated_to_refunded,
                "still_pending": self.still_pending,
                "errors": self.errors,
            },
            "pages_processed": self.pages_processed,
            "page_limit_reached": self.page_limit_reached,
        }

    def to_full_dict(self) -> Dict[str, Any]:
        """Return the summary plus every recorded error."""
        result = self.to_summary_dict()
        result["error_details"] = [e.model_dump(mode="json") for e in self.error_details]
        return result


class ReconciliationStats(BaseModel):
    """Point-in-time ledger counts plus whether a run is executing."""
    pending_count: int
    completed_count: int
    failed_count: int
    refunded_count: int
    is_running: bool
