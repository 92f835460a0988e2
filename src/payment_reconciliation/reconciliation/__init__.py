"""Reconciliation of pending ledger transactions.

Ledger transactions that stay PENDING because the provider's confirmation
never arrived are looked up at the provider and moved to the status it
reports.

Features:
- Paginated, oldest-first processing with a per-transaction attempt ceiling
- Versioned writes so concurrent updates are never overwritten
- Per-transaction error isolation and run statistics
- Background scheduling and on-demand runs
"""

from .models import (
    TransactionOutcome,
    ErrorCategory,
    LedgerTransaction,
    ReconciliationErrorDetail,
    ReconciliationResult,
    ReconciliationStats,
)
from .store import EligiblePage, PageCursor, TransactionStore
from .status_mapper import map_provider_status, format_failure_reason
from .run_token import RunToken
from .accumulator import RunAccumulator
from .metrics import ReconciliationMetrics
from .engine import ReconciliationEngine
from .scheduler import ReconciliationScheduler
from .report import ReportGenerator

__all__ = [
    # Models
    "TransactionOutcome",
    "ErrorCategory",
    "LedgerTransaction",
    "ReconciliationErrorDetail",
    "ReconciliationResult",
    "ReconciliationStats",
    # Store contract
    "EligiblePage",
    "PageCursor",
    "TransactionStore",
    # Core Components
    "map_provider_status",
    "format_failure_reason",
    "RunToken",
    "RunAccumulator",
    "ReconciliationMetrics",
    "ReconciliationEngine",
    "ReconciliationScheduler",
    "ReportGenerator",
]
