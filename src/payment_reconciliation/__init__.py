# payment_reconciliation package
__version__ = "0.1.0"

from .database import (
    Transaction,
    TransactionStatus,
    DatabaseManager,
    TransactionRepository,
)
from .exceptions import (
    ReconciliationError,
    RunAlreadyInProgress,
    ProviderFault,
    VersionConflict,
)
from .config import ReconciliationConfig

from .reconciliation import (
    ReconciliationEngine,
    ReconciliationResult,
    ReconciliationScheduler,
    ReconciliationStats,
    ReportGenerator,
    TransactionOutcome,
)
from .providers import get_provider_gateway
