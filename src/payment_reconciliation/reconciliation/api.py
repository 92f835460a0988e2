"""API endpoints for reconciliation operations."""

import logging
import secrets
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..config import DEFAULT_RUN_RATE_LIMIT
from ..database.models import TransactionStatus
from ..exceptions import RunAlreadyInProgress
from .engine import ReconciliationEngine
from .models import LedgerTransaction, ReconciliationStats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])
bearer = HTTPBearer()
limiter = Limiter(key_func=get_remote_address)

_run_rate_limit = DEFAULT_RUN_RATE_LIMIT


def configure_run_rate_limit(limit: str) -> None:
    """Set the per-client limit applied to manual run triggers."""
    global _run_rate_limit
    _run_rate_limit = limit


def _current_run_rate_limit() -> str:
    return _run_rate_limit


def get_engine(request: Request) -> ReconciliationEngine:
    """Dependency returning the process-wide engine wired at startup."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Reconciliation engine not initialized")
    return engine


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials = Security(bearer),
    engine: ReconciliationEngine = Depends(get_engine),
) -> str:
    """Check the bearer token against the key configured on the engine."""
    expected_key = engine.config.api_key
    if not expected_key:
        logger.error("No API key configured; rejecting reconciliation request")
        raise HTTPException(status_code=500, detail="Server configuration error")
    if not secrets.compare_digest(credentials.credentials.encode(), expected_key.encode()):
        raise HTTPException(status_code=401, detail="Invalid API key")
    return credentials.credentials


@router.post("/run")
@limiter.limit(_current_run_rate_limit)
async def trigger_reconciliation(
    request: Request,
    engine: ReconciliationEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
):
    """
    Trigger a manual reconciliation run.
    
    Useful for recovery after outages or on-demand reconciliation before
    end-of-day processing. Returns 409 if a run is already in progress.
    """
    logger.info("Manual reconciliation triggered via API")
    try:
        result = await engine.run_reconciliation()
    except RunAlreadyInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    return result.to_full_dict()


@router.get("/stats", response_model=ReconciliationStats)
async def get_stats(
    engine: ReconciliationEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
):
    """Current pending, completed, failed and refunded counts plus run state."""
    return await engine.get_stats()


@router.get("/transactions/pending", response_model=List[LedgerTransaction])
async def get_pending_transactions(
    page: int = Query(default=0, ge=0, description="Page number (0-indexed)"),
    size: int = Query(default=20, ge=1, le=500, description="Page size"),
    engine: ReconciliationEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
):
    """Paginated list of transactions in PENDING status, oldest first."""
    return await engine.store.list_by_status(
        TransactionStatus.PENDING,
        limit=size,
        offset=page * size,
    )


@router.get("/transactions/needs-review", response_model=List[LedgerTransaction])
async def get_transactions_needing_review(
    min_attempts: Optional[int] = Query(
        default=None, ge=1, description="Minimum reconciliation attempts threshold"
    ),
    engine: ReconciliationEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
):
    """
    PENDING transactions that exhausted their reconciliation attempts.
    
    Automatic runs no longer pick these up; they need manual review.
    Defaults to the engine's configured attempt ceiling.
    """
    threshold = min_attempts or engine.config.max_attempts
    return await engine.store.list_needing_review(TransactionStatus.PENDING, threshold)


@router.get("/transactions/{transaction_id}", response_model=LedgerTransaction)
async def get_transaction(
    transaction_id: str,
    engine: ReconciliationEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
):
    """Single transaction by its internal ID."""
    transaction = await engine.store.fetch_by_id(transaction_id)
    if transaction is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return transaction


@router.get("/health")
async def reconciliation_health(engine: ReconciliationEngine = Depends(get_engine)):
    """Health check endpoint for reconciliation service."""
    stats = await engine.get_stats()
    return {
        "status": "UP",
        "service": "reconciliation",
        "provider": {
            "name": engine.provider.provider_name,
            "available": engine.provider.is_available(),
        },
        "reconciliation": {
            "is_running": stats.is_running,
            "pending_transactions": stats.pending_count,
            "completed_transactions": stats.completed_count,
            "failed_transactions": stats.failed_count,
        },
    }
