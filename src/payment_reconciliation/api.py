"""FastAPI application exposing the reconciliation trigger surface."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Response
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import ReconciliationConfig
from .database import DatabaseManager, TransactionRepository
from .providers import get_provider_gateway
from .reconciliation.api import configure_run_rate_limit, limiter
from .reconciliation.api import router as reconciliation_router
from .reconciliation.engine import ReconciliationEngine
from .reconciliation.metrics import CONTENT_TYPE_LATEST
from .reconciliation.scheduler import ReconciliationScheduler

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[ReconciliationConfig] = None,
    database_url: Optional[str] = None,
) -> FastAPI:
    """Build the application.
    
    On startup a single engine is wired for the process: database, the
    configured provider behind retry and circuit breaking, and the
    background scheduler when enabled.
    """
    config = config or ReconciliationConfig.from_env()
    
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = DatabaseManager(database_url)
        await db.initialize()
        engine = ReconciliationEngine(
            store=TransactionRepository(db.session_factory),
            provider=get_provider_gateway(config.provider, config),
            config=config,
        )
        scheduler = ReconciliationScheduler(
            engine,
            interval_seconds=config.scheduler_interval_seconds,
            enabled=config.scheduler_enabled,
        )
        app.state.db = db
        app.state.engine = engine
        app.state.scheduler = scheduler
        scheduler.start()
        logger.info(f"Reconciliation service started with provider {config.provider}")
        try:
            yield
        finally:
            await scheduler.stop()
            await db.shutdown()
    
    app = FastAPI(title="Payment Reconciliation Service", lifespan=lifespan)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    configure_run_rate_limit(config.run_rate_limit)
    app.include_router(reconciliation_router)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Prometheus exposition of the engine counters."""
        return Response(
            content=app.state.engine.metrics.render(),
            media_type=CONTENT_TYPE_LATEST,
        )

    return app


app = create_app()
