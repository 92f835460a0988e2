"""Fixed-delay scheduler that triggers reconciliation runs in the background."""

import asyncio
import logging
from typing import Optional

from ..config import DEFAULT_SCHEDULER_INTERVAL_SECONDS
from ..exceptions import RunAlreadyInProgress
from .engine import ReconciliationEngine
from .models import ReconciliationResult

logger = logging.getLogger(__name__)

# Share of processed transactions that may error before a run is flagged.
HIGH_ERROR_RATE = 0.1


class ReconciliationScheduler:
    """
    Runs the engine, waits ``interval_seconds``, and repeats.
    
    The delay is measured from the end of one run to the start of the next,
    so scheduled runs never overlap each other. A manual run that holds the
    run token makes the scheduled tick skip.
    """
    
    def __init__(
        self,
        engine: ReconciliationEngine,
        interval_seconds: float = DEFAULT_SCHEDULER_INTERVAL_SECONDS,
        enabled: bool = True,
    ):
        self.engine = engine
        self.interval_seconds = interval_seconds
        self.enabled = enabled
        self._task: Optional[asyncio.Task] = None
    
    @property
    def is_started(self) -> bool:
        return self._task is not None and not self._task.done()
    
    async def run_once(self) -> Optional[ReconciliationResult]:
        """Execute one scheduled tick.
        
        Returns:
            The run result, or None if the tick was skipped or failed.
        """
        if not self.enabled:
            logger.debug("Scheduler is disabled, skipping reconciliation run")
            return None
        
        logger.info("Starting scheduled reconciliation")
        try:
            result = await self.engine.run_reconciliation()
        except RunAlreadyInProgress as e:
            logger.warning(f"Reconciliation skipped: {e}")
            return None
        except Exception:
            logger.error("Scheduled reconciliation failed with unexpected error", exc_info=True)
            return None
        
        self._log_result(result)
        return result
    
    def _log_result(self, result: ReconciliationResult) -> None:
        if result.total_processed == 0:
            logger.info("No pending transactions to reconcile")
            return
        
        logger.info(
            f"Reconciliation completed in {result.duration_ms}ms: "
            f"{result.total_processed} processed, "
            f"{result.updated_to_completed} completed, "
            f"{result.updated_to_failed} failed, "
            f"{result.errors} errors"
        )
        if result.error_rate > HIGH_ERROR_RATE:
            logger.warning(
                f"High error rate detected in reconciliation: {result.errors} errors "
                f"out of {result.total_processed} processed"
            )
    
    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)
    
    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.is_started:
            return
        if not self.enabled:
            logger.info("Reconciliation scheduler disabled")
            return
        logger.info(f"Starting reconciliation scheduler (every {self.interval_seconds}s)")
        self._task = asyncio.get_running_loop().create_task(self._loop())
    
    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Reconciliation scheduler stopped")
