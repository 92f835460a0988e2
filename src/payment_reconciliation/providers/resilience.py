"""Bounded retry and circuit breaking around a provider gateway."""

import enum
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..exceptions import ProviderFault
from .base import ProviderGateway, ProviderStatusSnapshot

logger = logging.getLogger(__name__)

CIRCUIT_OPEN_MESSAGE = "Provider API circuit breaker is open. Service temporarily unavailable."


class CircuitState(str, enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class RetrySettings:
    """Retry policy for retryable provider faults."""
    max_attempts: int = 3
    initial_wait_seconds: float = 1.0  # doubles after every failed attempt
    max_wait_seconds: float = 10.0


@dataclass
class CircuitBreakerSettings:
    """Thresholds for opening and closing the circuit."""
    sliding_window_size: int = 10
    failure_rate_threshold: float = 0.5
    wait_duration_open_seconds: float = 30.0
    permitted_calls_half_open: int = 3


class CircuitBreaker:
    """
    Count-based circuit breaker.
    
    CLOSED: calls pass; once the window is full and its failure rate reaches
    the threshold the circuit opens.
    OPEN: calls are rejected until the wait duration elapses, then the
    circuit moves to HALF_OPEN.
    HALF_OPEN: a limited number of trial calls pass; their failure rate
    decides whether to close again or re-open.
    """
    
    def __init__(
        self,
        settings: Optional[CircuitBreakerSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or CircuitBreakerSettings()
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._window: Deque[bool] = deque(maxlen=self.settings.sliding_window_size)
        self._trial_results: List[bool] = []
        self._trials_started = 0
        self._opened_at = 0.0
    
    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._maybe_half_open()
            return self._state
    
    def _maybe_half_open(self) -> None:
        if (
            self._state == CircuitState.OPEN
            and self._clock() - self._opened_at >= self.settings.wait_duration_open_seconds
        ):
            logger.info("Circuit breaker moving to HALF_OPEN")
            self._state = CircuitState.HALF_OPEN
            self._trial_results = []
            self._trials_started = 0
    
    def _open(self) -> None:
        logger.warning("Circuit breaker OPEN: provider failure rate above threshold")
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._window.clear()
    
    def allow_request(self) -> bool:
        with self._lock:
            self._maybe_half_open()
            if self._state == CircuitState.OPEN:
                return False
            if self._state == CircuitState.HALF_OPEN:
                if self._trials_started >= self.settings.permitted_calls_half_open:
                    return False
                self._trials_started += 1
            return True
    
    def record(self, success: bool) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._trial_results.append(success)
                if len(self._trial_results) >= self.settings.permitted_calls_half_open:
                    failures = self._trial_results.count(False)
                    if failures / len(self._trial_results) >= self.settings.failure_rate_threshold:
                        self._open()
                    else:
                        logger.info("Circuit breaker CLOSED: provider recovered")
                        self._state = CircuitState.CLOSED
                        self._window.clear()
                return
            
            if self._state == CircuitState.OPEN:
                return
            
            self._window.append(success)
            if len(self._window) == self._window.maxlen:
                failures = list(self._window).count(False)
                if failures / len(self._window) >= self.settings.failure_rate_threshold:
                    self._open()


class ResilientProviderGateway(ProviderGateway):
    """
    Wraps a provider gateway with retries and a circuit breaker.
    
    The engine sees exactly one outcome per lookup: a snapshot, or a single
    ProviderFault once retries are exhausted or while the circuit is open.
    """
    
    def __init__(
        self,
        inner: ProviderGateway,
        retry: Optional[RetrySettings] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.inner = inner
        self.retry_settings = retry or RetrySettings()
        self.breaker = breaker or CircuitBreaker()
    
    @property
    def provider_name(self) -> str:
        return self.inner.provider_name
    
    def is_available(self) -> bool:
        return self.breaker.state != CircuitState.OPEN and self.inner.is_available()
    
    async def _get_status_with_retry(self, provider_reference: str) -> ProviderStatusSnapshot:
        settings = self.retry_settings
        retrying = AsyncRetrying(
            stop=stop_after_attempt(settings.max_attempts),
            wait=wait_exponential(
                multiplier=settings.initial_wait_seconds,
                max=settings.max_wait_seconds,
            ),
            retry=retry_if_exception(
                lambda e: isinstance(e, ProviderFault) and e.retryable
            ),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.debug(
                        f"Retrying provider lookup for {provider_reference} "
                        f"(attempt {attempt.retry_state.attempt_number})"
                    )
                return await self.inner.get_status(provider_reference)
    
    async def get_status(self, provider_reference: str) -> ProviderStatusSnapshot:
        if not self.breaker.allow_request():
            logger.warning(f"Circuit breaker open, rejecting lookup for {provider_reference}")
            raise ProviderFault(
                CIRCUIT_OPEN_MESSAGE,
                self.provider_name,
                provider_reference,
                retryable=True,
            )
        
        # Cancellation also settles the trial so HALF_OPEN cannot wedge.
        success = False
        try:
            snapshot = await self._get_status_with_retry(provider_reference)
            success = True
        finally:
            self.breaker.record(success=success)
        return snapshot
