"""Runtime configuration for the reconciliation engine and its collaborators."""

import os
from dataclasses import dataclass
from typing import Optional

# Runaway-loop safeguard: a run never requests more pages than this.
MAX_PAGES = 10_000

DEFAULT_BATCH_SIZE = 100
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_SCHEDULER_INTERVAL_SECONDS = 300.0
DEFAULT_RUN_RATE_LIMIT = "10/minute"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ReconciliationConfig:
    """Values consumed by the engine, scheduler and provider wiring."""
    batch_size: int = DEFAULT_BATCH_SIZE
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    provider: str = "mock"
    scheduler_enabled: bool = True
    scheduler_interval_seconds: float = DEFAULT_SCHEDULER_INTERVAL_SECONDS
    mock_failure_rate: float = 0.1
    mock_latency_ms: int = 50
    # Bearer token required by the reconciliation routes; None rejects every call.
    api_key: Optional[str] = None
    run_rate_limit: str = DEFAULT_RUN_RATE_LIMIT

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_env(cls) -> "ReconciliationConfig":
        """
        Build a configuration from environment variables.

        Unset variables fall back to the defaults declared on the class.
        """
        return cls(
            batch_size=int(os.getenv("RECONCILIATION_BATCH_SIZE", DEFAULT_BATCH_SIZE)),
            max_attempts=int(os.getenv("RECONCILIATION_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)),
            provider=os.getenv("RECONCILIATION_PROVIDER", "mock").lower(),
            scheduler_enabled=_env_bool("RECONCILIATION_SCHEDULER_ENABLED", True),
            scheduler_interval_seconds=float(
                os.getenv(
                    "RECONCILIATION_SCHEDULER_INTERVAL_SECONDS",
                    DEFAULT_SCHEDULER_INTERVAL_SECONDS,
                )
            ),
            mock_failure_rate=float(os.getenv("PROVIDER_MOCK_FAILURE_RATE", 0.1)),
            mock_latency_ms=int(os.getenv("PROVIDER_MOCK_LATENCY_MS", 50)),
            api_key=os.getenv("API_KEY") or None,
            run_rate_limit=os.getenv("RECONCILIATION_RUN_RATE_LIMIT", DEFAULT_RUN_RATE_LIMIT),
        )
