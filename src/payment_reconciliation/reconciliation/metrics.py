"""Prometheus metrics for reconciliation runs."""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Runs range from milliseconds on an empty ledger to minutes on a backlog.
DURATION_BUCKETS = (0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0, 900.0)


class ReconciliationMetrics:
    """
    Counters and a run timer owned by one engine.
    
    Each instance registers into its own ``CollectorRegistry`` unless one
    is passed in, so several engines in one process never collide on names.
    """
    
    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.transactions = Counter(
            name="reconciliation_transactions_total",
            documentation="Transactions picked up for reconciliation",
            registry=self.registry,
        )
        self.success = Counter(
            name="reconciliation_transactions_success_total",
            documentation="Transactions moved to a terminal status",
            registry=self.registry,
        )
        self.failure = Counter(
            name="reconciliation_transactions_failure_total",
            documentation="Transactions that failed with a non-provider error",
            registry=self.registry,
        )
        self.provider_errors = Counter(
            name="reconciliation_provider_errors_total",
            documentation="Provider lookups that ended in a provider fault",
            registry=self.registry,
        )
        self.duration = Histogram(
            name="reconciliation_duration_seconds",
            documentation="Wall-clock duration of reconciliation runs",
            buckets=DURATION_BUCKETS,
            registry=self.registry,
        )
    
    def value(self, sample_name: str) -> float:
        """Current value of a sample, 0.0 if it has not been exported yet."""
        return self.registry.get_sample_value(sample_name) or 0.0
    
    def render(self) -> bytes:
        """Exposition-format snapshot of every metric in the registry."""
        return generate_latest(self.registry)


__all__ = ["CONTENT_TYPE_LATEST", "DURATION_BUCKETS", "ReconciliationMetrics"]
