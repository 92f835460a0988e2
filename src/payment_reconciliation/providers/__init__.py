"""Provider gateways the reconciliation engine can query."""

from typing import Optional

from ..config import ReconciliationConfig
from .base import ProviderGateway, ProviderStatus, ProviderStatusSnapshot
from .mock_provider import MockProviderGateway, MockProviderConfig
from .stripe_provider import StripeProviderGateway
from .resilience import (
    CircuitBreaker,
    CircuitBreakerSettings,
    CircuitState,
    ResilientProviderGateway,
    RetrySettings,
)


def get_provider_gateway(
    provider: str = "mock",
    config: Optional[ReconciliationConfig] = None,
    api_key: Optional[str] = None,
) -> ProviderGateway:
    """Factory function to build a provider gateway wrapped in retry and circuit breaking.
    
    Args:
        provider: Provider name ('mock' or 'stripe').
        config: Configuration supplying mock failure rate and latency.
        api_key: Optional API key for the provider.
    
    Returns:
        ResilientProviderGateway around the requested provider.
    
    Raises:
        ValueError: If the provider is not supported.
    """
    config = config or ReconciliationConfig()
    name = provider.lower()
    
    if name == "mock":
        inner: ProviderGateway = MockProviderGateway(MockProviderConfig(
            failure_rate=config.mock_failure_rate,
            latency_ms=config.mock_latency_ms,
        ))
    elif name == "stripe":
        inner = StripeProviderGateway(api_key=api_key)
    else:
        raise ValueError(f"Unsupported provider: {provider}")
    
    return ResilientProviderGateway(inner)


__all__ = [
    "ProviderGateway",
    "ProviderStatus",
    "ProviderStatusSnapshot",
    "MockProviderGateway",
    "MockProviderConfig",
    "StripeProviderGateway",
    "CircuitBreaker",
    "CircuitBreakerSettings",
    "CircuitState",
    "ResilientProviderGateway",
    "RetrySettings",
    "get_provider_gateway",
]
