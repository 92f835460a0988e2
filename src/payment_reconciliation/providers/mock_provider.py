"""Mock payment provider for demos and tests without real PSP calls."""

import asyncio
import random
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Any, Optional

from ..exceptions import ProviderFault
from .base import ProviderGateway, ProviderStatus, ProviderStatusSnapshot

logger = logging.getLogger(__name__)

PROVIDER_NAME = "MockProvider"
DEFAULT_DECLINE_CODE = "INSUFFICIENT_FUNDS"
DEFAULT_DECLINE_MESSAGE = "Card declined"

# Reference, status, amount, currency
DEMO_TRANSACTIONS = (
    ("PROV-001", ProviderStatus.SUCCESSFUL, Decimal("100.00"), "USD"),
    ("PROV-002", ProviderStatus.SUCCESSFUL, Decimal("250.50"), "EUR"),
    ("PROV-003", ProviderStatus.SUCCESSFUL, Decimal("1000.00"), "GBP"),
    ("PROV-004", ProviderStatus.FAILED, Decimal("500.00"), "USD"),
    ("PROV-005", ProviderStatus.FAILED, Decimal("75.00"), "EUR"),
    ("PROV-006", ProviderStatus.PROCESSING, Decimal("200.00"), "USD"),
    ("PROV-007", ProviderStatus.REFUNDED, Decimal("150.00"), "USD"),
)


@dataclass
class MockProviderConfig:
    """Configuration for mock provider behavior."""
    failure_rate: float = 0.0  # 0.0 to 1.0
    latency_ms: int = 0  # Upper bound of the random simulated latency
    seed: Optional[int] = None  # Random seed for reproducibility
    seed_demo_data: bool = True


class MockProviderGateway(ProviderGateway):
    """
    In-memory provider that answers status lookups from a reference-keyed table.
    
    Features:
    - Pre-populated demo transactions (PROV-001 .. PROV-007)
    - Configurable random failure rate and latency
    - Outage switch for resilience testing
    - Unknown references report NOT_FOUND
    """

    def __init__(self, config: Optional[MockProviderConfig] = None):
        """Initialize the mock provider with optional configuration."""
        self.config = config or MockProviderConfig()
        self._transactions: Dict[str, ProviderStatusSnapshot] = {}
        self._rng = random.Random(self.config.seed)
        self._outage = False
        if self.config.seed_demo_data:
            for reference, status, amount, currency in DEMO_TRANSACTIONS:
                self.add_transaction(reference, status, amount, currency)
        logger.info(f"Mock provider initialized with {len(self._transactions)} transactions")

    @property
    def provider_name(self) -> str:
        return PROVIDER_NAME

    async def _apply_latency(self) -> None:
        if self.config.latency_ms > 0:
            await asyncio.sleep(self._rng.randint(0, self.config.latency_ms) / 1000.0)

    def _should_fail(self) -> bool:
        return self._rng.random() < self.config.failure_rate

    async def get_status(self, provider_reference: str) -> ProviderStatusSnapshot:
        logger.debug(f"Fetching transaction status from provider for reference: {provider_reference}")
        await self._apply_latency()

        if self._outage:
            raise ProviderFault(
                "Provider API is currently unavailable",
                PROVIDER_NAME,
                provider_reference,
                retryable=True,
            )

        if self._should_fail():
            raise ProviderFault(
                "Simulated network failure while contacting provider",
                PROVIDER_NAME,
                provider_reference,
                retryable=True,
            )

        snapshot = self._transactions.get(provider_reference)
        if snapshot is None:
            logger.warning(f"Transaction not found in provider: {provider_reference}")
            return ProviderStatusSnapshot(
                provider_reference=provider_reference,
                status=ProviderStatus.NOT_FOUND,
            )

        logger.debug(f"Provider returned status {snapshot.status.value} for reference {provider_reference}")
        return snapshot

    def is_available(self) -> bool:
        return not self._outage

    def add_transaction(
        self,
        reference: str,
        status: ProviderStatus,
        amount: Optional[Decimal] = None,
        currency: Optional[str] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> ProviderStatusSnapshot:
        """Add or replace a transaction in the provider table.

        Failed transactions default to an INSUFFICIENT_FUNDS decline.
        """
        if status == ProviderStatus.FAILED:
            error_code = error_code or DEFAULT_DECLINE_CODE
            error_message = error_message or DEFAULT_DECLINE_MESSAGE
        snapshot = ProviderStatusSnapshot(
            provider_reference=reference,
            status=status,
            amount=amount,
            currency=currency,
            error_code=error_code,
            error_message=error_message,
            processed_at=datetime.utcnow() - timedelta(hours=self._rng.randint(0, 23)),
        )
        self._transactions[reference] = snapshot
        return snapshot

    def update_transaction_status(self, reference: str, new_status: ProviderStatus) -> None:
        """Change the provider-side status, keeping amount and currency.

        A move to FAILED keeps any decline reason already on record and
        otherwise falls back to the default decline.
        """
        existing = self._transactions.get(reference)
        if existing is None:
            return
        error_code = error_message = None
        if new_status == ProviderStatus.FAILED:
            error_code = existing.error_code or DEFAULT_DECLINE_CODE
            error_message = existing.error_message or DEFAULT_DECLINE_MESSAGE
        self._transactions[reference] = ProviderStatusSnapshot(
            provider_reference=reference,
            status=new_status,
            amount=existing.amount,
            currency=existing.currency,
            error_code=error_code,
            error_message=error_message,
            processed_at=datetime.utcnow(),
        )

    def set_outage(self, outage: bool) -> None:
        self._outage = outage
        logger.info(f"Provider outage simulation set to: {outage}")

    def clear(self) -> None:
        """Clear all stored transactions (for test cleanup)."""
        self._transactions.clear()

    def health_check(self) -> Dict[str, Any]:
        """Return health status of the mock provider."""
        return {
            "ok": not self._outage,
            "provider": PROVIDER_NAME,
            "transaction_count": len(self._transactions),
            "config": {
                "failure_rate": self.config.failure_rate,
                "latency_ms": self.config.latency_ms,
            },
        }
