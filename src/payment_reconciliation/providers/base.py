"""Provider gateway contract consumed by the reconciliation engine."""

import enum
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class ProviderStatus(str, enum.Enum):
    """Transaction statuses as reported by a payment provider."""
    SUCCESSFUL = "successful"
    FAILED = "failed"
    PROCESSING = "processing"
    NOT_FOUND = "not_found"
    REFUNDED = "refunded"


class ProviderStatusSnapshot(BaseModel):
    """The provider's view of one transaction at the time of the call."""
    provider_reference: str = Field(..., description="Provider's identifier for the transaction")
    status: Optional[ProviderStatus] = Field(None, description="Status reported by the provider")
    amount: Optional[Decimal] = Field(None, description="Amount confirmed by the provider")
    currency: Optional[str] = Field(None, description="ISO 4217 currency code")
    error_code: Optional[str] = Field(None, description="Provider error code for failed payments")
    error_message: Optional[str] = Field(None, description="Provider error message for failed payments")
    processed_at: Optional[datetime] = Field(None, description="When the provider processed the payment")

    model_config = {"frozen": True}


class ProviderGateway(ABC):
    """
    Looks up a transaction's status at an external payment provider.

    Implementations raise ``ProviderFault`` when no status can be produced.
    They are free to retry internally and to short-circuit after repeated
    failures (see ``ResilientProviderGateway``); the engine only ever sees a
    snapshot or a single fault.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Name used in logs and fault messages."""
        raise NotImplementedError

    @abstractmethod
    async def get_status(self, provider_reference: str) -> ProviderStatusSnapshot:
        """Fetch the current status of a transaction by provider reference.

        Raises:
            ProviderFault: If the provider is unreachable or returns an error.
        """
        raise NotImplementedError

    def is_available(self) -> bool:
        return True
