"""Error taxonomy for reconciliation runs."""

from typing import Optional


class ReconciliationError(Exception):
    """Base exception for reconciliation-related errors."""


class RunAlreadyInProgress(ReconciliationError):
    """Raised when a run is requested while another run holds the run token."""

    def __init__(self, message: str = "Reconciliation already in progress"):
        super().__init__(message)


class ProviderFault(ReconciliationError):
    """
    The provider gateway could not produce a status for a reference.

    Covers timeouts, outages, rate limiting and open circuit breakers.
    ``retryable`` is False for faults that will not go away on their own,
    such as authentication failures.
    """

    def __init__(
        self,
        message: str,
        provider_name: str,
        provider_reference: Optional[str] = None,
        retryable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.provider_name = provider_name
        self.provider_reference = provider_reference
        self.retryable = retryable


class VersionConflict(ReconciliationError):
    """A versioned write lost the race against a concurrent writer."""

    def __init__(
        self,
        transaction_id: str,
        expected_version: int,
        actual_version: Optional[int] = None,
    ):
        if actual_version is None:
            detail = "record no longer exists"
        else:
            detail = f"stored version is {actual_version}"
        super().__init__(
            f"Transaction {transaction_id} was modified concurrently: "
            f"expected version {expected_version}, {detail}"
        )
        self.transaction_id = transaction_id
        self.expected_version = expected_version
        self.actual_version = actual_version
