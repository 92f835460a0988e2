"""Mapping from provider-reported statuses to ledger statuses."""

from typing import Dict, Optional

from ..database.models import TransactionStatus
from ..providers.base import ProviderStatus

# PROCESSING and NOT_FOUND are deliberately absent: they never move a
# transaction out of PENDING.
STATUS_TRANSITIONS: Dict[ProviderStatus, TransactionStatus] = {
    ProviderStatus.SUCCESSFUL: TransactionStatus.COMPLETED,
    ProviderStatus.FAILED: TransactionStatus.FAILED,
    ProviderStatus.REFUNDED: TransactionStatus.REFUNDED,
}


def map_provider_status(
    provider_status: Optional[ProviderStatus],
    current_status: TransactionStatus,
) -> Optional[TransactionStatus]:
    """Return the status a transaction should move to, or None for no change.

    Unknown or missing provider statuses map to None, as does a mapping that
    would leave the status where it already is.
    """
    if provider_status is None:
        return None
    new_status = STATUS_TRANSITIONS.get(provider_status)
    if new_status is None or new_status == current_status:
        return None
    return new_status


def format_failure_reason(error_code: Optional[str], error_message: Optional[str]) -> str:
    """Render a provider failure as ``"<code>: <message>"``."""
    return f"{error_code}: {error_message}"
