"""Transaction store contract consumed by the reconciliation engine."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ..database.models import TransactionStatus
from .models import LedgerTransaction


@dataclass(frozen=True)
class PageCursor:
    """Sort key of the last transaction handed out; the next page starts after it."""
    created_at: datetime
    id: str


@dataclass
class EligiblePage:
    """One page of transactions eligible for reconciliation."""
    items: List[LedgerTransaction] = field(default_factory=list)
    page_index: int = 0
    has_next: bool = False

    @property
    def last_key(self) -> Optional[PageCursor]:
        if not self.items:
            return None
        last = self.items[-1]
        return PageCursor(created_at=last.created_at, id=last.id)


class TransactionStore(ABC):
    """Persistence operations the engine relies on.

    ``save`` must be a compare-and-swap on the version token: it raises
    ``VersionConflict`` instead of overwriting a record another writer has
    changed since it was read.
    """

    @abstractmethod
    async def fetch_eligible_page(
        self,
        status: TransactionStatus,
        max_attempts: int,
        page_size: int,
        after: Optional[PageCursor] = None,
        page_index: int = 0,
    ) -> EligiblePage:
        """Fetch transactions in ``status`` whose attempt counter is unset or
        below ``max_attempts``, ordered by ``(created_at, id)``.

        Only rows sorting strictly after ``after`` are returned, so rows that
        leave the eligible set while a run is paging never shift later pages.
        """
        raise NotImplementedError

    @abstractmethod
    async def fetch_by_id(self, transaction_id: str) -> Optional[LedgerTransaction]:
        raise NotImplementedError

    @abstractmethod
    async def save(
        self,
        transaction: LedgerTransaction,
        expected_version: int,
    ) -> LedgerTransaction:
        """Persist ``transaction`` if the stored version equals ``expected_version``.

        Returns:
            The saved transaction carrying its new version.

        Raises:
            VersionConflict: If the stored version differs or the row is gone.
        """
        raise NotImplementedError

    @abstractmethod
    async def count_by_status(self, status: TransactionStatus) -> int:
        raise NotImplementedError

    @abstractmethod
    async def list_by_status(
        self,
        status: TransactionStatus,
        limit: int = 100,
        offset: int = 0,
    ) -> List[LedgerTransaction]:
        raise NotImplementedError

    @abstractmethod
    async def list_needing_review(
        self,
        status: TransactionStatus,
        min_attempts: int,
    ) -> List[LedgerTransaction]:
        """Transactions that exhausted their automatic attempts."""
        raise NotImplementedError
