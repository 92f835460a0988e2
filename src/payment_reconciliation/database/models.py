"""SQLAlchemy models for the transaction ledger."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Numeric,
    Index,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class TransactionStatus(str, enum.Enum):
    """Lifecycle statuses of a ledger transaction."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    DISPUTED = "disputed"


class Transaction(Base):
    """A payment transaction in the internal ledger.

    ``provider_reference`` is the provider's identifier for the payment
    (e.g. a Stripe PaymentIntent ID) and is the reconciliation lookup key.
    ``version`` is bumped on every write; writes are compare-and-swap on it.
    """
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TransactionStatus.PENDING.value)
    provider_reference: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    provider_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Reconciliation bookkeeping
    reconciled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    reconciliation_attempts: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_transactions_status", "status"),
        Index("ix_transactions_status_created_at", "status", "created_at"),
        Index("ix_transactions_status_updated_at", "status", "updated_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert transaction to dictionary representation."""
        return {
            "id": self.id,
            "amount": str(self.amount) if self.amount is not None else None,
            "currency": self.currency,
            "status": self.status,
            "provider_reference": self.provider_reference,
            "provider_name": self.provider_name,
            "reconciled_at": self.reconciled_at.isoformat() if self.reconciled_at else None,
            "reconciliation_attempts": self.reconciliation_attempts,
            "last_error": self.last_error,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
