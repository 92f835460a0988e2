"""Database module for ledger persistence."""

from .models import (
    Transaction,
    Base,
    TransactionStatus,
)
from .session import (
    get_database_url,
    create_async_engine,
    get_async_session_factory,
    create_tables,
    DatabaseManager,
)
from .repository import TransactionRepository

__all__ = [
    # Models
    "Transaction",
    "Base",
    "TransactionStatus",
    # Session management
    "get_database_url",
    "create_async_engine",
    "get_async_session_factory",
    "create_tables",
    "DatabaseManager",
    # Repositories
    "TransactionRepository",
]
