"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements an in-memory document store as the backend, but
designed to be swappable.
"""

from finance_tracker.services.storage.interface import (
    AccountStorageInterface,
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    ScheduleStorageInterface,
    StorageError,
    StorageTransaction,
    StorageUnavailableError,
    TransactionalStorageInterface,
    WriteConflictError,
)
from finance_tracker.services.storage.memory import (
    InMemoryStore,
    InMemoryTransaction,
)

__all__ = [
    # Interfaces
    "AccountStorageInterface",
    "AuditStorageInterface",
    "LedgerStorageInterface",
    "ScheduleStorageInterface",
    "StorageTransaction",
    "TransactionalStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    "StorageUnavailableError",
    "WriteConflictError",
    # In-memory implementation
    "InMemoryStore",
    "InMemoryTransaction",
]
