"""Services package."""

from finance_tracker.services.storage import (
    AccountStorageInterface,
    AuditStorageInterface,
    DuplicateError,
    InMemoryStore,
    InMemoryTransaction,
    LedgerStorageInterface,
    NotFoundError,
    ScheduleStorageInterface,
    StorageError,
    StorageTransaction,
    StorageUnavailableError,
    TransactionalStorageInterface,
    WriteConflictError,
)

__all__ = [
    # Storage services
    "AccountStorageInterface",
    "AuditStorageInterface",
    "DuplicateError",
    "InMemoryStore",
    "InMemoryTransaction",
    "LedgerStorageInterface",
    "NotFoundError",
    "ScheduleStorageInterface",
    "StorageError",
    "StorageTransaction",
    "StorageUnavailableError",
    "TransactionalStorageInterface",
    "WriteConflictError",
]
