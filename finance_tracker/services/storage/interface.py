"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Swap the in-memory reference store for a real document database
2. Use in-memory storage for testing
3. Keep the recurring core decoupled from the storage implementation

Accounts and ledger entries are owned by other parts of the application;
the recurring core only needs the narrow slice of operations below.

Writes that must happen together (ledger append + balance update +
watermark advance) go through a StorageTransaction. Transactions are
optimistic: reads record the version they saw and commit fails with
WriteConflictError if anything read has changed since.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from finance_tracker.models.audit import AuditEvent
from finance_tracker.models.ledger import Account, LedgerEntry, RecurringSchedule


class AccountStorageInterface(ABC):
    """Read access to accounts, plus the upsert used by account management."""

    @abstractmethod
    async def get_account(self, account_id: UUID) -> Optional[Account]:
        """
        Retrieve an account by its ID.

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_accounts(
        self,
        owner_id: str,
        liabilities_only: bool = False,
    ) -> list[Account]:
        """
        List an owner's accounts in creation order.

        Args:
            owner_id: The owner whose accounts to list
            liabilities_only: Only return accounts flagged as liabilities
        """
        pass

    @abstractmethod
    async def save_account(self, account: Account) -> Account:
        """
        Insert or replace an account.

        This is an ordinary write: any transaction that read the account
        before it will fail to commit.
        """
        pass


class LedgerStorageInterface(ABC):
    """Append-only access to ledger entries."""

    @abstractmethod
    async def append_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Append an entry outside any transaction.

        Raises:
            DuplicateError: If an entry already exists for the same
                            (recurring_source, entry_date)
        """
        pass

    @abstractmethod
    async def list_entries(
        self,
        owner_id: str,
        account_id: Optional[UUID] = None,
        recurring_source: Optional[UUID] = None,
    ) -> list[LedgerEntry]:
        """
        List an owner's entries, oldest first.

        Args:
            owner_id: The owner whose entries to list
            account_id: Only entries against this account
            recurring_source: Only entries materialized from this schedule
        """
        pass

    @abstractmethod
    async def count_entries_by_account(self, owner_id: str) -> dict[UUID, int]:
        """
        Count an owner's entries per account.

        Accounts without entries are absent from the result.
        """
        pass


class ScheduleStorageInterface(ABC):
    """Storage for recurring schedule definitions."""

    @abstractmethod
    async def save_schedule(self, schedule: RecurringSchedule) -> RecurringSchedule:
        """Insert or replace a schedule."""
        pass

    @abstractmethod
    async def get_schedule(self, schedule_id: UUID) -> Optional[RecurringSchedule]:
        """
        Retrieve a schedule by its ID.

        Returns:
            The schedule if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_schedules(self, owner_id: str) -> list[RecurringSchedule]:
        """List an owner's schedules, newest first."""
        pass

    @abstractmethod
    async def delete_schedule(self, schedule_id: UUID) -> bool:
        """
        Delete a schedule by ID.

        Entries already materialized from it are left untouched.

        Returns:
            True if a schedule was deleted
        """
        pass


class StorageTransaction(ABC):
    """
    An optimistic all-or-nothing unit of work.

    Usage:
        async with storage.begin() as txn:
            account = await txn.get_account(account_id)
            ...
            await txn.put_account(account)
            await txn.commit()

    Leaving the block without committing discards every buffered write.
    """

    @abstractmethod
    async def get_account(self, account_id: UUID) -> Optional[Account]:
        """Read an account and remember the version seen."""
        pass

    @abstractmethod
    async def get_schedule(self, schedule_id: UUID) -> Optional[RecurringSchedule]:
        """Read a schedule and remember the version seen."""
        pass

    @abstractmethod
    async def put_account(self, account: Account) -> None:
        """Buffer an account write."""
        pass

    @abstractmethod
    async def put_schedule(self, schedule: RecurringSchedule) -> None:
        """Buffer a schedule write."""
        pass

    @abstractmethod
    async def append_entry(self, entry: LedgerEntry) -> None:
        """Buffer a ledger append."""
        pass

    @property
    @abstractmethod
    def has_changes(self) -> bool:
        """Whether any write has been buffered."""
        pass

    @abstractmethod
    async def commit(self) -> None:
        """
        Apply every buffered write at once.

        Raises:
            WriteConflictError: If anything read has changed since
            DuplicateError: If an append would break ledger uniqueness
        """
        pass

    @abstractmethod
    async def rollback(self) -> None:
        """Discard every buffered write."""
        pass

    async def __aenter__(self) -> "StorageTransaction":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.rollback()


class TransactionalStorageInterface(ABC):
    """A store that can group writes into optimistic transactions."""

    @abstractmethod
    def begin(self) -> StorageTransaction:
        """Open a new transaction."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one processor run).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage (or not visible to the caller)."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class WriteConflictError(StorageError):
    """Something read inside a transaction changed before it committed."""
    pass


class StorageUnavailableError(StorageError):
    """Could not reach the storage backend."""
    pass
