"""
In-Memory Storage Implementation

DESIGN DECISION: The in-memory store is the reference backend because:
1. The recurring core's correctness lives in the storage contract
   (versioned reads, conditional commit), not in any particular database
2. Tests can run the real processor against it without external services
3. Each stored document carries a version, so write conflicts are detected
   exactly as a document database with multi-document transactions would

TRADEOFFS:
- Nothing survives a process restart
- A single process-wide guard serializes commits (fine at personal scale)

Every operation yields to the event loop once before touching state, the
same suspension points a networked store would have. This is what lets
concurrent processor runs interleave in tests.
"""

import asyncio
import threading
from datetime import date
from typing import Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel

from finance_tracker.models.audit import AuditEvent
from finance_tracker.models.ledger import Account, LedgerEntry, RecurringSchedule
from finance_tracker.services.storage.interface import (
    AccountStorageInterface,
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    ScheduleStorageInterface,
    StorageTransaction,
    TransactionalStorageInterface,
    WriteConflictError,
)


ModelT = TypeVar("ModelT", bound=BaseModel)

ACCOUNTS = "accounts"
SCHEDULES = "schedules"


class _Collection:
    """Documents of one kind, each with a monotonically increasing version."""

    def __init__(self):
        self.documents: dict[UUID, BaseModel] = {}
        self.versions: dict[UUID, int] = {}

    def version(self, doc_id: UUID) -> int:
        """Version of a live document; 0 if it does not exist."""
        if doc_id not in self.documents:
            return 0
        return self.versions[doc_id]

    def put(self, doc_id: UUID, document: BaseModel) -> None:
        self.documents[doc_id] = document
        # Versions outlive deletes so a re-created id never looks unchanged
        self.versions[doc_id] = self.versions.get(doc_id, 0) + 1

    def delete(self, doc_id: UUID) -> bool:
        if doc_id not in self.documents:
            return False
        del self.documents[doc_id]
        self.versions[doc_id] += 1
        return True


def _copy(document: Optional[ModelT]) -> Optional[ModelT]:
    return document.model_copy(deep=True) if document is not None else None


class InMemoryTransaction(StorageTransaction):
    """
    Optimistic transaction over an InMemoryStore.

    Reads remember the version they saw. Writes are buffered. Commit
    re-checks every remembered version under the store's guard and applies
    all writes only if none changed.
    """

    def __init__(self, store: "InMemoryStore"):
        self._store = store
        self._read_versions: dict[tuple[str, UUID], int] = {}
        self._writes: dict[tuple[str, UUID], BaseModel] = {}
        self._appends: list[LedgerEntry] = []
        self._finished = False

    def _remember(self, kind: str, doc_id: UUID) -> None:
        key = (kind, doc_id)
        if key not in self._read_versions:
            self._read_versions[key] = self._store._collection(kind).version(doc_id)

    async def _read(self, kind: str, doc_id: UUID):
        await self._store._yield()
        with self._store._guard:
            self._remember(kind, doc_id)
            return _copy(self._store._collection(kind).documents.get(doc_id))

    async def get_account(self, account_id: UUID) -> Optional[Account]:
        return await self._read(ACCOUNTS, account_id)

    async def get_schedule(self, schedule_id: UUID) -> Optional[RecurringSchedule]:
        return await self._read(SCHEDULES, schedule_id)

    async def _write(self, kind: str, document: BaseModel) -> None:
        self._check_open()
        with self._store._guard:
            # A blind write still must not clobber a concurrent change
            self._remember(kind, document.id)
        self._writes[(kind, document.id)] = _copy(document)

    async def put_account(self, account: Account) -> None:
        await self._write(ACCOUNTS, account)

    async def put_schedule(self, schedule: RecurringSchedule) -> None:
        await self._write(SCHEDULES, schedule)

    async def append_entry(self, entry: LedgerEntry) -> None:
        self._check_open()
        self._appends.append(_copy(entry))

    @property
    def has_changes(self) -> bool:
        return bool(self._writes or self._appends)

    def _check_open(self) -> None:
        if self._finished:
            raise RuntimeError("Transaction already finished")

    async def commit(self) -> None:
        self._check_open()
        await self._store._yield()
        store = self._store
        with store._guard:
            for (kind, doc_id), seen in self._read_versions.items():
                if store._collection(kind).version(doc_id) != seen:
                    self._finished = True
                    raise WriteConflictError(
                        f"{kind[:-1]} {doc_id} changed during transaction"
                    )

            for entry in self._appends:
                store._check_unique(entry)

            for (kind, doc_id), document in self._writes.items():
                store._collection(kind).put(doc_id, document)
            for entry in self._appends:
                store._insert_entry(entry)

        self._finished = True

    async def rollback(self) -> None:
        self._writes.clear()
        self._appends.clear()
        self._finished = True


class InMemoryStore(
    AccountStorageInterface,
    LedgerStorageInterface,
    ScheduleStorageInterface,
    TransactionalStorageInterface,
    AuditStorageInterface,
):
    """
    Reference document store implementing every storage interface.

    Callers always receive copies; mutating a returned model never changes
    stored state without an explicit write.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._accounts = _Collection()
        self._schedules = _Collection()
        self._entries: list[LedgerEntry] = []
        self._entry_keys: set[tuple[UUID, date]] = set()
        self._events: list[AuditEvent] = []

    async def _yield(self) -> None:
        await asyncio.sleep(0)

    def _collection(self, kind: str) -> _Collection:
        return self._accounts if kind == ACCOUNTS else self._schedules

    def _check_unique(self, entry: LedgerEntry) -> None:
        if entry.recurring_source is None:
            return
        if (entry.recurring_source, entry.entry_date) in self._entry_keys:
            raise DuplicateError(
                f"Entry for schedule {entry.recurring_source} on "
                f"{entry.entry_date.isoformat()} already exists"
            )

    def _insert_entry(self, entry: LedgerEntry) -> None:
        self._entries.append(entry)
        if entry.recurring_source is not None:
            self._entry_keys.add((entry.recurring_source, entry.entry_date))

    # -- transactions -------------------------------------------------------

    def begin(self) -> InMemoryTransaction:
        return InMemoryTransaction(self)

    # -- accounts -----------------------------------------------------------

    async def get_account(self, account_id: UUID) -> Optional[Account]:
        await self._yield()
        with self._guard:
            return _copy(self._accounts.documents.get(account_id))

    async def list_accounts(
        self,
        owner_id: str,
        liabilities_only: bool = False,
    ) -> list[Account]:
        await self._yield()
        with self._guard:
            accounts = [
                _copy(account)
                for account in self._accounts.documents.values()
                if account.owner_id == owner_id
                and (account.is_liability or not liabilities_only)
            ]
        accounts.sort(key=lambda a: a.created_at)
        return accounts

    async def save_account(self, account: Account) -> Account:
        await self._yield()
        with self._guard:
            self._accounts.put(account.id, _copy(account))
        return account

    # -- ledger -------------------------------------------------------------

    async def append_entry(self, entry: LedgerEntry) -> LedgerEntry:
        await self._yield()
        with self._guard:
            self._check_unique(entry)
            self._insert_entry(_copy(entry))
        return entry

    async def list_entries(
        self,
        owner_id: str,
        account_id: Optional[UUID] = None,
        recurring_source: Optional[UUID] = None,
    ) -> list[LedgerEntry]:
        await self._yield()
        with self._guard:
            return [
                _copy(entry)
                for entry in self._entries
                if entry.owner_id == owner_id
                and (account_id is None or entry.account_id == account_id)
                and (recurring_source is None or entry.recurring_source == recurring_source)
            ]

    async def count_entries_by_account(self, owner_id: str) -> dict[UUID, int]:
        await self._yield()
        counts: dict[UUID, int] = {}
        with self._guard:
            for entry in self._entries:
                if entry.owner_id == owner_id:
                    counts[entry.account_id] = counts.get(entry.account_id, 0) + 1
        return counts

    # -- schedules ----------------------------------------------------------

    async def save_schedule(self, schedule: RecurringSchedule) -> RecurringSchedule:
        await self._yield()
        with self._guard:
            self._schedules.put(schedule.id, _copy(schedule))
        return schedule

    async def get_schedule(self, schedule_id: UUID) -> Optional[RecurringSchedule]:
        await self._yield()
        with self._guard:
            return _copy(self._schedules.documents.get(schedule_id))

    async def list_schedules(self, owner_id: str) -> list[RecurringSchedule]:
        await self._yield()
        with self._guard:
            schedules = [
                _copy(schedule)
                for schedule in self._schedules.documents.values()
                if schedule.owner_id == owner_id
            ]
        schedules.sort(key=lambda s: s.created_at, reverse=True)
        return schedules

    async def delete_schedule(self, schedule_id: UUID) -> bool:
        await self._yield()
        with self._guard:
            return self._schedules.delete(schedule_id)

    # -- audit --------------------------------------------------------------

    async def append_event(self, event: AuditEvent) -> bool:
        with self._guard:
            self._events.append(_copy(event))
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        with self._guard:
            events = [
                _copy(event)
                for event in self._events
                if event.correlation_id == correlation_id
            ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        with self._guard:
            events = [_copy(event) for event in self._events]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
