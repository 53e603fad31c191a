"""
Per-Owner Processing Guard

At most one recurring processing run per owner at a time, best effort.

The guard is process-local and in-memory: it prevents double processing
inside one server process only. Correctness across processes comes from
the optimistic unit of work, which detects conflicting writes at the
storage layer no matter who made them. The guard is the fast path that
keeps a burst of client calls from all doing the same work.
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class OwnerLockRegistry:
    """
    Non-blocking set of owners with a run in progress.

    A second caller for the same owner is told immediately that a run is
    already in progress; it never waits.
    """

    def __init__(self):
        self._active: set[str] = set()
        self._guard = threading.Lock()

    def try_acquire(self, owner_id: str) -> bool:
        with self._guard:
            if owner_id in self._active:
                return False
            self._active.add(owner_id)
            return True

    def release(self, owner_id: str) -> None:
        with self._guard:
            self._active.discard(owner_id)

    def is_locked(self, owner_id: str) -> bool:
        with self._guard:
            return owner_id in self._active

    @contextmanager
    def hold(self, owner_id: str) -> Iterator[bool]:
        """
        Try to take the owner's slot for the duration of the block.

        Yields True if acquired. The slot is released on exit only if it
        was acquired here.
        """
        acquired = self.try_acquire(owner_id)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(owner_id)


# Process-wide registry shared by every processor that is not given its own
processing_owners = OwnerLockRegistry()
