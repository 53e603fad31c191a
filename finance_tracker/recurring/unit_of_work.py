"""
Optimistic Unit of Work

Runs a read → compute → conditional-commit function against a transactional
store, retrying the whole function when the commit detects a write
conflict. Every attempt opens a fresh transaction, so the function always
re-reads current state and re-validates before writing again.

Retries use tenacity (exponential backoff plus random jitter, bounded
attempt count). Exhausting the attempts raises RetriesExhaustedError, a
distinct signal callers can tell apart from "the unit decided not to
write" and from non-retryable failures, which propagate unchanged.
"""

from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from finance_tracker.config import ProcessorSettings, get_settings
from finance_tracker.services.storage import (
    StorageTransaction,
    TransactionalStorageInterface,
    WriteConflictError,
)


T = TypeVar("T")

logger = structlog.get_logger(__name__)


class RetriesExhaustedError(Exception):
    """Every attempt of a unit of work ended in a write conflict."""

    def __init__(self, attempts: int, last_error: Optional[BaseException]):
        super().__init__(
            f"Gave up after {attempts} attempts: {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    logger.warning(
        "unit_of_work_conflict",
        attempt=retry_state.attempt_number,
        error=str(outcome.exception()) if outcome else None,
        next_wait=retry_state.next_action.sleep if retry_state.next_action else None,
    )


class OptimisticUnitOfWork:
    """
    Retry policy for optimistic transactions.

    Usage:
        uow = OptimisticUnitOfWork(store)
        result = await uow.run(materialize_one)

    ``materialize_one(txn)`` reads through ``txn``, buffers its writes and
    returns a result. It is committed only if it buffered something.
    """

    def __init__(
        self,
        storage: TransactionalStorageInterface,
        settings: Optional[ProcessorSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().processor

    def _retrying(self) -> AsyncRetrying:
        settings = self._settings
        return AsyncRetrying(
            stop=stop_after_attempt(settings.max_attempts),
            wait=(
                wait_exponential(
                    multiplier=settings.backoff_initial_seconds,
                    max=settings.backoff_max_seconds,
                )
                + wait_random(0, settings.backoff_jitter_seconds)
            ),
            retry=retry_if_exception_type(WriteConflictError),
            before_sleep=_log_retry,
            reraise=False,
        )

    async def run(self, unit: Callable[[StorageTransaction], Awaitable[T]]) -> T:
        """
        Run ``unit`` until it commits, decides not to write, or gives up.

        Raises:
            RetriesExhaustedError: Every attempt hit a write conflict
            Exception: Anything else ``unit`` or the commit raised
        """
        try:
            async for attempt in self._retrying():
                with attempt:
                    async with self._storage.begin() as txn:
                        result = await unit(txn)
                        if txn.has_changes:
                            await txn.commit()
                        return result
        except RetryError as e:
            raise RetriesExhaustedError(
                attempts=e.last_attempt.attempt_number,
                last_error=e.last_attempt.exception(),
            ) from e
