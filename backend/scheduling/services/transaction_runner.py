"""Transaction Runner — executes a unit of work against the store with bounded retry.

Invariants:
    - Every attempt starts from a fresh transaction; nothing is held across attempts
    - work(tr) is re-invoked from the beginning on retry (prior reads may be stale)
    - Only errors the classifier marks retryable are retried; all others propagate unchanged
    - Exceeding retry_limit or the wall-clock budget raises TransactionTimeoutError
      chained from the last error
    - A caller deadline (time.monotonic() clock) can only shorten the budget
    - An attempt aborted mid-flight is cancelled, never partially committed
    - BoundTransactor never commits and never retries: the outer runner owns both

Design Decisions:
    - Two implementations of one Transactor protocol: scheduler operations accept either,
      so they compose into larger atomic units without duplicating code
    - Explicit retry loop with an injected ErrorClassifier instead of catching store
      signals ad hoc (same shape as the resilient API client's retry loop)
    - asyncio.timeout bounds each attempt by the remaining budget; only its own expiry
      becomes TransactionTimeoutError
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

from scheduling.core.error_classifier import ErrorClassifier, StoreErrorClassifier
from scheduling.core.errors import ErrorContext, TransactionTimeoutError, ValidationError
from scheduling.core.store_protocols import KeyValueStore, KeyValueTransaction

logger = logging.getLogger(__name__)

T = TypeVar("T")
Work = Callable[[KeyValueTransaction], Awaitable[T]]

DEFAULT_RETRY_LIMIT = 100
DEFAULT_TIMEOUT_SECONDS = 60.0


class Transactor(Protocol):
    """Capability to run work inside a transaction (top-level or nested)."""
    async def run(
        self, work: Work, *, read_only: bool = False, deadline: float | None = None,
    ) -> Any: ...


class TransactionRunner:
    """Top-level mode: owns the transaction lifecycle and the retry loop."""

    def __init__(
        self,
        store: KeyValueStore,
        classifier: ErrorClassifier | None = None,
        retry_limit: int = DEFAULT_RETRY_LIMIT,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        if retry_limit < 0:
            raise ValidationError("retry_limit must be >= 0", "retry_limit")
        if timeout_seconds <= 0:
            raise ValidationError("timeout_seconds must be > 0", "timeout_seconds")
        self.store = store
        self.classifier = classifier or StoreErrorClassifier()
        self.retry_limit = retry_limit
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, store: KeyValueStore, settings) -> "TransactionRunner":
        return cls(
            store,
            classifier=StoreErrorClassifier(
                base_delay_ms=settings.retry_base_delay_ms,
                max_delay_ms=settings.retry_max_delay_ms,
            ),
            retry_limit=settings.transaction_retry_limit,
            timeout_seconds=settings.transaction_timeout_seconds,
        )

    async def run(
        self, work: Work, *, read_only: bool = False, deadline: float | None = None,
    ) -> Any:
        """Run work until it commits, fails terminally, or the budget runs out."""
        budget_end = time.monotonic() + self.timeout_seconds
        if deadline is not None:
            budget_end = min(budget_end, deadline)

        attempt = 0
        last_error: BaseException | None = None
        while True:
            remaining = budget_end - time.monotonic()
            if remaining <= 0:
                raise self._timeout("deadline exceeded", attempt, last_error) from last_error
            budget = asyncio.timeout(remaining)
            try:
                async with budget:
                    return await self._attempt(work, read_only)
            except Exception as e:
                # a TimeoutError raised by work itself is classified like any other error
                if isinstance(e, TimeoutError) and budget.expired():
                    raise self._timeout(
                        "deadline exceeded mid-attempt", attempt + 1, e,
                    ) from e
                verdict = self.classifier.classify(e, attempt)
                if not verdict.retryable:
                    raise
                last_error = e
                attempt += 1
                if attempt > self.retry_limit:
                    raise self._timeout(
                        f"retry limit ({self.retry_limit}) exceeded", attempt, e,
                    ) from e
                delay = verdict.backoff_ms / 1000
                if time.monotonic() + delay >= budget_end:
                    raise self._timeout(
                        "deadline exceeded while backing off", attempt, e,
                    ) from e
                logger.warning(
                    f"Transaction attempt failed, retrying in {verdict.backoff_ms}ms: {e}",
                    extra={
                        "attempt": attempt,
                        "backoff_ms": verdict.backoff_ms,
                        "error_code": getattr(e, "code", None),
                    },
                )
                await asyncio.sleep(delay)

    async def _attempt(self, work: Work, read_only: bool) -> Any:
        tr = await self.store.begin_transaction(read_only=read_only)
        committed = False
        try:
            result = await work(tr)
            if not read_only:
                await tr.commit()
                committed = True
            return result
        finally:
            if not committed:
                # cancellation of this task must not skip the rollback
                await asyncio.shield(tr.cancel())

    def _timeout(
        self, reason: str, attempts: int, last_error: BaseException | None,
    ) -> TransactionTimeoutError:
        logger.error(
            f"Transaction gave up: {reason}",
            extra={"attempt": attempts, "retry_limit": self.retry_limit},
        )
        return TransactionTimeoutError(
            f"Transaction gave up after {attempts} attempt(s): {reason}",
            attempts=attempts,
            last_error=last_error,
            context=ErrorContext(attempt=attempts),
        )


class BoundTransactor:
    """Nested mode: runs work on an already-open transaction, no commit, no retry."""

    def __init__(self, tr: KeyValueTransaction):
        self.tr = tr

    async def run(
        self, work: Work, *, read_only: bool = False, deadline: float | None = None,
    ) -> Any:
        if self.tr.read_only and not read_only:
            raise ValidationError(
                "Cannot run writing work on a read-only transaction", "read_only",
            )
        if deadline is not None and time.monotonic() >= deadline:
            raise TransactionTimeoutError(
                "Deadline exceeded before nested work started", attempts=0,
            )
        return await work(self.tr)
