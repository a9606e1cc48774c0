"""Error Classifier — decides whether a failed attempt is retried, and after how long.

Invariants:
    - Only ConflictError and StoreConnectionError are retryable
    - Business, data and timeout errors are terminal: retrying cannot change the outcome
    - Unknown exceptions are terminal and propagate unchanged
    - Backoff is exponential with ±25% jitter, capped at max_delay_ms; a store-suggested
      retry_after_ms always wins

Design Decisions:
    - Injected strategy (Protocol) instead of exception-type checks inside the runner,
      so stores with their own error taxonomy plug in a classifier of their own
"""

import random
from dataclasses import dataclass
from typing import Protocol

from scheduling.core.errors import ConflictError, StoreConnectionError

RETRYABLE_ERRORS: tuple[type[Exception], ...] = (ConflictError, StoreConnectionError)


@dataclass(frozen=True)
class Classification:
    retryable: bool
    backoff_ms: int = 0


TERMINAL = Classification(retryable=False)


class ErrorClassifier(Protocol):
    def classify(self, error: BaseException, attempt: int) -> Classification: ...


class StoreErrorClassifier:
    """Default classifier for adapters that map failures into the core taxonomy."""

    def __init__(self, base_delay_ms: int = 10, max_delay_ms: int = 1000):
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    def classify(self, error: BaseException, attempt: int) -> Classification:
        if not isinstance(error, RETRYABLE_ERRORS):
            return TERMINAL
        hint = error.context.retry_after_ms
        if hint is not None:
            return Classification(retryable=True, backoff_ms=hint)
        return Classification(retryable=True, backoff_ms=self._backoff(attempt))

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311
