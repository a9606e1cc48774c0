"""Service test fixtures — in-memory optimistic store, runner and scheduler.

Invariants:
    - Every test gets a fresh MemoryStore (no state shared between tests)
    - Runner backoff is shrunk to milliseconds so conflict-heavy tests stay fast

Design Decisions:
    - MemoryStore over SQLite for service tests: conflicts are deterministic and
      can be injected (ADR: SQL adapter has its own tests under tests/infrastructure)
"""

import pytest

from scheduling.core.error_classifier import StoreErrorClassifier
from scheduling.core.subspace import SchedulingNamespace, Subspace
from scheduling.services.class_scheduler import ClassScheduler
from scheduling.services.transaction_runner import TransactionRunner

from tests.services.mock_store import MemoryStore


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def fast_classifier():
    return StoreErrorClassifier(base_delay_ms=1, max_delay_ms=5)


@pytest.fixture
def runner(store, fast_classifier):
    return TransactionRunner(store, classifier=fast_classifier)


@pytest.fixture
def namespace():
    return SchedulingNamespace(Subspace.from_tuple(("scheduling",)))


@pytest.fixture
def scheduler(namespace):
    return ClassScheduler(namespace)
