"""API test fixtures — FastAPI test client over an in-memory store.

Invariants:
    - get_runtime dependency overridden per test with a fresh MemoryStore
    - Lifespan is not run: no database, no directory allocation

Design Decisions:
    - httpx ASGITransport: exercises routing, validation and error handlers in-process
"""

import pytest
from httpx import ASGITransport, AsyncClient

from scheduling.api.deps import SchedulingRuntime, get_runtime
from scheduling.core.error_classifier import StoreErrorClassifier
from scheduling.core.subspace import SchedulingNamespace, Subspace
from scheduling.main import app
from scheduling.services.class_scheduler import ClassScheduler
from scheduling.services.transaction_runner import TransactionRunner

from tests.services.mock_store import MemoryStore


@pytest.fixture
def runtime():
    runner = TransactionRunner(
        MemoryStore(),
        classifier=StoreErrorClassifier(base_delay_ms=1, max_delay_ms=5),
    )
    scheduler = ClassScheduler(
        SchedulingNamespace(Subspace.from_tuple(("scheduling",))),
    )
    return SchedulingRuntime(transactor=runner, scheduler=scheduler)


@pytest.fixture
async def client(runtime):
    """FastAPI test client with the scheduling runtime overridden."""
    app.dependency_overrides[get_runtime] = lambda: runtime

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
