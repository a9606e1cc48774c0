"""Route Dependencies — the runner and scheduler shared by every request.

Invariants:
    - Runtime is set exactly once by the lifespan before requests are served
    - Requests share one TransactionRunner; each call still gets its own transaction

Design Decisions:
    - Module-level runtime, overridable in tests via app.dependency_overrides
"""

from dataclasses import dataclass

from scheduling.services.class_scheduler import ClassScheduler
from scheduling.services.transaction_runner import Transactor


@dataclass
class SchedulingRuntime:
    transactor: Transactor
    scheduler: ClassScheduler


_runtime: SchedulingRuntime | None = None


def set_runtime(runtime: SchedulingRuntime | None) -> None:
    global _runtime
    _runtime = runtime


def get_runtime() -> SchedulingRuntime:
    if _runtime is None:
        raise RuntimeError("Scheduling runtime not initialized")
    return _runtime
