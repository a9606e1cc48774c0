"""Class Scheduling API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map SchedulingError → structured JSON responses
    - Store, namespace and runner initialized on startup via lifespan, disposed on shutdown

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Namespace prefix resolved once at startup through the directory layer; every
      request reuses it
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from scheduling.api.deps import SchedulingRuntime, set_runtime
from scheduling.api.error_handlers import register_error_handlers
from scheduling.api.routes import classes, health
from scheduling.config import Settings, get_settings
from scheduling.core.subspace import SchedulingNamespace
from scheduling.infrastructure.directory import KeyValueDirectory
from scheduling.infrastructure.kv_store import init_store
from scheduling.infrastructure.observability import setup_logging
from scheduling.services.class_scheduler import ClassScheduler
from scheduling.services.transaction_runner import TransactionRunner

logger = logging.getLogger(__name__)


async def build_runtime(store, settings: Settings) -> SchedulingRuntime:
    """Wire runner, namespace and scheduler for a store."""
    runner = TransactionRunner.from_settings(store, settings)
    prefix = await KeyValueDirectory(runner).open_or_create_namespace(
        tuple(settings.namespace_path),
    )
    scheduler = ClassScheduler(
        SchedulingNamespace.from_prefix(prefix),
        max_classes_per_student=settings.max_classes_per_student,
    )
    return SchedulingRuntime(transactor=runner, scheduler=scheduler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    store = init_store(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        isolation_level=settings.database_isolation_level,
    )
    if settings.create_schema_on_startup:
        await store.create_schema()
    set_runtime(await build_runtime(store, settings))
    logger.info("Class Scheduling API started")
    yield
    logger.info("Class Scheduling API shutting down")
    set_runtime(None)
    await store.dispose()


app = FastAPI(
    title="Class Scheduling API", version="1.0.0", lifespan=lifespan,
)

# Routes — explicit registration
app.include_router(health.router)
app.include_router(classes.router)

register_error_handlers(app)
