"""SQL Key-Value Store — ordered transactional key-value store over an async SQLAlchemy engine.

Invariants:
    - One AsyncSession per transaction; nothing is shared between transactions
    - get_range returns rows ordered by key bytes (bytea / BLOB compare with memcmp)
    - A transaction that is cancelled (or never committed) is rolled back, no partial writes
    - All SQLAlchemy exceptions mapped into core/errors.py: serialization failures,
      deadlocks and SQLite lock contention → ConflictError; connection loss →
      StoreConnectionError; anything else → DatabaseError
    - Read-only transactions reject writes and are always rolled back

Design Decisions:
    - Conflict detection delegated to the database's SERIALIZABLE isolation: the adapter
      only reports what the database detects (no MVCC of its own)
    - SQLite driven with explicit BEGIN so reads join the transaction (pysqlite defers BEGIN
      until the first write otherwise)
    - Singleton store_manager initialized on startup: FastAPI lifespan manages lifecycle
      (ADR: no global import side effects)
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import delete, event, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, InterfaceError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from scheduling.core.errors import (
    ConflictError,
    DatabaseError,
    SchedulingError,
    StoreConnectionError,
    ValidationError,
)
from scheduling.db.base import Base
from scheduling.models.key_value import KeyValuePair

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected
_CONFLICT_SQLSTATES = {"40001", "40P01"}
_CONFLICT_MESSAGES = ("database is locked", "database table is locked", "deadlock")


def map_db_error(e: Exception, operation: str) -> SchedulingError:
    """Translate a driver/SQLAlchemy failure into the scheduling error taxonomy."""
    if isinstance(e, DBAPIError):
        orig = e.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        detail = str(orig).lower()
        if sqlstate in _CONFLICT_SQLSTATES or any(m in detail for m in _CONFLICT_MESSAGES):
            return ConflictError(f"Transaction conflict during {operation}")
        if isinstance(e, IntegrityError):
            return ConflictError(f"Concurrent write collided during {operation}")
        if e.connection_invalidated or isinstance(e, (OperationalError, InterfaceError)):
            return StoreConnectionError(f"{operation}: {orig}")
        return DatabaseError(str(orig), operation)
    if isinstance(e, (ConnectionError, OSError)):
        return StoreConnectionError(f"{operation}: {e}")
    return DatabaseError("Database operation failed", operation)


@asynccontextmanager
async def _mapped_errors(operation: str) -> AsyncGenerator[None, None]:
    try:
        yield
    except (SQLAlchemyError, OSError) as e:
        mapped = map_db_error(e, operation)
        logger.warning(
            f"DB {operation} failed: {e}",
            extra={"error_code": mapped.code},
        )
        raise mapped from e


class SqlTransaction:
    """KeyValueTransaction backed by one AsyncSession."""

    def __init__(self, session: AsyncSession, dialect: str, read_only: bool = False):
        self.session = session
        self.dialect = dialect
        self.read_only = read_only
        self._closed = False

    async def get(self, key: bytes) -> bytes | None:
        async with _mapped_errors("get"):
            result = await self.session.execute(
                select(KeyValuePair.value).where(KeyValuePair.key == key),
            )
            value = result.scalar_one_or_none()
        return bytes(value) if value is not None else None

    async def get_range(
        self, begin: bytes, end: bytes, limit: int = 0, reverse: bool = False,
    ) -> list[tuple[bytes, bytes]]:
        order = KeyValuePair.key.desc() if reverse else KeyValuePair.key.asc()
        stmt = (
            select(KeyValuePair.key, KeyValuePair.value)
            .where(KeyValuePair.key >= begin, KeyValuePair.key < end)
            .order_by(order)
        )
        if limit:
            stmt = stmt.limit(limit)
        async with _mapped_errors("get_range"):
            rows = (await self.session.execute(stmt)).all()
        return [(bytes(k), bytes(v)) for k, v in rows]

    async def set(self, key: bytes, value: bytes) -> None:
        self._check_writable()
        async with _mapped_errors("set"):
            await self.session.execute(self._upsert(key, value))

    async def clear(self, key: bytes) -> None:
        self._check_writable()
        async with _mapped_errors("clear"):
            await self.session.execute(
                delete(KeyValuePair)
                .where(KeyValuePair.key == key)
                .execution_options(synchronize_session=False),
            )

    async def clear_range(self, begin: bytes, end: bytes) -> None:
        self._check_writable()
        async with _mapped_errors("clear_range"):
            await self.session.execute(
                delete(KeyValuePair)
                .where(KeyValuePair.key >= begin, KeyValuePair.key < end)
                .execution_options(synchronize_session=False),
            )

    async def commit(self) -> None:
        if self.read_only:
            await self.cancel()
            return
        try:
            async with _mapped_errors("commit"):
                await self.session.commit()
        finally:
            await self._close()

    async def cancel(self) -> None:
        if self._closed:
            return
        try:
            await self.session.rollback()
        except SQLAlchemyError as e:
            # connection already gone; the database discards the transaction
            logger.warning(f"Rollback failed: {e}")
        finally:
            await self._close()

    async def _close(self) -> None:
        if not self._closed:
            self._closed = True
            await self.session.close()

    def _check_writable(self) -> None:
        if self.read_only:
            raise ValidationError("Write attempted in a read-only transaction", "read_only")

    def _upsert(self, key: bytes, value: bytes):
        if self.dialect == "postgresql":
            stmt = postgresql.insert(KeyValuePair).values(key=key, value=value)
        elif self.dialect == "sqlite":
            stmt = sqlite.insert(KeyValuePair).values(key=key, value=value)
        else:
            raise DatabaseError(f"dialect '{self.dialect}' has no upsert", "set")
        return stmt.on_conflict_do_update(
            index_elements=[KeyValuePair.key], set_={"value": value},
        )


class SqlKeyValueStore:
    """KeyValueStore over an async engine with pooling and health checks."""

    def __init__(
        self,
        database_url: str,
        pool_size: int = 20,
        max_overflow: int = 10,
        isolation_level: str = "SERIALIZABLE",
    ):
        self.engine = _create_engine(database_url, pool_size, max_overflow, isolation_level)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    async def begin_transaction(self, read_only: bool = False) -> SqlTransaction:
        return SqlTransaction(self._session_factory(), self.dialect, read_only)

    async def create_schema(self) -> None:
        """Create kv tables if missing (local runs and tests; production uses alembic)."""
        async with _mapped_errors("create_schema"):
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Store health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


def _create_engine(
    database_url: str, pool_size: int, max_overflow: int, isolation_level: str,
) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        engine = create_async_engine(database_url)
        _use_explicit_sqlite_transactions(engine)
        return engine
    return create_async_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        isolation_level=isolation_level,
    )


def _use_explicit_sqlite_transactions(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


# Singleton (initialized on startup)
store_manager: SqlKeyValueStore | None = None


def init_store(database_url: str, **kwargs) -> SqlKeyValueStore:
    global store_manager
    store_manager = SqlKeyValueStore(database_url, **kwargs)
    return store_manager
