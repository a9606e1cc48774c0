"""SQL Key-Value Store — CRUD, ordering, rollback and error mapping against SQLite.

Invariants:
    - Range reads come back in key byte order, honouring limit and reverse
    - Uncommitted (cancelled) transactions leave nothing behind
    - Read-only transactions reject writes
    - Driver failures map into ConflictError / StoreConnectionError / DatabaseError
    - The scheduler runs end to end on the SQL adapter; concurrent signups never oversell
"""

import asyncio

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from scheduling.core.domain_types import EnrollmentChange
from scheduling.core.errors import (
    CapacityError,
    ConflictError,
    DatabaseError,
    StoreConnectionError,
    ValidationError,
)
from scheduling.core.subspace import SchedulingNamespace
from scheduling.infrastructure.directory import KeyValueDirectory
from scheduling.infrastructure.kv_store import SqlKeyValueStore, map_db_error
from scheduling.services.class_scheduler import ClassScheduler
from scheduling.services.transaction_runner import TransactionRunner


@pytest.fixture
async def sql_store(tmp_path):
    store = SqlKeyValueStore(f"sqlite+aiosqlite:///{tmp_path / 'kv.db'}")
    await store.create_schema()
    yield store
    await store.dispose()


async def _put(store, pairs):
    tr = await store.begin_transaction()
    for k, v in pairs:
        await tr.set(k, v)
    await tr.commit()


async def test_set_get_commit(sql_store):
    await _put(sql_store, [(b"k", b"v")])

    tr = await sql_store.begin_transaction(read_only=True)
    assert await tr.get(b"k") == b"v"
    assert await tr.get(b"missing") is None
    await tr.cancel()


async def test_set_overwrites(sql_store):
    await _put(sql_store, [(b"k", b"v1")])
    await _put(sql_store, [(b"k", b"v2")])

    tr = await sql_store.begin_transaction(read_only=True)
    assert await tr.get(b"k") == b"v2"
    await tr.cancel()


async def test_get_range_is_byte_ordered(sql_store):
    keys = [b"a\xff", b"a", b"a\x00", b"b", b"\x00", b"a\x01"]
    await _put(sql_store, [(k, b"") for k in keys])

    tr = await sql_store.begin_transaction(read_only=True)
    forward = [k for k, _ in await tr.get_range(b"a", b"b")]
    limited = [k for k, _ in await tr.get_range(b"a", b"b", limit=2)]
    backward = [k for k, _ in await tr.get_range(b"a", b"b", reverse=True)]
    await tr.cancel()

    assert forward == [b"a", b"a\x00", b"a\x01", b"a\xff"]
    assert limited == [b"a", b"a\x00"]
    assert backward == list(reversed(forward))


async def test_clear_and_clear_range(sql_store):
    await _put(sql_store, [(b"a", b"1"), (b"b", b"2"), (b"c", b"3"), (b"d", b"4")])

    tr = await sql_store.begin_transaction()
    await tr.clear(b"a")
    await tr.clear_range(b"b", b"d")
    await tr.commit()

    tr = await sql_store.begin_transaction(read_only=True)
    assert await tr.get_range(b"\x00", b"\xff") == [(b"d", b"4")]
    await tr.cancel()


async def test_cancel_discards_writes(sql_store):
    tr = await sql_store.begin_transaction()
    await tr.set(b"k", b"v")
    await tr.cancel()
    await tr.cancel()

    tr = await sql_store.begin_transaction(read_only=True)
    assert await tr.get(b"k") is None
    await tr.cancel()


async def test_read_only_rejects_writes(sql_store):
    tr = await sql_store.begin_transaction(read_only=True)
    with pytest.raises(ValidationError):
        await tr.set(b"k", b"v")
    with pytest.raises(ValidationError):
        await tr.clear_range(b"a", b"b")
    await tr.cancel()


async def test_health_check(sql_store):
    assert await sql_store.health_check() is True


async def test_scheduler_end_to_end_on_sql(sql_store):
    runner = TransactionRunner(sql_store)
    prefix = await KeyValueDirectory(runner).open_or_create_namespace(("scheduling",))
    scheduler = ClassScheduler(SchedulingNamespace.from_prefix(prefix))
    art = "art 101 9:00"

    await scheduler.initialize(runner, [art, "bio 201 10:00"], 2)
    await scheduler.signup(runner, "s1", art)
    await scheduler.signup(runner, "s2", art)
    with pytest.raises(CapacityError):
        await scheduler.signup(runner, "s3", art)
    await scheduler.drop(runner, "s1", art)

    assert list(await scheduler.list_classes(runner)) == [art, "bio 201 10:00"]
    assert await scheduler.seats_available(runner, art) == 1
    assert await scheduler.classes_for_student(runner, "s2") == [art]


async def test_concurrent_signups_respect_capacity_on_sql(sql_store):
    runner = TransactionRunner(sql_store)
    prefix = await KeyValueDirectory(runner).open_or_create_namespace(("scheduling",))
    scheduler = ClassScheduler(SchedulingNamespace.from_prefix(prefix))
    art = "art 101 9:00"
    students = [f"s{i}" for i in range(10)]
    await scheduler.initialize(runner, [art], 3)

    results = await asyncio.gather(
        *(scheduler.signup(runner, s, art) for s in students),
        return_exceptions=True,
    )

    enrolled = [r for r in results if isinstance(r, EnrollmentChange)]
    full = [r for r in results if isinstance(r, CapacityError)]
    assert len(enrolled) == 3
    assert len(full) == 7
    assert await scheduler.seats_available(runner, art) == 0
    attending = [s for s in students if await scheduler.is_enrolled(runner, s, art)]
    assert sorted(attending) == sorted(r.student_id for r in enrolled)


async def test_directory_prefix_is_stable_on_sql(sql_store):
    runner = TransactionRunner(sql_store)
    directory = KeyValueDirectory(runner)

    first = await directory.open_or_create_namespace(("scheduling",))
    again = await directory.open_or_create_namespace(("scheduling",))
    other = await directory.open_or_create_namespace(("other",))

    assert first == again
    assert other != first


# ==============================================================================
# Error mapping
# ==============================================================================


class _PgError(Exception):
    def __init__(self, sqlstate):
        super().__init__(f"sqlstate {sqlstate}")
        self.sqlstate = sqlstate


@pytest.mark.parametrize("sqlstate", ["40001", "40P01"])
def test_serialization_failures_are_conflicts(sqlstate):
    err = OperationalError("COMMIT", {}, _PgError(sqlstate))
    assert isinstance(map_db_error(err, "commit"), ConflictError)


def test_sqlite_lock_is_conflict():
    err = OperationalError("UPDATE", {}, Exception("database is locked"))
    assert isinstance(map_db_error(err, "set"), ConflictError)


def test_integrity_error_is_conflict():
    err = IntegrityError("INSERT", {}, Exception("duplicate key"))
    assert isinstance(map_db_error(err, "set"), ConflictError)


def test_operational_error_is_connection_error():
    err = OperationalError("SELECT", {}, Exception("server closed the connection"))
    assert isinstance(map_db_error(err, "get"), StoreConnectionError)


def test_os_error_is_connection_error():
    assert isinstance(
        map_db_error(ConnectionRefusedError("refused"), "get"), StoreConnectionError,
    )


def test_other_driver_errors_are_terminal():
    err = ProgrammingError("SELECT", {}, Exception("syntax error"))
    mapped = map_db_error(err, "get")
    assert isinstance(mapped, DatabaseError)
    assert mapped.operation == "get"
