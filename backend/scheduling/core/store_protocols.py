"""Boundary Protocols — the ordered key-value store contract consumed by the core.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - get_range returns (key, value) pairs in ascending key order (descending if reverse)
    - Adapters raise only SchedulingError subclasses: ConflictError / StoreConnectionError
      for transient failures, DatabaseError for terminal ones
    - A transaction that is cancelled or never committed leaves no writes behind

Design Decisions:
    - Protocol over ABC: structural subtyping, adapters need no inheritance hierarchy
    - All operations async, including set/clear: SQL-backed adapters do IO on every call
"""

from typing import Protocol


class KeyValueTransaction(Protocol):
    """One atomic, serializable unit of reads and writes."""
    read_only: bool

    async def get(self, key: bytes) -> bytes | None: ...
    async def get_range(
        self, begin: bytes, end: bytes, limit: int = 0, reverse: bool = False,
    ) -> list[tuple[bytes, bytes]]: ...
    async def set(self, key: bytes, value: bytes) -> None: ...
    async def clear(self, key: bytes) -> None: ...
    async def clear_range(self, begin: bytes, end: bytes) -> None: ...
    async def commit(self) -> None: ...
    async def cancel(self) -> None: ...


class KeyValueStore(Protocol):
    """Factory for transactions against the shared store."""
    async def begin_transaction(self, read_only: bool = False) -> KeyValueTransaction: ...


class DirectoryLayer(Protocol):
    """Allocates stable short prefixes for named paths."""
    async def open_or_create_namespace(self, path: tuple[str, ...]) -> bytes: ...
