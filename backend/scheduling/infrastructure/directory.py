"""Key-Value Directory — allocates a stable short prefix per named path, inside the store.

Invariants:
    - The same path always resolves to the same prefix once created
    - Allocated prefixes are tuple-encoded integers, so no prefix is a prefix of another
    - Directory metadata lives under the reserved 0xfe node prefix, outside every
      allocated namespace
    - Concurrent creators of the same path race through the store: the loser conflicts,
      retries, and reads the winner's prefix

Design Decisions:
    - Runs as ordinary work through a Transactor, so any KeyValueStore gets a directory
      layer for free (SQL adapter in production, in-memory store in tests)
"""

import logging

from scheduling.core import tuple_codec
from scheduling.core.errors import MalformedValueError, ValidationError
from scheduling.core.store_protocols import KeyValueTransaction
from scheduling.core.subspace import Subspace
from scheduling.services.transaction_runner import Transactor

logger = logging.getLogger(__name__)

NODE_PREFIX = b"\xfe"


class KeyValueDirectory:
    """DirectoryLayer implementation storing its path table in the key-value store."""

    def __init__(self, db: Transactor):
        self.db = db
        self.nodes = Subspace(NODE_PREFIX)
        self._counter_key = self.nodes.pack(("counter",))

    async def open_or_create_namespace(self, path: tuple[str, ...]) -> bytes:
        path = tuple(path)
        if not path or not all(isinstance(p, str) and p for p in path):
            raise ValidationError("namespace path must be non-empty strings", "path")
        node_key = self.nodes.pack(("path",) + path)

        async def work(tr: KeyValueTransaction) -> tuple[bytes, bool]:
            existing = await tr.get(node_key)
            if existing is not None:
                return existing, False
            counter = await tr.get(self._counter_key)
            allocated = _parse_counter(counter) + 1
            prefix = tuple_codec.pack((allocated,))
            await tr.set(self._counter_key, str(allocated).encode("ascii"))
            await tr.set(node_key, prefix)
            return prefix, True

        prefix, created = await self.db.run(work)
        if created:
            logger.info(f"Allocated namespace {'/'.join(path)} -> {prefix.hex()}")
        return prefix


def _parse_counter(value: bytes | None) -> int:
    if value is None:
        return 0
    try:
        return int(value.decode("ascii"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedValueError(f"directory counter {value!r} is not an integer") from e
