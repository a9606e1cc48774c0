"""Subspaces — byte-prefix partitions of the ordered key space.

Invariants:
    - Every key a Subspace packs starts with its raw prefix
    - unpack() rejects keys outside the prefix with MalformedKeyError
    - SchedulingNamespace.classes and .attends never overlap: a range scan over one
      never observes keys of the other

Design Decisions:
    - Subspace is immutable and cheap to derive (sub()), so services hold them as attributes
    - Region names "class" and "attends" are tuple-encoded strings under the namespace prefix
"""

from dataclasses import dataclass

from scheduling.core import tuple_codec
from scheduling.core.errors import MalformedKeyError

CLASS_REGION = "class"
ATTENDS_REGION = "attends"


@dataclass(frozen=True)
class Subspace:
    """A fixed key prefix plus tuple packing relative to it."""
    raw_prefix: bytes = b""

    @classmethod
    def from_tuple(cls, prefix: tuple = (), raw_prefix: bytes = b"") -> "Subspace":
        return cls(raw_prefix + tuple_codec.pack(prefix))

    @property
    def key(self) -> bytes:
        return self.raw_prefix

    def pack(self, elements: tuple = ()) -> bytes:
        return self.raw_prefix + tuple_codec.pack(elements)

    def unpack(self, key: bytes) -> tuple:
        if not self.contains(key):
            raise MalformedKeyError("key is outside subspace", key)
        return tuple_codec.unpack(key, prefix_len=len(self.raw_prefix))

    def range(self, elements: tuple = ()) -> tuple[bytes, bytes]:
        """[begin, end) covering every key that extends `elements` in this subspace."""
        p = self.pack(elements)
        return p + b"\x00", p + b"\xff"

    def contains(self, key: bytes) -> bool:
        return key.startswith(self.raw_prefix)

    def sub(self, *elements) -> "Subspace":
        return Subspace(self.pack(tuple(elements)))

    def __getitem__(self, element) -> "Subspace":
        return self.sub(element)


class SchedulingNamespace:
    """Root namespace for one scheduling instance, split into class and attendance regions."""

    def __init__(self, root: Subspace):
        self.root = root
        self.classes = root.sub(CLASS_REGION)
        self.attends = root.sub(ATTENDS_REGION)

    @classmethod
    def from_prefix(cls, prefix: bytes) -> "SchedulingNamespace":
        return cls(Subspace(prefix))

    def class_key(self, class_name: str) -> bytes:
        return self.classes.pack((class_name,))

    def attendance_key(self, student_id: str, class_name: str) -> bytes:
        return self.attends.pack((student_id, class_name))

    def full_range(self) -> tuple[bytes, bytes]:
        """Every key owned by this namespace (both regions)."""
        return self.root.range()

    def class_name_from_key(self, key: bytes) -> str:
        decoded = self.classes.unpack(key)
        if len(decoded) != 1 or not isinstance(decoded[0], str):
            raise MalformedKeyError("class key does not hold a single name", key)
        return decoded[0]

    def attendance_from_key(self, key: bytes) -> tuple[str, str]:
        decoded = self.attends.unpack(key)
        if len(decoded) != 2 or not all(isinstance(d, str) for d in decoded):
            raise MalformedKeyError("attendance key is not (student, class)", key)
        return decoded[0], decoded[1]
