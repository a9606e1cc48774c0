"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - StudentId and ClassName wrap str — never pass raw keys where a name is expected
    - ClassRecord.seats_available is always >= 0
    - EnrollmentState has exactly two states; transitions live in the scheduler

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (ADR: API responses are JSON)
    - Seat counts stored as ASCII decimal: matches records written by the tuple-layer tooling
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import NewType

from scheduling.core.errors import MalformedValueError


# ─── Identity Types ──────────────────────────────────────────────

StudentId = NewType("StudentId", str)
ClassName = NewType("ClassName", str)


# ─── Enums ───────────────────────────────────────────────────────

class EnrollmentState(str, Enum):
    """Per (student, class) state. Presence of an AttendanceRecord means ENROLLED."""
    NOT_ENROLLED = "not_enrolled"
    ENROLLED = "enrolled"


# ─── Records ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class ClassRecord:
    name: ClassName
    seats_available: int


@dataclass(frozen=True)
class EnrollmentChange:
    """Outcome of signup/drop. changed=False means the call was an idempotent no-op."""
    student_id: StudentId
    class_name: ClassName
    state: EnrollmentState
    changed: bool


ATTENDANCE_MARKER = b""


def encode_seats(seats: int) -> bytes:
    return str(seats).encode("ascii")


def decode_seats(value: bytes) -> int:
    """Parse a stored seat count; anything encode_seats() would not write is corruption."""
    if not isinstance(value, bytes) or not value.isdigit():
        raise MalformedValueError(f"seat count {value!r} is not a non-negative integer")
    seats = int(value)
    if encode_seats(seats) != value:
        raise MalformedValueError(f"seat count {value!r} has leading zeros")
    return seats


class ClassListing(Sequence):
    """Immutable, ordered, duplicate-free view of class names from one range scan.

    Iteration is restartable: every iter() walks the same snapshot from the start.
    """

    def __init__(self, names: Sequence[str]):
        self._names = tuple(names)

    def __getitem__(self, index):
        return self._names[index]

    def __len__(self) -> int:
        return len(self._names)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ClassListing):
            return self._names == other._names
        if isinstance(other, (list, tuple)):
            return list(self._names) == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"ClassListing({list(self._names)!r})"
