"""Class Scheduler — initialize, list, signup and drop over the scheduling namespace.

Invariants:
    - seats_available never goes below 0
    - An AttendanceRecord exists iff the student is counted against the class's capacity
    - signup on an enrolled pair and drop on an unenrolled pair change nothing
    - initialize is a full reset: the whole namespace is cleared before classes are written
    - Every operation is one transaction; work closures only touch the transaction
      (they may run several times), so logging happens after db.run() returns.
      Through a TransactionRunner that is once per call. Through a BoundTransactor
      db.run() returns inside the caller's work, so a composed call's debug line
      repeats on each outer retry; the composing operation logs once at the top

Design Decisions:
    - Operations take a Transactor first: pass a TransactionRunner for a standalone call,
      or a BoundTransactor to fold the call into a caller's transaction (switch_class)
    - Business errors raised inside work abort the attempt and are never retried
"""

import logging
from collections.abc import AsyncIterator, Iterable

from scheduling.core.domain_types import (
    ATTENDANCE_MARKER,
    ClassListing,
    ClassName,
    ClassRecord,
    EnrollmentChange,
    EnrollmentState,
    StudentId,
    decode_seats,
    encode_seats,
)
from scheduling.core.errors import (
    CapacityError,
    ClassLimitError,
    ClassNotFoundError,
    ValidationError,
)
from scheduling.core.store_protocols import KeyValueTransaction
from scheduling.core.subspace import SchedulingNamespace
from scheduling.services.transaction_runner import BoundTransactor, Transactor

logger = logging.getLogger(__name__)


class ClassScheduler:
    """Enrollment operations for one scheduling namespace."""

    def __init__(
        self,
        namespace: SchedulingNamespace,
        max_classes_per_student: int | None = None,
    ):
        if max_classes_per_student is not None and max_classes_per_student < 1:
            raise ValidationError(
                "max_classes_per_student must be >= 1", "max_classes_per_student",
            )
        self.namespace = namespace
        self.max_classes_per_student = max_classes_per_student

    # -- Setup -----------------------------------------------------------------

    async def initialize(
        self,
        db: Transactor,
        class_names: Iterable[str],
        seats_per_class: int,
        *,
        deadline: float | None = None,
    ) -> int:
        """Wipe the namespace and create one ClassRecord per name. Returns class count."""
        if isinstance(class_names, str):
            raise ValidationError("class_names must be a list of names", "class_names")
        names = sorted({_require_name(n, "class_names") for n in class_names})
        if isinstance(seats_per_class, bool) or not isinstance(seats_per_class, int):
            raise ValidationError("seats_per_class must be an integer", "seats_per_class")
        if seats_per_class < 0:
            raise ValidationError("seats_per_class must be >= 0", "seats_per_class")
        seats = encode_seats(seats_per_class)

        async def work(tr: KeyValueTransaction) -> int:
            begin, end = self.namespace.full_range()
            await tr.clear_range(begin, end)
            for name in names:
                await tr.set(self.namespace.class_key(name), seats)
            return len(names)

        count = await db.run(work, deadline=deadline)
        logger.info(
            f"Initialized {count} classes with {seats_per_class} seats each",
        )
        return count

    # -- Reads -----------------------------------------------------------------

    async def list_classes(
        self, db: Transactor, *, deadline: float | None = None,
    ) -> ClassListing:
        """All class names in ascending key order, from one consistent range scan."""
        async def work(tr: KeyValueTransaction) -> ClassListing:
            begin, end = self.namespace.classes.range()
            pairs = await tr.get_range(begin, end)
            return ClassListing(
                [self.namespace.class_name_from_key(key) for key, _ in pairs],
            )

        return await db.run(work, read_only=True, deadline=deadline)

    async def list_class_records(
        self, db: Transactor, *, deadline: float | None = None,
    ) -> list[ClassRecord]:
        async def work(tr: KeyValueTransaction) -> list[ClassRecord]:
            begin, end = self.namespace.classes.range()
            pairs = await tr.get_range(begin, end)
            return [
                ClassRecord(
                    ClassName(self.namespace.class_name_from_key(key)),
                    decode_seats(value),
                )
                for key, value in pairs
            ]

        return await db.run(work, read_only=True, deadline=deadline)

    async def iter_classes(
        self,
        db: Transactor,
        batch_size: int = 100,
        *,
        deadline: float | None = None,
    ) -> AsyncIterator[str]:
        """Lazily yield class names, one read-only transaction per batch.

        Batches resume after the last key seen, so a concurrent initialize between
        batches can show a mix of old and new classes. Use list_classes() for a snapshot.
        """
        if batch_size < 1:
            raise ValidationError("batch_size must be >= 1", "batch_size")
        begin, end = self.namespace.classes.range()
        while True:
            async def work(tr: KeyValueTransaction, start: bytes = begin):
                return await tr.get_range(start, end, limit=batch_size)

            pairs = await db.run(work, read_only=True, deadline=deadline)
            for key, _ in pairs:
                yield self.namespace.class_name_from_key(key)
            if len(pairs) < batch_size:
                return
            begin = pairs[-1][0] + b"\x00"

    async def seats_available(
        self, db: Transactor, class_name: str, *, deadline: float | None = None,
    ) -> int:
        name = _require_name(class_name, "class_name")

        async def work(tr: KeyValueTransaction) -> int:
            return await self._read_seats(tr, name)

        return await db.run(work, read_only=True, deadline=deadline)

    async def is_enrolled(
        self,
        db: Transactor,
        student_id: str,
        class_name: str,
        *,
        deadline: float | None = None,
    ) -> bool:
        key = self.namespace.attendance_key(
            _require_name(student_id, "student_id"),
            _require_name(class_name, "class_name"),
        )

        async def work(tr: KeyValueTransaction) -> bool:
            return await tr.get(key) is not None

        return await db.run(work, read_only=True, deadline=deadline)

    async def classes_for_student(
        self, db: Transactor, student_id: str, *, deadline: float | None = None,
    ) -> list[str]:
        """Names of the classes the student attends, ascending."""
        student = _require_name(student_id, "student_id")

        async def work(tr: KeyValueTransaction) -> list[str]:
            begin, end = self.namespace.attends.range((student,))
            pairs = await tr.get_range(begin, end)
            return [self.namespace.attendance_from_key(key)[1] for key, _ in pairs]

        return await db.run(work, read_only=True, deadline=deadline)

    # -- Enrollment ------------------------------------------------------------

    async def signup(
        self,
        db: Transactor,
        student_id: str,
        class_name: str,
        *,
        deadline: float | None = None,
    ) -> EnrollmentChange:
        """NOT_ENROLLED -> ENROLLED if a seat is free; ENROLLED stays ENROLLED."""
        student = _require_name(student_id, "student_id")
        name = _require_name(class_name, "class_name")
        class_key = self.namespace.class_key(name)
        attendance_key = self.namespace.attendance_key(student, name)

        async def work(tr: KeyValueTransaction) -> bool:
            seats = await self._read_seats(tr, name)
            if await tr.get(attendance_key) is not None:
                return False
            if seats <= 0:
                raise CapacityError(name)
            await self._check_class_limit(tr, student)
            await tr.set(class_key, encode_seats(seats - 1))
            await tr.set(attendance_key, ATTENDANCE_MARKER)
            return True

        changed = await db.run(work, deadline=deadline)
        logger.debug(
            "Signup applied" if changed else "Signup was a no-op (already enrolled)",
            extra={"student_id": student, "class_name": name},
        )
        return EnrollmentChange(
            StudentId(student), ClassName(name), EnrollmentState.ENROLLED, changed,
        )

    async def drop(
        self,
        db: Transactor,
        student_id: str,
        class_name: str,
        *,
        deadline: float | None = None,
    ) -> EnrollmentChange:
        """ENROLLED -> NOT_ENROLLED unconditionally; NOT_ENROLLED stays NOT_ENROLLED."""
        student = _require_name(student_id, "student_id")
        name = _require_name(class_name, "class_name")
        class_key = self.namespace.class_key(name)
        attendance_key = self.namespace.attendance_key(student, name)

        async def work(tr: KeyValueTransaction) -> bool:
            if await tr.get(attendance_key) is None:
                return False
            seats = await self._read_seats(tr, name)
            await tr.clear(attendance_key)
            await tr.set(class_key, encode_seats(seats + 1))
            return True

        changed = await db.run(work, deadline=deadline)
        logger.debug(
            "Drop applied" if changed else "Drop was a no-op (not enrolled)",
            extra={"student_id": student, "class_name": name},
        )
        return EnrollmentChange(
            StudentId(student), ClassName(name), EnrollmentState.NOT_ENROLLED, changed,
        )

    async def switch_class(
        self,
        db: Transactor,
        student_id: str,
        old_class: str,
        new_class: str,
        *,
        deadline: float | None = None,
    ) -> EnrollmentChange:
        """Drop old_class and sign up for new_class atomically: both happen or neither."""
        async def work(tr: KeyValueTransaction) -> EnrollmentChange:
            nested = BoundTransactor(tr)
            await self.drop(nested, student_id, old_class)
            return await self.signup(nested, student_id, new_class)

        change = await db.run(work, deadline=deadline)
        logger.info(
            f"Switched class '{old_class}' -> '{new_class}'",
            extra={"student_id": student_id, "class_name": new_class},
        )
        return change

    # -- Helpers ---------------------------------------------------------------

    async def _read_seats(self, tr: KeyValueTransaction, name: str) -> int:
        value = await tr.get(self.namespace.class_key(name))
        if value is None:
            raise ClassNotFoundError(name)
        return decode_seats(value)

    async def _check_class_limit(self, tr: KeyValueTransaction, student: str) -> None:
        limit = self.max_classes_per_student
        if limit is None:
            return
        begin, end = self.namespace.attends.range((student,))
        current = await tr.get_range(begin, end, limit=limit)
        if len(current) >= limit:
            raise ClassLimitError(student, limit)


def _require_name(value: object, field: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field} must be a non-empty string", field)
    return value
