"""KeyValuePair ORM — one row per key of the ordered key-value store.

Invariants:
    - key is the primary key; range scans rely on its byte ordering (bytea / BLOB memcmp)
    - value is never NULL; an empty marker is stored as b""

Design Decisions:
    - LargeBinary for both columns: keys are tuple-encoded bytes, not text
"""

from sqlalchemy import LargeBinary
from sqlalchemy.orm import Mapped, mapped_column

from scheduling.db.base import Base


class KeyValuePair(Base):
    """A single key and its value."""
    __tablename__ = "kv_pairs"

    key: Mapped[bytes] = mapped_column(LargeBinary, primary_key=True)
    value: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
