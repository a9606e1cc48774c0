"""ORM Models — the single table backing the ordered key-value store.

Invariants:
    - All models inherit from Base (db/base.py)

Design Decisions:
    - Imported here so Base.metadata is populated before create_all / autogenerate
"""

from scheduling.models.key_value import KeyValuePair  # noqa: F401
