"""SQLAlchemy Declarative Base — shared base class for the key-value tables.

Invariants:
    - All models inherit from Base
    - Base is the single source of truth for table metadata (alembic + create_schema)

Design Decisions:
    - Separate file for Base: avoids circular imports between models and the store adapter
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all scheduling ORM models."""
    pass
