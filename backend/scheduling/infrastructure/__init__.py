"""Infrastructure Layer — store adapter, directory allocation, and cross-cutting concerns.

Invariants:
    - Infrastructure depends on core/errors and core protocols only, never on scheduler logic
    - All database calls wrapped with error mapping into the core taxonomy

Design Decisions:
    - Adapters over raw clients (ADR: single responsibility)
"""
