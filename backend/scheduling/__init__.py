"""Class Scheduling Engine — transactional enrollment over an ordered key-value store.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)

Design Decisions:
    - Empty __init__.py: explicit imports only, no star exports
"""
