"""Core Layer — pure domain logic, no IO, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - Store access is only described here (store_protocols), never performed

Design Decisions:
    - Functional core separated from imperative shell (ADR: impureim sandwich)
"""
