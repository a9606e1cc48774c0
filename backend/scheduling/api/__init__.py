"""API Layer — FastAPI routes, dependencies and error handlers.

Invariants:
    - Routes never touch the store directly; they call ClassScheduler with the shared runner
"""
