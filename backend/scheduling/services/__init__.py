"""Services Layer — transaction runner and the class scheduler built on it.

Invariants:
    - Services reach the store only through a Transactor
    - Work closures passed to a Transactor touch nothing but the transaction

Design Decisions:
    - Runner and scheduler kept in separate modules: the runner is reusable by any
      future service sharing the store (ADR: single responsibility)
"""
