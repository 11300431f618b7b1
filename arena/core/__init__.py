"""Core Layer: pure domain logic, no locks, no IO, no wall clock.

Invariants:
    - No module in core/ imports from services/, schemas/, or infrastructure/
    - Every time-dependent function takes `now` as an argument
    - Domain failures are returned as Rejection values, never raised
"""
