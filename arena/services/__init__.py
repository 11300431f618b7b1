"""Services Layer: lock-guarded shells around the pure core.

Invariants:
    - Shared mutable state (queue map, session map) lives only here
    - Services own their locks; core functions are called while holding them
"""
