"""Arena: matchmaking, energy gating and verified tic-tac-toe sessions.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
