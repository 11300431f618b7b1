"""Domain Types: rich types that replace bare primitives across the codebase.

Invariants:
    - PlayerId and SessionId are opaque strings; never parsed for meaning
    - Mark.A always moves first and belongs to the first player of a match
    - All valid states encoded as Enums, no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

PlayerId = NewType("PlayerId", str)
SessionId = NewType("SessionId", str)


# ─── Value Types ─────────────────────────────────────────────────

MatchQuality = NewType("MatchQuality", float)   # 0.0-1.0


# ─── Enums ───────────────────────────────────────────────────────

class Mark(str, Enum):
    """Symbol a player writes into the grid."""
    A = "A"
    B = "B"

    @property
    def other(self) -> "Mark":
        return Mark.B if self is Mark.A else Mark.A


class SessionStatus(str, Enum):
    """Session lifecycle states. COMPLETED and ABANDONED are terminal."""
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.ABANDONED)


class SessionOutcome(str, Enum):
    """Final result of a session. None on the session while still active."""
    WIN = "win"
    DRAW = "draw"
    ABANDONED = "abandoned"


class MoveResult(str, Enum):
    """Board evaluation after an accepted move."""
    ONGOING = "ongoing"
    WIN = "win"
    DRAW = "draw"


class LineKind(str, Enum):
    ROW = "row"
    COLUMN = "column"
    DIAGONAL = "diagonal"


class QueueChange(str, Enum):
    """Why a queue entry appeared or disappeared."""
    JOINED = "joined"
    LEFT = "left"
    MATCHED = "matched"
    EXPIRED = "expired"
