"""Boundary Protocols: contracts between core and the surrounding service.

Invariants:
    - Core NEVER imports from services/ or schemas/; dependency arrows point inward only
    - Collaborators (event consumers) are injected, never looked up globally

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
"""

from datetime import datetime
from typing import Protocol

from arena.core.events import ArenaEvent


class QueueEntryLike(Protocol):
    """Structural contract for a waiting player as the scoring functions see it."""
    player_id: str
    level: int
    rating: float | None
    enqueued_at: datetime | None


class EventSink(Protocol):
    """Receives queue membership, match, move and session-ended events."""
    def publish(self, event: ArenaEvent) -> None: ...
