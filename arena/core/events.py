"""Lifecycle Events: typed notifications for the session lifecycle consumer.

Events form a log of what the queue and the directory did. They are
immutable and built after the mutation they describe has completed, so a
consumer never observes a half-applied change.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Union

from arena.core.domain_types import (
    Mark, MatchQuality, MoveResult, PlayerId, QueueChange, SessionId, SessionOutcome,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class QueueMembershipChanged:
    """A player joined or left the matchmaking queue."""

    player_id: PlayerId
    change: QueueChange
    queue_size: int
    occurred_at: datetime = field(default_factory=_utcnow)

    @property
    def event_type(self) -> str:
        return "queue_membership_changed"

    def to_dict(self) -> dict:
        return {
            "type": self.event_type,
            "player_id": self.player_id,
            "change": self.change.value,
            "queue_size": self.queue_size,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class MatchFound:
    """Two players were paired and their session created."""

    session_id: SessionId
    player_one_id: PlayerId
    player_two_id: PlayerId
    quality: MatchQuality
    occurred_at: datetime = field(default_factory=_utcnow)

    @property
    def event_type(self) -> str:
        return "match_found"

    def to_dict(self) -> dict:
        return {
            "type": self.event_type,
            "session_id": self.session_id,
            "players": [self.player_one_id, self.player_two_id],
            "quality": self.quality,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class MoveApplied:
    """A move was accepted. next_turn is None when the move ended the game."""

    session_id: SessionId
    player_id: PlayerId
    row: int
    col: int
    grid: tuple[tuple[str | None, ...], ...]
    result: MoveResult
    next_turn: Mark | None
    occurred_at: datetime = field(default_factory=_utcnow)

    @property
    def event_type(self) -> str:
        return "move_applied"

    def to_dict(self) -> dict:
        return {
            "type": self.event_type,
            "session_id": self.session_id,
            "player_id": self.player_id,
            "row": self.row,
            "col": self.col,
            "grid": [list(r) for r in self.grid],
            "result": self.result.value,
            "next_turn": self.next_turn.value if self.next_turn else None,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class SessionEnded:
    """A session reached a terminal status."""

    session_id: SessionId
    outcome: SessionOutcome
    winner: PlayerId | None
    occurred_at: datetime = field(default_factory=_utcnow)

    @property
    def event_type(self) -> str:
        return "session_ended"

    def to_dict(self) -> dict:
        return {
            "type": self.event_type,
            "session_id": self.session_id,
            "outcome": self.outcome.value,
            "winner": self.winner,
            "occurred_at": self.occurred_at.isoformat(),
        }


ArenaEvent = Union[QueueMembershipChanged, MatchFound, MoveApplied, SessionEnded]
