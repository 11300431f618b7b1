"""Session Directory: live sessions by id, with per-session serialization of moves.

Invariants:
    - A session enters the directory only through create(match_result)
    - The directory lock guards the map; each session has its own lock guarding its state
    - Moves on different sessions never wait on each other
    - remove() succeeds only for terminal sessions
    - Lock order is always directory, then session; never the reverse
    - A session's events are published while its lock is held, so subscribers see
      match_found, then every move_applied in move order, then session_ended

Design Decisions:
    - Explicitly constructed instance, no module-level registry
    - get() hands out the live GameSession for reads; view() returns a dict copy taken
      under the session lock for callers that need a consistent picture
    - A sink must not call back into the same session synchronously; it may act on others
"""

import logging
import threading
from dataclasses import dataclass, field

from arena.core.collaborator_protocols import EventSink
from arena.core.domain_types import SessionId
from arena.core.errors import (
    Rejection, not_a_participant, session_exists, session_not_found, session_not_terminal,
)
from arena.core.events import ArenaEvent, MatchFound, MoveApplied, SessionEnded
from arena.core.session_state import (
    GameSession, MoveOutcome, abandon, apply_move, describe, start_session,
)
from arena.services.matchmaking_queue import Clock, MatchResult, utcnow
from arena.services.publishing import publish_events

logger = logging.getLogger(__name__)


@dataclass
class _SessionSlot:
    session: GameSession
    lock: threading.Lock = field(default_factory=threading.Lock)


class SessionDirectory:
    """All sessions created from match results and not yet retired."""

    def __init__(self, event_sink: EventSink | None = None, clock: Clock = utcnow):
        self._slots: dict[str, _SessionSlot] = {}
        self._lock = threading.Lock()
        self._event_sink = event_sink
        self._clock = clock

    def create(self, match: MatchResult) -> GameSession | Rejection:
        """Start the session for a pairing; player_one plays Mark.A and moves first."""
        first, second = match.player_ids
        session = start_session(match.session_id, first, second, self._clock())
        if isinstance(session, Rejection):
            return session

        slot = _SessionSlot(session)
        with self._lock:
            if session.session_id in self._slots:
                return session_exists(session.session_id)
            # Held before the slot becomes visible, so no move can beat match_found
            slot.lock.acquire()
            self._slots[session.session_id] = slot

        try:
            logger.info(
                "Session created",
                extra={"session_id": session.session_id, "quality": match.quality},
            )
            self._publish([MatchFound(session.session_id, first, second, match.quality)])
        finally:
            slot.lock.release()
        return session

    def get(self, session_id: str) -> GameSession | None:
        slot = self._slot(session_id)
        return slot.session if slot else None

    def view(self, session_id: str) -> dict | None:
        slot = self._slot(session_id)
        if slot is None:
            return None
        with slot.lock:
            return slot.session.to_dict()

    def apply_move(self, session_id: str, player_id: str, row, col) -> MoveOutcome:
        slot = self._slot(session_id)
        if slot is None:
            return MoveOutcome(accepted=False, rejection=session_not_found(session_id))

        with slot.lock:
            session = slot.session
            outcome = apply_move(session, player_id, row, col, self._clock())
            if not outcome.accepted:
                return outcome
            events: list[ArenaEvent] = [MoveApplied(
                session_id=session.session_id,
                player_id=outcome.move.player_id,
                row=outcome.move.row,
                col=outcome.move.col,
                grid=tuple(tuple(c.value if c else None for c in r) for r in session.grid),
                result=outcome.result,
                next_turn=outcome.next_turn,
            )]
            if session.is_terminal:
                logger.debug("Final board:\n%s", describe(session))
                events.append(SessionEnded(session.session_id, session.outcome, session.winner))
            self._publish(events)
        return outcome

    def abandon(self, session_id: str, remaining_player_id: str) -> Rejection | None:
        """Forfeit: the player who stayed wins. Rejected once the session has ended."""
        slot = self._slot(session_id)
        if slot is None:
            return session_not_found(session_id)

        with slot.lock:
            session = slot.session
            rejection = abandon(session, remaining_player_id, self._clock())
            if rejection:
                return rejection
            self._publish([SessionEnded(session.session_id, session.outcome, session.winner)])
        return None

    def forfeit(self, session_id: str, leaving_player_id: str) -> Rejection | None:
        """Abandon on behalf of the player who left."""
        slot = self._slot(session_id)
        if slot is None:
            return session_not_found(session_id)
        remaining = slot.session.opponent_of(leaving_player_id)
        if remaining is None:
            return not_a_participant(leaving_player_id)
        return self.abandon(session_id, remaining)

    def remove(self, session_id: str) -> bool | Rejection:
        """Retire a finished session once its outcome has been consumed."""
        with self._lock:
            slot = self._slots.get(session_id)
            if slot is None:
                return False
            with slot.lock:
                if not slot.session.is_terminal:
                    return session_not_terminal(slot.session.status.value)
            del self._slots[session_id]

        logger.debug("Session removed", extra={"session_id": session_id})
        return True

    def active_count(self) -> int:
        with self._lock:
            slots = list(self._slots.values())
        return sum(1 for s in slots if not s.session.is_terminal)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._slots

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def _slot(self, session_id: str) -> _SessionSlot | None:
        with self._lock:
            return self._slots.get(SessionId(session_id))

    def _publish(self, events: list[ArenaEvent]) -> None:
        publish_events(self._event_sink, events)
