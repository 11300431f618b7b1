"""Arena Service: the entry point a host service calls, wiring energy, queue and sessions.

Control flow: check eligibility from an energy snapshot, enroll, attempt a match,
create the session from the match, route moves and forfeits to the session,
retire it once the host has consumed the outcome.

Invariants:
    - Only a player whose derived energy covers cost_per_game is enrolled
    - A session exists for every MatchResult this service hands out
    - Energy is never persisted here; spend_energy returns the snapshot to store
"""

import logging
from dataclasses import dataclass
from typing import Any

from arena.config import Settings, get_settings
from arena.core.collaborator_protocols import EventSink
from arena.core.energy import (
    ConsumeResult, EnergyPolicy, EnergyStatus, consume_snapshot, current_level,
    unusable_status,
)
from arena.core.errors import (
    Rejection, energy_depleted, not_enrolled,
)
from arena.core.session_state import GameSession, MoveOutcome
from arena.infrastructure.observability import configure_logging
from arena.schemas.energy import parse_energy_snapshot
from arena.schemas.player import PlayerEntry
from arena.services.matchmaking_queue import (
    Clock, EnrollResult, MatchmakingQueue, MatchResult, utcnow,
)
from arena.services.session_directory import SessionDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Pairing:
    match: MatchResult | None = None
    session: GameSession | None = None
    rejection: Rejection | None = None

    @property
    def matched(self) -> bool:
        return self.session is not None


class ArenaService:
    def __init__(
        self,
        queue: MatchmakingQueue,
        directory: SessionDirectory,
        energy_policy: EnergyPolicy = EnergyPolicy(),
        default_max_energy: int = 5,
        clock: Clock = utcnow,
    ):
        self.queue = queue
        self.directory = directory
        self.energy_policy = energy_policy
        self.default_max_energy = default_max_energy
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        event_sink: EventSink | None = None,
        clock: Clock = utcnow,
    ) -> "ArenaService":
        settings = settings or get_settings()
        configure_logging(settings)
        return cls(
            queue=MatchmakingQueue.from_settings(settings, event_sink, clock),
            directory=SessionDirectory(event_sink, clock),
            energy_policy=EnergyPolicy.from_settings(settings),
            default_max_energy=settings.energy_max,
            clock=clock,
        )

    # ─── Energy ──────────────────────────────────────────────────

    def check_eligibility(self, raw_snapshot: Any) -> EnergyStatus:
        snapshot = parse_energy_snapshot(raw_snapshot, self.default_max_energy)
        if isinstance(snapshot, Rejection):
            logger.warning(
                "Unreadable energy record", extra={"error_code": snapshot.code.value},
            )
            return unusable_status(snapshot, self.default_max_energy)
        return current_level(snapshot, self._clock(), self.energy_policy)

    def spend_energy(self, raw_snapshot: Any) -> ConsumeResult:
        snapshot = parse_energy_snapshot(raw_snapshot, self.default_max_energy)
        if isinstance(snapshot, Rejection):
            return ConsumeResult(False, 0, snapshot)
        return consume_snapshot(snapshot, self._clock(), self.energy_policy)

    # ─── Matchmaking ─────────────────────────────────────────────

    def join_queue(
        self, candidate: PlayerEntry | dict[str, Any], raw_snapshot: Any,
    ) -> EnrollResult:
        status = self.check_eligibility(raw_snapshot)
        if status.rejection:
            return EnrollResult(False, rejection=status.rejection)
        if not status.can_play:
            return EnrollResult(
                False,
                rejection=energy_depleted(status.current, self.energy_policy.cost_per_game),
            )
        return self.queue.enroll(candidate)

    def leave_queue(self, player_id: str) -> bool:
        return self.queue.withdraw(player_id)

    def find_match(self, player_id: str) -> Pairing:
        outcome = self.queue.match_player(player_id)
        if isinstance(outcome, Rejection):
            return Pairing(rejection=outcome)
        return self._open_session(outcome)

    def force_match(self, player_one_id: str, player_two_id: str) -> Pairing:
        match = self.queue.force_match(player_one_id, player_two_id)
        if match is None:
            return Pairing(rejection=not_enrolled(f"{player_one_id},{player_two_id}"))
        return self._open_session(match)

    def sweep(self) -> int:
        return self.queue.sweep_expired()

    # ─── Sessions ────────────────────────────────────────────────

    def play(self, session_id: str, player_id: str, row, col) -> MoveOutcome:
        return self.directory.apply_move(session_id, player_id, row, col)

    def forfeit(self, session_id: str, leaving_player_id: str) -> Rejection | None:
        return self.directory.forfeit(session_id, leaving_player_id)

    def retire(self, session_id: str) -> bool | Rejection:
        return self.directory.remove(session_id)

    def _open_session(self, match: MatchResult) -> Pairing:
        session = self.directory.create(match)
        if isinstance(session, Rejection):
            logger.error(
                "Could not open session for match", extra={
                    "session_id": match.session_id, "error_code": session.code.value,
                },
            )
            return Pairing(match=match, rejection=session)
        return Pairing(match=match, session=session)
