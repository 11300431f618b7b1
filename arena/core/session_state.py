"""Session State: the tic-tac-toe session and its verified transitions.

Invariants:
    - player_a != player_b; player_a is bound to Mark.A (moves first), player_b to Mark.B
    - len(moves) == number of non-empty cells, after every transition
    - Once status is terminal (completed/abandoned), grid, outcome and winner never change
    - current_turn is None exactly when the session is terminal
    - A rejected transition leaves the session untouched

Design Decisions:
    - Transitions are plain functions over a mutable dataclass; callers serialize them
      per session (SessionDirectory holds the lock), this module holds none
    - check_move() runs every precondition in fixed order before apply_move() writes anything
    - Forfeits end with status ABANDONED and outcome ABANDONED, never COMPLETED
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from arena.core.board import (
    Grid, WinningLine, empty_cells, empty_grid, find_winning_line,
    grid_to_list, in_bounds, is_full, is_well_formed, occupied_count, render_grid,
)
from arena.core.domain_types import (
    Mark, MoveResult, PlayerId, SessionId, SessionOutcome, SessionStatus,
)
from arena.core.errors import (
    Rejection, cell_occupied, invalid_move_coordinates, not_a_participant,
    not_your_turn, same_player, session_not_active,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MoveRecord:
    player_id: PlayerId
    row: int
    col: int
    mark: Mark
    played_at: datetime

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "row": self.row,
            "col": self.col,
            "mark": self.mark.value,
            "played_at": self.played_at.isoformat(),
        }


@dataclass
class GameSession:
    """One two-player game. Mutated only through the functions below."""

    session_id: SessionId
    player_a: PlayerId
    player_b: PlayerId
    created_at: datetime
    grid: Grid = field(default_factory=empty_grid)
    current_turn: Mark | None = Mark.A
    status: SessionStatus = SessionStatus.ACTIVE
    outcome: SessionOutcome | None = None
    winner: PlayerId | None = None
    winning_line: WinningLine | None = None
    moves: list[MoveRecord] = field(default_factory=list)
    ended_at: datetime | None = None
    last_move_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def players(self) -> tuple[PlayerId, PlayerId]:
        return (self.player_a, self.player_b)

    def mark_for(self, player_id: str) -> Mark | None:
        if player_id == self.player_a:
            return Mark.A
        if player_id == self.player_b:
            return Mark.B
        return None

    def player_for(self, mark: Mark) -> PlayerId:
        return self.player_a if mark is Mark.A else self.player_b

    def opponent_of(self, player_id: str) -> PlayerId | None:
        if player_id == self.player_a:
            return self.player_b
        if player_id == self.player_b:
            return self.player_a
        return None

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "players": {Mark.A.value: self.player_a, Mark.B.value: self.player_b},
            "grid": grid_to_list(self.grid),
            "current_turn": self.current_turn.value if self.current_turn else None,
            "status": self.status.value,
            "outcome": self.outcome.value if self.outcome else None,
            "winner": self.winner,
            "winning_line": self.winning_line.to_dict() if self.winning_line else None,
            "moves": [m.to_dict() for m in self.moves],
            "created_at": self.created_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
        }


@dataclass(frozen=True)
class MoveOutcome:
    """What apply_move() did. `rejection` is set exactly when accepted is False."""

    accepted: bool
    rejection: Rejection | None = None
    move: MoveRecord | None = None
    result: MoveResult | None = None
    winning_line: WinningLine | None = None
    next_turn: Mark | None = None

    @property
    def is_terminal(self) -> bool:
        return self.result in (MoveResult.WIN, MoveResult.DRAW)


@dataclass(frozen=True)
class SessionStats:
    total_moves: int
    duration_seconds: float
    outcome: SessionOutcome | None
    winner: PlayerId | None
    is_finished: bool


# ─── Construction ────────────────────────────────────────────────

def start_session(
    session_id: str, player_a: str, player_b: str, now: datetime,
) -> GameSession | Rejection:
    """Both players are known up front, so sessions start ACTIVE with A to move."""
    if player_a == player_b:
        return same_player(player_a)
    return GameSession(
        session_id=SessionId(session_id),
        player_a=PlayerId(player_a),
        player_b=PlayerId(player_b),
        created_at=now,
    )


# ─── Move validation ─────────────────────────────────────────────

def is_legal_move(session: GameSession, row, col) -> bool:
    """Coordinates in range, cell empty, session active. Turn is checked separately."""
    if session.status is not SessionStatus.ACTIVE:
        return False
    if not in_bounds(row, col):
        return False
    return session.grid[row][col] is None


def check_move(session: GameSession, player_id: str, row, col) -> Rejection | None:
    """All preconditions of apply_move, first violation wins."""
    if session.status is not SessionStatus.ACTIVE:
        return session_not_active(session.status.value)
    mark = session.mark_for(player_id)
    if mark is None:
        return not_a_participant(player_id)
    if not in_bounds(row, col):
        return invalid_move_coordinates(row, col)
    if mark is not session.current_turn:
        return not_your_turn()
    if session.grid[row][col] is not None:
        return cell_occupied(row, col)
    return None


# ─── Transitions ─────────────────────────────────────────────────

def apply_move(
    session: GameSession, player_id: str, row, col, now: datetime,
) -> MoveOutcome:
    rejection = check_move(session, player_id, row, col)
    if rejection:
        logger.info(
            "Move rejected: %s", rejection.code.value,
            extra={"session_id": session.session_id, "player_id": player_id,
                   "error_code": rejection.code.value},
        )
        return MoveOutcome(accepted=False, rejection=rejection)

    mark = session.mark_for(player_id)
    record = MoveRecord(PlayerId(player_id), row, col, mark, now)
    session.grid[row][col] = mark
    session.moves.append(record)
    session.last_move_at = now

    line = find_winning_line(session.grid)
    if line:
        _finish(session, SessionStatus.COMPLETED, SessionOutcome.WIN, PlayerId(player_id), now)
        session.winning_line = line
        return MoveOutcome(True, move=record, result=MoveResult.WIN, winning_line=line)

    if is_full(session.grid):
        _finish(session, SessionStatus.COMPLETED, SessionOutcome.DRAW, None, now)
        return MoveOutcome(True, move=record, result=MoveResult.DRAW)

    session.current_turn = mark.other
    return MoveOutcome(
        True, move=record, result=MoveResult.ONGOING, next_turn=session.current_turn,
    )


def abandon(
    session: GameSession, remaining_player_id: str, now: datetime,
) -> Rejection | None:
    """Forfeit on behalf of the player who left; the one who stayed wins."""
    if session.status is not SessionStatus.ACTIVE:
        return session_not_active(session.status.value)
    if session.mark_for(remaining_player_id) is None:
        return not_a_participant(remaining_player_id)
    _finish(
        session, SessionStatus.ABANDONED, SessionOutcome.ABANDONED,
        PlayerId(remaining_player_id), now,
    )
    return None


def _finish(
    session: GameSession,
    status: SessionStatus,
    outcome: SessionOutcome,
    winner: PlayerId | None,
    now: datetime,
) -> None:
    session.status = status
    session.outcome = outcome
    session.winner = winner
    session.current_turn = None
    session.ended_at = now
    logger.info(
        "Session ended: %s", outcome.value,
        extra={"session_id": session.session_id, "player_id": winner},
    )


# ─── Inspection ──────────────────────────────────────────────────

def available_moves(session: GameSession) -> list[tuple[int, int]]:
    if session.status is not SessionStatus.ACTIVE:
        return []
    return empty_cells(session.grid)


def verify_consistency(session: GameSession) -> list[str]:
    """Cross-check the session against its own history. Empty list means consistent."""
    errors: list[str] = []
    if not is_well_formed(session.grid):
        return ["Invalid board dimensions"]

    if session.player_a == session.player_b:
        errors.append("Players must be distinct")

    if occupied_count(session.grid) != len(session.moves):
        errors.append("Move count does not match board state")

    for move in session.moves:
        if session.grid[move.row][move.col] is not move.mark:
            errors.append("Move history does not match board state")
            break

    line = find_winning_line(session.grid)
    if session.outcome is SessionOutcome.WIN:
        if line is None or session.winner != session.player_for(line.mark):
            errors.append("Winner state inconsistent with board")
    elif session.outcome is not SessionOutcome.ABANDONED and line is not None:
        errors.append("Board has a winning line but no winner recorded")

    if session.status is SessionStatus.ACTIVE:
        expected = Mark.A if len(session.moves) % 2 == 0 else Mark.B
        if session.current_turn is not expected:
            errors.append("Current turn inconsistent with move history")
    elif session.current_turn is not None:
        errors.append("Finished session still has a current turn")

    return errors


def session_stats(session: GameSession) -> SessionStats:
    end = session.ended_at or session.last_move_at
    duration = (end - session.created_at).total_seconds() if end else 0.0
    return SessionStats(
        total_moves=len(session.moves),
        duration_seconds=duration,
        outcome=session.outcome,
        winner=session.winner,
        is_finished=session.is_terminal,
    )


def describe(session: GameSession) -> str:
    return f"{session.session_id} [{session.status.value}]\n{render_grid(session.grid)}"
