"""Rejections: typed, categorized failure values for every arena failure mode.

Invariants:
    - Every rejection has a code (RejectionCode), category (ErrorCategory), severity (ErrorSeverity)
    - field_name names the offending input field; to_response() exposes it as "field"
    - Rejections are returned, never raised: no domain failure may leave shared state half-mutated
    - to_response() produces REST envelope; to_event() produces socket envelope
    - message is safe to show to the player; debug_info is not

Design Decisions:
    - Value object instead of exception hierarchy: the queue and directory hand rejections
      back across lock boundaries as ordinary return values
    - One factory per code keeps the wording of each reason in a single place
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    POLICY = "policy"
    CORRUPTED_INPUT = "corrupted_input"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"


class RejectionCode(str, Enum):
    # Validation
    INVALID_PLAYER_ENTRY = "INVALID_PLAYER_ENTRY"
    INVALID_MOVE_COORDINATES = "INVALID_MOVE_COORDINATES"
    SAME_PLAYER = "SAME_PLAYER"
    # Policy
    ALREADY_ENROLLED = "ALREADY_ENROLLED"
    RATE_LIMITED = "RATE_LIMITED"
    NOT_ENROLLED = "NOT_ENROLLED"
    NO_MATCH_AVAILABLE = "NO_MATCH_AVAILABLE"
    ENERGY_DEPLETED = "ENERGY_DEPLETED"
    INSUFFICIENT_ENERGY = "INSUFFICIENT_ENERGY"
    SESSION_NOT_ACTIVE = "SESSION_NOT_ACTIVE"
    SESSION_NOT_TERMINAL = "SESSION_NOT_TERMINAL"
    NOT_A_PARTICIPANT = "NOT_A_PARTICIPANT"
    NOT_YOUR_TURN = "NOT_YOUR_TURN"
    CELL_OCCUPIED = "CELL_OCCUPIED"
    # Corrupted input
    CORRUPTED_ENERGY = "CORRUPTED_ENERGY"
    # Lookup / conflict
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_EXISTS = "SESSION_EXISTS"


@dataclass(frozen=True)
class Rejection:
    """A refused operation, with a reason the caller can surface."""

    code: RejectionCode
    message: str
    category: ErrorCategory
    severity: ErrorSeverity = ErrorSeverity.WARNING
    field_name: str | None = None
    debug_info: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def recoverable(self) -> bool:
        return self.category in (ErrorCategory.POLICY, ErrorCategory.RESOURCE_NOT_FOUND)

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "field": self.field_name,
                "timestamp": self.timestamp.isoformat(),
            }
        }

    def to_event(self) -> dict:
        """Convert to a socket error event."""
        return {
            "type": "error",
            "data": {
                "code": self.code.value,
                "message": self.message,
                "severity": self.severity.value,
                "recoverable": self.recoverable,
            },
        }


# ─── Validation (state untouched, input malformed) ───────────────

def invalid_player_entry(message: str, field_name: str | None = None) -> Rejection:
    return Rejection(
        RejectionCode.INVALID_PLAYER_ENTRY, message,
        ErrorCategory.VALIDATION, ErrorSeverity.ERROR, field_name,
    )


def invalid_move_coordinates(row: Any, col: Any) -> Rejection:
    return Rejection(
        RejectionCode.INVALID_MOVE_COORDINATES,
        f"Move coordinates out of bounds: ({row!r}, {col!r}). Row and column must be integers 0-2.",
        ErrorCategory.VALIDATION, ErrorSeverity.ERROR, "row/col",
    )


def same_player(player_id: str) -> Rejection:
    return Rejection(
        RejectionCode.SAME_PLAYER,
        f"A session needs two distinct players, got '{player_id}' twice.",
        ErrorCategory.VALIDATION, ErrorSeverity.ERROR,
    )


# ─── Policy (input well-formed, rule refuses it) ─────────────────

def already_enrolled(player_id: str) -> Rejection:
    return Rejection(
        RejectionCode.ALREADY_ENROLLED, "Player already in queue",
        ErrorCategory.POLICY, debug_info={"player_id": player_id},
    )


def rate_limited(retry_after_seconds: float) -> Rejection:
    return Rejection(
        RejectionCode.RATE_LIMITED,
        "Too many queue actions. Please wait a moment.",
        ErrorCategory.POLICY,
        debug_info={"retry_after_seconds": round(retry_after_seconds, 3)},
    )


def not_enrolled(player_id: str) -> Rejection:
    return Rejection(
        RejectionCode.NOT_ENROLLED, "Player is not in the matchmaking queue",
        ErrorCategory.POLICY, debug_info={"player_id": player_id},
    )


def no_match_available() -> Rejection:
    return Rejection(
        RejectionCode.NO_MATCH_AVAILABLE, "No acceptable opponent is waiting yet",
        ErrorCategory.POLICY, ErrorSeverity.INFO,
    )


def energy_depleted(current: int, cost: int) -> Rejection:
    return Rejection(
        RejectionCode.ENERGY_DEPLETED,
        f"Not enough energy to play ({current}/{cost}). Wait for it to regenerate.",
        ErrorCategory.POLICY,
    )


def insufficient_energy(current: int, cost: int) -> Rejection:
    return Rejection(
        RejectionCode.INSUFFICIENT_ENERGY,
        f"Cannot consume {cost} energy from {current}.",
        ErrorCategory.POLICY,
    )


def session_not_active(status: str) -> Rejection:
    return Rejection(
        RejectionCode.SESSION_NOT_ACTIVE,
        f"Session is {status}; no further changes are accepted.",
        ErrorCategory.POLICY,
    )


def session_not_terminal(status: str) -> Rejection:
    return Rejection(
        RejectionCode.SESSION_NOT_TERMINAL,
        f"Session is still {status}; only finished sessions can be removed.",
        ErrorCategory.CONFLICT,
    )


def not_a_participant(player_id: str) -> Rejection:
    return Rejection(
        RejectionCode.NOT_A_PARTICIPANT, "Player is not part of this session",
        ErrorCategory.POLICY, ErrorSeverity.ERROR,
        debug_info={"player_id": player_id},
    )


def not_your_turn() -> Rejection:
    return Rejection(RejectionCode.NOT_YOUR_TURN, "Not your turn", ErrorCategory.POLICY)


def cell_occupied(row: int, col: int) -> Rejection:
    return Rejection(
        RejectionCode.CELL_OCCUPIED, f"Cell ({row}, {col}) already occupied",
        ErrorCategory.POLICY,
    )


# ─── Corrupted input / lookup ────────────────────────────────────

def corrupted_energy(reasons: list[str]) -> Rejection:
    return Rejection(
        RejectionCode.CORRUPTED_ENERGY,
        "Energy data is invalid; play is disabled until it is repaired.",
        ErrorCategory.CORRUPTED_INPUT, ErrorSeverity.ERROR,
        debug_info={"reasons": reasons},
    )


def session_not_found(session_id: str) -> Rejection:
    return Rejection(
        RejectionCode.SESSION_NOT_FOUND, f"Session '{session_id}' not found",
        ErrorCategory.RESOURCE_NOT_FOUND,
    )


def session_exists(session_id: str) -> Rejection:
    return Rejection(
        RejectionCode.SESSION_EXISTS, f"Session '{session_id}' already exists",
        ErrorCategory.CONFLICT, ErrorSeverity.ERROR,
    )
