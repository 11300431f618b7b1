"""Energy Resource Model: regenerating play-eligibility derived from a stored snapshot.

Invariants:
    - All functions are PURE: the snapshot is read, never mutated; `now` is always passed in
    - Level is monotonic non-decreasing in elapsed time and never exceeds max_energy
    - A corrupted snapshot yields current=0, can_play=False and a CORRUPTED_ENERGY rejection
    - consume() never returns a negative remainder and never succeeds below cost_per_game
    - Re-reading a consumed snapshot at the same instant returns exactly the consumed remainder

Design Decisions:
    - Regen counted in whole intervals since last_update (timedelta floor division)
    - consume_snapshot re-anchors last_update so partial regen progress survives the spend
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from arena.core.errors import (
    Rejection, corrupted_energy, insufficient_energy,
)

logger = logging.getLogger(__name__)

# Anything above this is forged input, not a real balance.
MAX_ENERGY_INPUT: int = 10_000
# Stored balances up to twice the cap are tolerated and clamped.
OVERFLOW_TOLERANCE: int = 2


@dataclass(frozen=True)
class EnergyPolicy:
    """Regeneration rate and per-game cost."""

    regen_interval: timedelta = timedelta(minutes=5)
    cost_per_game: int = 1

    @classmethod
    def from_settings(cls, settings) -> "EnergyPolicy":
        return cls(
            regen_interval=timedelta(minutes=settings.energy_regen_minutes),
            cost_per_game=settings.energy_cost_per_game,
        )


@dataclass(frozen=True)
class EnergySnapshot:
    """Stored energy as the profile collaborator last persisted it."""

    current: int
    max_energy: int
    last_update: datetime


@dataclass(frozen=True)
class EnergyStatus:
    current: int
    max_energy: int
    next_regen_at: datetime | None
    time_until_next_regen: timedelta
    can_play: bool
    rejection: Rejection | None = None

    @property
    def is_corrupted(self) -> bool:
        return self.rejection is not None


@dataclass(frozen=True)
class ConsumeResult:
    success: bool
    remaining: int
    rejection: Rejection | None = None
    snapshot: EnergySnapshot | None = None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _amount_problem(value) -> str | None:
    """Reason a raw energy amount is unusable, or None if it is a sane integer."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return "energy must be a number"
    if isinstance(value, float):
        if not math.isfinite(value):
            return "energy must be finite"
        if not value.is_integer():
            return "energy must be a whole number"
    if value < 0:
        return "energy cannot be negative"
    if value > MAX_ENERGY_INPUT:
        return "energy value suspiciously high"
    return None


def snapshot_problems(snapshot: EnergySnapshot, now: datetime) -> list[str]:
    """Every reason the snapshot cannot be trusted. Empty list means usable."""
    problems: list[str] = []

    max_energy = snapshot.max_energy
    if isinstance(max_energy, bool) or not isinstance(max_energy, int) or max_energy < 1:
        problems.append("max energy must be a positive integer")
        max_energy = None

    amount = _amount_problem(snapshot.current)
    if amount:
        problems.append(amount)
    elif max_energy is not None and snapshot.current > max_energy * OVERFLOW_TOLERANCE:
        problems.append("energy exceeds capacity")

    if not isinstance(snapshot.last_update, datetime):
        problems.append("last update must be a valid timestamp")
    elif _as_utc(snapshot.last_update) > _as_utc(now):
        problems.append("last update cannot be in the future")

    return problems


def unusable_status(rejection: Rejection, max_energy: int = 0) -> EnergyStatus:
    """Zeroed, ineligible status carrying the reason the snapshot was refused."""
    return EnergyStatus(
        current=0,
        max_energy=max_energy,
        next_regen_at=None,
        time_until_next_regen=timedelta(0),
        can_play=False,
        rejection=rejection,
    )


def current_level(
    snapshot: EnergySnapshot, now: datetime, policy: EnergyPolicy = EnergyPolicy(),
) -> EnergyStatus:
    """Derive the live energy level at `now`. Never raises on bad data."""
    problems = snapshot_problems(snapshot, now)
    if problems:
        logger.warning(
            "Corrupted energy snapshot: %s", ", ".join(problems),
            extra={"error_code": "CORRUPTED_ENERGY"},
        )
        max_energy = snapshot.max_energy if isinstance(snapshot.max_energy, int) else 0
        return unusable_status(corrupted_energy(problems), max_energy)

    now = _as_utc(now)
    stored = min(int(snapshot.current), snapshot.max_energy)

    if stored >= snapshot.max_energy:
        return EnergyStatus(
            current=snapshot.max_energy,
            max_energy=snapshot.max_energy,
            next_regen_at=None,
            time_until_next_regen=timedelta(0),
            can_play=snapshot.max_energy >= policy.cost_per_game,
        )

    elapsed = now - _as_utc(snapshot.last_update)
    regenerated = elapsed // policy.regen_interval
    current = min(stored + regenerated, snapshot.max_energy)

    next_regen_at = None
    until_next = timedelta(0)
    if current < snapshot.max_energy:
        until_next = policy.regen_interval - (elapsed % policy.regen_interval)
        next_regen_at = now + until_next

    return EnergyStatus(
        current=current,
        max_energy=snapshot.max_energy,
        next_regen_at=next_regen_at,
        time_until_next_regen=until_next,
        can_play=current >= policy.cost_per_game,
    )


def consume(current, policy: EnergyPolicy = EnergyPolicy()) -> ConsumeResult:
    """Spend one game's worth of energy from a live balance."""
    problem = _amount_problem(current)
    if problem:
        logger.warning(
            "Rejected energy consume: %s", problem,
            extra={"error_code": "CORRUPTED_ENERGY"},
        )
        return ConsumeResult(False, 0, corrupted_energy([problem]))

    balance = int(current)
    if balance < policy.cost_per_game:
        return ConsumeResult(
            False, balance, insufficient_energy(balance, policy.cost_per_game),
        )
    return ConsumeResult(True, max(0, balance - policy.cost_per_game))


def consume_snapshot(
    snapshot: EnergySnapshot, now: datetime, policy: EnergyPolicy = EnergyPolicy(),
) -> ConsumeResult:
    """Derive the level at `now`, spend from it, and return the snapshot to persist."""
    status = current_level(snapshot, now, policy)
    if status.rejection:
        return ConsumeResult(False, 0, status.rejection)

    result = consume(status.current, policy)
    if not result.success:
        return result

    now = _as_utc(now)
    anchor = now
    if status.current < snapshot.max_energy:
        # Keep the partial interval already accrued toward the next unit.
        anchor = now - (now - _as_utc(snapshot.last_update)) % policy.regen_interval

    return ConsumeResult(
        True,
        result.remaining,
        snapshot=EnergySnapshot(
            current=result.remaining,
            max_energy=snapshot.max_energy,
            last_update=anchor,
        ),
    )
