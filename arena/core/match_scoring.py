"""Match Scoring: pure opponent ranking, acceptance policy and wait estimates.

Invariants:
    - All functions are PURE: entries are read, `now` is passed in, nothing is removed here
    - match_score is the clamped sum of level (<=0.5), wait (<=0.3) and rating (<=0.2) parts
    - Ranking is total and deterministic: score desc, then enqueued_at asc, then player_id
    - Acceptance uses the REQUESTING player's wait only: past max_wait, tolerance doubles

Design Decisions:
    - select_opponent returns the best ACCEPTABLE candidate, so an out-of-tolerance
      candidate with a high wait bonus cannot block an in-tolerance one
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from arena.core.collaborator_protocols import QueueEntryLike

LEVEL_WEIGHT: float = 0.5
WAIT_WEIGHT: float = 0.3
RATING_WEIGHT: float = 0.2
RATING_SPAN: float = 500.0

COMPATIBLE_WAIT = timedelta(seconds=5)
EMPTY_QUEUE_WAIT = timedelta(seconds=60)
BASE_ESTIMATE = timedelta(seconds=10)
PER_LEVEL_ESTIMATE = timedelta(seconds=2)


@dataclass(frozen=True)
class MatchOptions:
    level_tolerance: int = 2
    max_wait: timedelta = timedelta(milliseconds=30_000)

    def __post_init__(self):
        if self.level_tolerance < 1:
            raise ValueError("level_tolerance must be at least 1")
        if self.max_wait <= timedelta(0):
            raise ValueError("max_wait must be positive")

    @classmethod
    def from_settings(cls, settings) -> "MatchOptions":
        return cls(
            level_tolerance=settings.match_level_tolerance,
            max_wait=timedelta(milliseconds=settings.match_max_wait_ms),
        )


@dataclass(frozen=True)
class ScoreBreakdown:
    level: float
    wait: float
    rating: float

    @property
    def total(self) -> float:
        return min(1.0, max(0.0, self.level + self.wait + self.rating))


@dataclass(frozen=True)
class ScoredCandidate:
    entry: QueueEntryLike
    breakdown: ScoreBreakdown
    acceptable: bool

    @property
    def score(self) -> float:
        return self.breakdown.total


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def waited(entry: QueueEntryLike, now: datetime) -> timedelta:
    if entry.enqueued_at is None:
        return timedelta(0)
    return max(timedelta(0), now - entry.enqueued_at)


def level_score(a: QueueEntryLike, b: QueueEntryLike, options: MatchOptions) -> float:
    diff = abs(a.level - b.level)
    return max(0.0, LEVEL_WEIGHT - (diff / options.level_tolerance) * LEVEL_WEIGHT)


def wait_score(
    a: QueueEntryLike, b: QueueEntryLike, now: datetime, options: MatchOptions,
) -> float:
    average = (waited(a, now) + waited(b, now)) / 2
    return min(WAIT_WEIGHT, (average / options.max_wait) * WAIT_WEIGHT)


def rating_score(a: QueueEntryLike, b: QueueEntryLike) -> float:
    if a.rating is None or b.rating is None:
        return 0.0
    diff = abs(a.rating - b.rating)
    return max(0.0, RATING_WEIGHT - (diff / RATING_SPAN) * RATING_WEIGHT)


def score_breakdown(
    a: QueueEntryLike, b: QueueEntryLike, now: datetime, options: MatchOptions,
) -> ScoreBreakdown:
    return ScoreBreakdown(
        level=level_score(a, b, options),
        wait=wait_score(a, b, now, options),
        rating=rating_score(a, b),
    )


def match_score(
    a: QueueEntryLike, b: QueueEntryLike, now: datetime, options: MatchOptions,
) -> float:
    return score_breakdown(a, b, now, options).total


def is_acceptable_match(
    requester: QueueEntryLike,
    candidate: QueueEntryLike,
    now: datetime,
    options: MatchOptions,
) -> bool:
    diff = abs(requester.level - candidate.level)
    if waited(requester, now) > options.max_wait:
        return diff <= options.level_tolerance * 2
    return diff <= options.level_tolerance


def rank_candidates(
    requester: QueueEntryLike,
    candidates: Iterable[QueueEntryLike],
    now: datetime,
    options: MatchOptions,
) -> list[ScoredCandidate]:
    scored = [
        ScoredCandidate(
            entry=c,
            breakdown=score_breakdown(requester, c, now, options),
            acceptable=is_acceptable_match(requester, c, now, options),
        )
        for c in candidates
        if c.player_id != requester.player_id
    ]
    scored.sort(key=lambda s: (
        -s.score, s.entry.enqueued_at or _EPOCH, s.entry.player_id,
    ))
    return scored


def select_opponent(
    requester: QueueEntryLike,
    candidates: Iterable[QueueEntryLike],
    now: datetime,
    options: MatchOptions,
) -> ScoredCandidate | None:
    for candidate in rank_candidates(requester, candidates, now, options):
        if candidate.acceptable:
            return candidate
    return None


def estimate_wait(
    entry: QueueEntryLike, others: Sequence[QueueEntryLike], options: MatchOptions,
) -> timedelta:
    """Rough time until a match: fast if someone compatible waits, else by level gap."""
    others = [o for o in others if o.player_id != entry.player_id]
    if not others:
        return EMPTY_QUEUE_WAIT

    if any(abs(o.level - entry.level) <= options.level_tolerance for o in others):
        return COMPATIBLE_WAIT

    mean_level = sum(o.level for o in others) / len(others)
    gap = abs(entry.level - mean_level)
    return min(options.max_wait, BASE_ESTIMATE + PER_LEVEL_ESTIMATE * gap)
