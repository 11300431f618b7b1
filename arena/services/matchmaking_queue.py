"""Matchmaking Queue: lock-guarded registry of waiting players and the pairing operation.

Invariants:
    - One entry per player_id; malformed entries never enter the map
    - enroll/withdraw/attempt_match/force_match/sweep_expired run under one lock, so two
      concurrent attempt_match calls can never select and remove the same candidate
    - A MatchResult only references players that were enrolled when the lock was taken,
      and both are gone from the queue when it is returned
    - Every refusal carries a Rejection with a reason string
    - Events enter an outbox under the queue lock, so their order matches the order of the
      mutations; the outbox is drained outside the lock, one drainer at a time
    - A failing sink never undoes a mutation

Design Decisions:
    - Explicitly constructed instance, no module-level queue: one queue per game mode
    - Single threading.Lock over the whole map: tens to hundreds of entries, O(n) scans are fine
    - Withdrawals count toward the rate limit but are never refused by it
"""

import logging
import threading
import uuid
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from arena.core.collaborator_protocols import EventSink
from arena.core.domain_types import MatchQuality, PlayerId, QueueChange, SessionId
from arena.core.errors import (
    Rejection, already_enrolled, no_match_available, not_enrolled, rate_limited,
)
from arena.core.events import ArenaEvent, QueueMembershipChanged
from arena.core.match_scoring import MatchOptions, estimate_wait, select_opponent
from arena.core.rate_limit import RateLimitPolicy, RollingRateLimiter
from arena.schemas.player import PlayerEntry, parse_player_entry
from arena.services.publishing import publish_events

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_MAX_AGE = timedelta(minutes=5)
FORCED_MATCH_QUALITY = MatchQuality(1.0)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_session_id() -> SessionId:
    return SessionId(f"room_{uuid.uuid4().hex}")


@dataclass(frozen=True)
class MatchResult:
    """A pairing. player_one is the requester and will play Mark.A."""

    player_one: PlayerEntry
    player_two: PlayerEntry
    session_id: SessionId
    quality: MatchQuality
    matched_at: datetime

    @property
    def player_ids(self) -> tuple[PlayerId, PlayerId]:
        return (PlayerId(self.player_one.player_id), PlayerId(self.player_two.player_id))


@dataclass(frozen=True)
class EnrollResult:
    success: bool
    entry: PlayerEntry | None = None
    position: int = -1
    rejection: Rejection | None = None


@dataclass(frozen=True)
class QueueStats:
    total_players: int
    average_wait: timedelta
    level_distribution: dict[int, int] = field(default_factory=dict)


class MatchmakingQueue:
    """Waiting players for one game mode."""

    def __init__(
        self,
        options: MatchOptions | None = None,
        rate_limit: RateLimitPolicy | None = None,
        max_age: timedelta = DEFAULT_MAX_AGE,
        event_sink: EventSink | None = None,
        clock: Clock = utcnow,
    ):
        self.options = options or MatchOptions()
        self.max_age = max_age
        self._limiter = RollingRateLimiter(rate_limit or RateLimitPolicy())
        self._entries: dict[str, PlayerEntry] = {}
        self._lock = threading.Lock()
        self._outbox: deque[ArenaEvent] = deque()
        # Reentrant so a sink that calls back into the queue drains inline
        self._drain_lock = threading.RLock()
        self._event_sink = event_sink
        self._clock = clock

    @classmethod
    def from_settings(
        cls, settings, event_sink: EventSink | None = None, clock: Clock = utcnow,
    ) -> "MatchmakingQueue":
        return cls(
            options=MatchOptions.from_settings(settings),
            rate_limit=RateLimitPolicy.from_settings(settings),
            max_age=timedelta(milliseconds=settings.queue_max_age_ms),
            event_sink=event_sink,
            clock=clock,
        )

    # ─── Membership ──────────────────────────────────────────────

    def enroll(self, candidate: PlayerEntry | dict[str, Any]) -> EnrollResult:
        parsed = parse_player_entry(candidate)
        if isinstance(parsed, Rejection):
            logger.info(
                "Player validation failed: %s", parsed.message,
                extra={"error_code": parsed.code.value},
            )
            return EnrollResult(False, rejection=parsed)

        player_id = parsed.player_id
        now = self._clock()
        rejection = None
        with self._lock:
            decision = self._limiter.check(player_id, now)
            if not decision.allowed:
                rejection = rate_limited(decision.retry_after.total_seconds())
            elif player_id in self._entries:
                rejection = already_enrolled(player_id)
            else:
                entry = parsed.enqueued(now)
                self._entries[player_id] = entry
                position = self._position_locked(player_id)
                size = len(self._entries)
                self._outbox.append(
                    QueueMembershipChanged(PlayerId(player_id), QueueChange.JOINED, size),
                )

        self._drain_outbox()
        if rejection:
            logger.info(
                "Enrollment rejected: %s", rejection.code.value,
                extra={
                    "player_id": player_id,
                    "error_code": rejection.code.value,
                    "retry_after_seconds": (rejection.debug_info or {}).get("retry_after_seconds"),
                },
            )
            return EnrollResult(False, rejection=rejection)

        logger.debug(
            "Player %s added to matchmaking queue", entry.display_name,
            extra={"player_id": player_id, "queue_size": size},
        )
        return EnrollResult(True, entry=entry, position=position)

    def withdraw(self, player_id: str) -> bool:
        """Remove a waiting player. False (and no-op) when absent."""
        now = self._clock()
        with self._lock:
            removed = self._entries.pop(player_id, None)
            if removed is not None:
                self._limiter.record(player_id, now)
                self._outbox.append(QueueMembershipChanged(
                    PlayerId(player_id), QueueChange.LEFT, len(self._entries),
                ))

        self._drain_outbox()
        return removed is not None

    def get(self, player_id: str) -> PlayerEntry | None:
        with self._lock:
            return self._entries.get(player_id)

    def is_enrolled(self, player_id: str) -> bool:
        with self._lock:
            return player_id in self._entries

    def __contains__(self, player_id: object) -> bool:
        return isinstance(player_id, str) and self.is_enrolled(player_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def snapshot(self) -> list[PlayerEntry]:
        """Waiting players, oldest first."""
        with self._lock:
            return self._ordered_locked()

    # ─── Pairing ─────────────────────────────────────────────────

    def attempt_match(
        self, player_id: str, options: MatchOptions | None = None,
    ) -> MatchResult | None:
        """Pair `player_id` with the best acceptable opponent, removing both atomically."""
        outcome = self.match_player(player_id, options)
        return outcome if isinstance(outcome, MatchResult) else None

    def match_player(
        self, player_id: str, options: MatchOptions | None = None,
    ) -> MatchResult | Rejection:
        """attempt_match, with NOT_ENROLLED or NO_MATCH_AVAILABLE decided under the same lock."""
        opts = options or self.options
        now = self._clock()
        with self._lock:
            requester = self._entries.get(player_id)
            if requester is None:
                return not_enrolled(player_id)
            chosen = select_opponent(requester, self._entries.values(), now, opts)
            if chosen is None:
                return no_match_available()
            opponent = chosen.entry
            result = MatchResult(
                player_one=requester,
                player_two=opponent,
                session_id=new_session_id(),
                quality=MatchQuality(chosen.score),
                matched_at=now,
            )
            size = self._remove_matched_locked(result)

        logger.info(
            "Matched %s with %s", requester.player_id, opponent.player_id,
            extra={"session_id": result.session_id, "quality": round(result.quality, 3),
                   "queue_size": size},
        )
        self._drain_outbox()
        return result

    def force_match(self, player_one_id: str, player_two_id: str) -> MatchResult | None:
        """Admin pairing: no tolerance check, quality 1.0."""
        if player_one_id == player_two_id:
            return None
        now = self._clock()
        with self._lock:
            first = self._entries.get(player_one_id)
            second = self._entries.get(player_two_id)
            if first is None or second is None:
                return None
            result = MatchResult(first, second, new_session_id(), FORCED_MATCH_QUALITY, now)
            size = self._remove_matched_locked(result)

        logger.warning(
            "Forced match %s with %s", player_one_id, player_two_id,
            extra={"session_id": result.session_id, "queue_size": size},
        )
        self._drain_outbox()
        return result

    # ─── Queue inspection ────────────────────────────────────────

    def queue_position(self, player_id: str) -> int:
        """1-based position by enqueue time, -1 when absent."""
        with self._lock:
            return self._position_locked(player_id)

    def estimated_wait(self, entry: PlayerEntry) -> timedelta:
        with self._lock:
            others = list(self._entries.values())
        return estimate_wait(entry, others, self.options)

    def stats(self) -> QueueStats:
        now = self._clock()
        with self._lock:
            entries = list(self._entries.values())
        if not entries:
            return QueueStats(0, timedelta(0), {})
        total_wait = sum((now - e.enqueued_at for e in entries), timedelta(0))
        return QueueStats(
            total_players=len(entries),
            average_wait=total_wait / len(entries),
            level_distribution=dict(Counter(e.level for e in entries)),
        )

    # ─── Expiry ──────────────────────────────────────────────────

    def sweep_expired(
        self, max_age: timedelta | None = None, now: datetime | None = None,
    ) -> int:
        """Drop entries waiting longer than max_age. Returns how many were removed."""
        max_age = max_age if max_age is not None else self.max_age
        now = now or self._clock()
        with self._lock:
            expired = [
                pid for pid, e in self._entries.items() if now - e.enqueued_at > max_age
            ]
            for pid in expired:
                del self._entries[pid]
            self._limiter.prune(now)
            size = len(self._entries)
            self._outbox.extend(
                QueueMembershipChanged(PlayerId(pid), QueueChange.EXPIRED, size)
                for pid in expired
            )

        if expired:
            logger.info(
                "Swept %d expired queue entries", len(expired),
                extra={"removed": len(expired), "queue_size": size},
            )
        self._drain_outbox()
        return len(expired)

    # ─── Internals ───────────────────────────────────────────────

    def _ordered_locked(self) -> list[PlayerEntry]:
        # sorted() is stable, so equal timestamps keep insertion order
        return sorted(self._entries.values(), key=lambda e: e.enqueued_at)

    def _position_locked(self, player_id: str) -> int:
        if player_id not in self._entries:
            return -1
        for index, entry in enumerate(self._ordered_locked(), start=1):
            if entry.player_id == player_id:
                return index
        return -1

    def _remove_matched_locked(self, result: MatchResult) -> int:
        for pid in result.player_ids:
            del self._entries[pid]
        size = len(self._entries)
        self._outbox.extend(
            QueueMembershipChanged(pid, QueueChange.MATCHED, size)
            for pid in result.player_ids
        )
        return size

    def _drain_outbox(self) -> None:
        with self._drain_lock:
            while True:
                with self._lock:
                    if not self._outbox:
                        return
                    event = self._outbox.popleft()
                publish_events(self._event_sink, [event])
