"""Rate Limiting: rolling-window action counter per identity.

Invariants:
    - An identity may perform at most max_actions within any rolling window
    - A refused action is NOT recorded (retrying while limited does not extend the penalty)
    - record() always counts; callers use it for actions that must never be refused
    - History older than the window is discarded on every touch and on prune()

Design Decisions:
    - Not thread-safe on its own: MatchmakingQueue calls it under the queue lock
"""

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class RateLimitPolicy:
    max_actions: int = 10
    window: timedelta = timedelta(seconds=60)

    @classmethod
    def from_settings(cls, settings) -> "RateLimitPolicy":
        return cls(
            max_actions=settings.rate_limit_max_actions,
            window=timedelta(seconds=settings.rate_limit_window_seconds),
        )


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    retry_after: timedelta = timedelta(0)


class RollingRateLimiter:
    def __init__(self, policy: RateLimitPolicy = RateLimitPolicy()):
        self.policy = policy
        self._history: dict[str, deque[datetime]] = {}

    def _trim(self, key: str, now: datetime) -> deque[datetime]:
        history = self._history.setdefault(key, deque())
        cutoff = now - self.policy.window
        while history and history[0] <= cutoff:
            history.popleft()
        return history

    def check(self, key: str, now: datetime) -> RateDecision:
        """Record an action for `key` if the window has room."""
        history = self._trim(key, now)
        if len(history) >= self.policy.max_actions:
            return RateDecision(False, history[0] + self.policy.window - now)
        history.append(now)
        return RateDecision(True)

    def record(self, key: str, now: datetime) -> None:
        """Count an action that may not be refused (withdrawal)."""
        self._trim(key, now).append(now)

    def prune(self, now: datetime) -> int:
        """Drop identities with no actions inside the window. Returns how many."""
        stale = [k for k in self._history if not self._trim(k, now)]
        for key in stale:
            del self._history[key]
        return len(stale)
