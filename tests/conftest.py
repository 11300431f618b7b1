"""Root conftest: shared clock, event sink and player factories.

Invariants:
    - Tests never read the wall clock; every service gets a FrozenClock
    - ARENA_* environment variables are cleared so defaults apply
    - The arena logger is put back as it was after every test
"""

import logging
import os
import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from arena.config import get_settings
from arena.infrastructure.observability import ARENA_LOGGER
from arena.schemas.player import PlayerEntry
from arena.services.matchmaking_queue import MatchResult

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingSink:
    def __init__(self):
        self.events = []

    def publish(self, event) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list:
        return [e for e in self.events if e.event_type == event_type]


class GatedSink(RecordingSink):
    """Holds the first publish matching `hold` until release is set."""

    def __init__(self, hold):
        super().__init__()
        self._hold = hold
        self.entered = threading.Event()
        self.release = threading.Event()

    def publish(self, event) -> None:
        if not self.entered.is_set() and self._hold(event):
            self.entered.set()
            self.release.wait(timeout=5)
        super().publish(event)


@pytest.fixture(autouse=True)
def clean_arena_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("ARENA_"):
            monkeypatch.delenv(key)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def restore_arena_logger():
    logger = logging.getLogger(ARENA_LOGGER)
    level, handlers = logger.level, list(logger.handlers)
    yield
    logger.setLevel(level)
    logger.handlers[:] = handlers


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def gated_sink():
    return GatedSink


@pytest.fixture
def player_data():
    """Raw enrollment payload, as the profile collaborator would send it."""
    def _make(player_id: str = "p1", level: int = 5, **overrides) -> dict:
        data = {
            "player_id": player_id,
            "display_name": f"player_{player_id}",
            "level": level,
            "connection_handle": f"sock-{player_id}",
        }
        data.update(overrides)
        return data
    return _make


@pytest.fixture
def make_player(player_data):
    def _make(player_id: str = "p1", level: int = 5, **overrides) -> PlayerEntry:
        return PlayerEntry(**player_data(player_id, level, **overrides))
    return _make


@pytest.fixture
def make_match(make_player):
    def _make(first: str = "alice", second: str = "bob", session_id: str = "room_test") -> MatchResult:
        return MatchResult(
            player_one=make_player(first, enqueued_at=T0),
            player_two=make_player(second, enqueued_at=T0),
            session_id=session_id,
            quality=0.5,
            matched_at=T0,
        )
    return _make


def wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            return False
        time.sleep(0.005)
    return True


@pytest.fixture
def eventually():
    return wait_until
