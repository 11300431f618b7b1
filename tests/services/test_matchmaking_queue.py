"""Matchmaking Queue: tests for enrollment, pairing and expiry.

Tests cover:
    - Enrollment validation, duplicates and rate limiting
    - Pairing picks the best acceptable opponent and removes both atomically
    - Tolerance relaxation after the requester waits past max_wait
    - Concurrent attempt_match calls never hand out the same player twice
    - Expiry sweep, stats, positions and admin force_match
    - Lifecycle events, including a sink that raises
    - Event order matches mutation order when a publish is slow
    - match_player reports why no match was made
"""

import threading
from datetime import timedelta

import pytest

from arena.config import Settings
from arena.core.domain_types import QueueChange
from arena.core.errors import RejectionCode
from arena.core.match_scoring import COMPATIBLE_WAIT, EMPTY_QUEUE_WAIT
from arena.core.rate_limit import RateLimitPolicy
from arena.services.matchmaking_queue import FORCED_MATCH_QUALITY, MatchmakingQueue


@pytest.fixture
def queue(sink, clock) -> MatchmakingQueue:
    return MatchmakingQueue(
        rate_limit=RateLimitPolicy(10, timedelta(seconds=60)),
        event_sink=sink,
        clock=clock,
    )


# ─── Enrollment ──────────────────────────────────────────────────

def test_enroll_stamps_time_and_reports_position(queue, player_data, t0):
    first = queue.enroll(player_data("p1"))
    second = queue.enroll(player_data("p2"))
    assert first.success and second.success
    assert first.entry.enqueued_at == t0
    assert (first.position, second.position) == (1, 2)
    assert len(queue) == 2
    assert "p1" in queue


def test_duplicate_enrollment_is_rejected(queue, player_data):
    queue.enroll(player_data("p1"))
    result = queue.enroll(player_data("p1", level=9))
    assert not result.success
    assert result.rejection.code == RejectionCode.ALREADY_ENROLLED
    assert result.rejection.message == "Player already in queue"
    assert len(queue) == 1
    assert queue.get("p1").level == 5


def test_invalid_entry_never_enters_queue(queue, player_data, sink):
    result = queue.enroll(player_data("p1", display_name="no"))
    assert not result.success
    assert result.rejection.code == RejectionCode.INVALID_PLAYER_ENTRY
    assert result.rejection.field_name == "display_name"
    assert len(queue) == 0
    assert sink.events == []


def test_rate_limit_counts_withdrawals_and_recovers(queue, player_data, clock):
    for _ in range(5):
        assert queue.enroll(player_data("p1")).success
        assert queue.withdraw("p1")

    limited = queue.enroll(player_data("p1"))
    assert limited.rejection.code == RejectionCode.RATE_LIMITED
    assert limited.rejection.debug_info["retry_after_seconds"] == 60.0
    assert "p1" not in queue

    clock.advance(seconds=61)
    assert queue.enroll(player_data("p1")).success


def test_withdraw_is_never_refused(queue, player_data):
    for _ in range(10):
        queue.enroll(player_data("p1"))
    queue.withdraw("p1")
    assert queue.enroll(player_data("p1")).rejection.code == RejectionCode.RATE_LIMITED


def test_withdraw_absent_player_is_a_no_op(queue, sink):
    assert queue.withdraw("ghost") is False
    assert sink.events == []


# ─── Pairing ─────────────────────────────────────────────────────

def test_two_compatible_players_are_paired(queue, player_data, sink):
    queue.enroll(player_data("p1", level=5))
    queue.enroll(player_data("p2", level=6))

    match = queue.attempt_match("p1")
    assert match is not None
    assert match.player_ids == ("p1", "p2")
    assert match.quality == pytest.approx(0.25)
    assert match.session_id.startswith("room_")
    assert len(queue) == 0

    matched = [e for e in sink.of_type("queue_membership_changed") if e.change is QueueChange.MATCHED]
    assert [e.player_id for e in matched] == ["p1", "p2"]
    assert all(e.queue_size == 0 for e in matched)


def test_incompatible_players_wait_until_tolerance_relaxes(queue, player_data, clock):
    queue.enroll(player_data("p1", level=5))
    queue.enroll(player_data("p2", level=8))
    assert queue.attempt_match("p1") is None
    assert len(queue) == 2

    clock.advance(seconds=31)
    match = queue.attempt_match("p1")
    assert match is not None
    assert match.player_ids == ("p1", "p2")


def test_attempt_match_for_absent_player_returns_none(queue):
    assert queue.attempt_match("ghost") is None


def test_match_player_explains_a_miss(queue, player_data):
    assert queue.match_player("ghost").code == RejectionCode.NOT_ENROLLED
    queue.enroll(player_data("p1"))
    assert queue.match_player("p1").code == RejectionCode.NO_MATCH_AVAILABLE
    queue.enroll(player_data("p2"))
    assert queue.match_player("p1").player_ids == ("p1", "p2")


def test_lone_player_stays_queued(queue, player_data):
    queue.enroll(player_data("p1"))
    assert queue.attempt_match("p1") is None
    assert "p1" in queue


def test_best_acceptable_opponent_is_chosen(queue, player_data, clock):
    queue.enroll(player_data("far", level=9))
    clock.advance(seconds=5)
    queue.enroll(player_data("near", level=6))
    queue.enroll(player_data("same", level=5))
    queue.enroll(player_data("me", level=5))

    match = queue.attempt_match("me")
    assert match.player_two.player_id == "same"
    assert {e.player_id for e in queue.snapshot()} == {"far", "near"}


def test_concurrent_matching_never_double_books(queue, player_data):
    ids = [f"p{i}" for i in range(20)]
    for pid in ids:
        assert queue.enroll(player_data(pid, level=5)).success

    barrier = threading.Barrier(len(ids))
    results = []
    results_lock = threading.Lock()

    def worker(pid):
        barrier.wait()
        match = queue.attempt_match(pid)
        if match is not None:
            with results_lock:
                results.append(match)

    threads = [threading.Thread(target=worker, args=(pid,)) for pid in ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    paired = [pid for m in results for pid in m.player_ids]
    assert len(paired) == len(set(paired))
    assert len(paired) + len(queue) == len(ids)
    assert not set(paired) & {e.player_id for e in queue.snapshot()}


# ─── force_match ─────────────────────────────────────────────────

def test_force_match_ignores_tolerance(queue, player_data):
    queue.enroll(player_data("low", level=1))
    queue.enroll(player_data("high", level=90))
    match = queue.force_match("low", "high")
    assert match.quality == FORCED_MATCH_QUALITY
    assert match.player_ids == ("low", "high")
    assert len(queue) == 0


def test_force_match_requires_two_enrolled_players(queue, player_data):
    queue.enroll(player_data("p1"))
    assert queue.force_match("p1", "ghost") is None
    assert queue.force_match("p1", "p1") is None
    assert "p1" in queue


# ─── Inspection ──────────────────────────────────────────────────

def test_positions_follow_enqueue_order(queue, player_data, clock):
    queue.enroll(player_data("p1"))
    clock.advance(seconds=1)
    queue.enroll(player_data("p2"))
    queue.enroll(player_data("p3"))
    assert [queue.queue_position(p) for p in ("p1", "p2", "p3")] == [1, 2, 3]
    queue.withdraw("p1")
    assert queue.queue_position("p3") == 2
    assert queue.queue_position("p1") == -1


def test_stats(queue, player_data, clock):
    assert queue.stats().total_players == 0
    queue.enroll(player_data("p1", level=5))
    clock.advance(seconds=10)
    queue.enroll(player_data("p2", level=5))
    clock.advance(seconds=10)
    queue.enroll(player_data("p3", level=7))
    clock.advance(seconds=10)

    stats = queue.stats()
    assert stats.total_players == 3
    assert stats.average_wait == timedelta(seconds=20)
    assert stats.level_distribution == {5: 2, 7: 1}


def test_estimated_wait(queue, player_data, make_player):
    newcomer = make_player("new", level=5)
    assert queue.estimated_wait(newcomer) == EMPTY_QUEUE_WAIT
    queue.enroll(player_data("p1", level=6))
    assert queue.estimated_wait(newcomer) == COMPATIBLE_WAIT


# ─── Expiry ──────────────────────────────────────────────────────

def test_sweep_removes_only_stale_entries(queue, player_data, clock, sink):
    queue.enroll(player_data("old"))
    clock.advance(minutes=4)
    queue.enroll(player_data("fresh"))
    clock.advance(minutes=2)

    assert queue.sweep_expired() == 1
    assert "old" not in queue
    assert "fresh" in queue

    expired = [e for e in sink.events if e.change is QueueChange.EXPIRED]
    assert [e.player_id for e in expired] == ["old"]


def test_sweep_with_explicit_age(queue, player_data, clock):
    queue.enroll(player_data("p1"))
    clock.advance(seconds=30)
    assert queue.sweep_expired(max_age=timedelta(seconds=60)) == 0
    assert queue.sweep_expired(max_age=timedelta(seconds=10)) == 1


# ─── Events / configuration ──────────────────────────────────────

def test_join_and_leave_events(queue, player_data, sink):
    queue.enroll(player_data("p1"))
    queue.withdraw("p1")
    changes = [(e.player_id, e.change, e.queue_size) for e in sink.events]
    assert changes == [("p1", QueueChange.JOINED, 1), ("p1", QueueChange.LEFT, 0)]


def test_failing_sink_does_not_undo_enrollment(player_data, clock, caplog):
    class ExplodingSink:
        def publish(self, event):
            raise RuntimeError("sink down")

    queue = MatchmakingQueue(event_sink=ExplodingSink(), clock=clock)
    result = queue.enroll(player_data("p1"))
    assert result.success
    assert "p1" in queue
    assert "Event sink failed" in caplog.text


def test_from_settings(clock):
    settings = Settings(match_level_tolerance=3, queue_max_age_ms=1000, rate_limit_max_actions=2)
    queue = MatchmakingQueue.from_settings(settings, clock=clock)
    assert queue.options.level_tolerance == 3
    assert queue.max_age == timedelta(seconds=1)


def test_join_is_published_before_match_when_publish_is_slow(
    gated_sink, clock, player_data, eventually,
):
    sink = gated_sink(lambda e: e.player_id == "p2" and e.change is QueueChange.JOINED)
    queue = MatchmakingQueue(event_sink=sink, clock=clock)
    queue.enroll(player_data("p1"))

    joiner = threading.Thread(target=queue.enroll, args=(player_data("p2"),))
    joiner.start()
    assert sink.entered.wait(timeout=5)

    matcher = threading.Thread(target=queue.attempt_match, args=("p1",))
    matcher.start()
    assert eventually(lambda: len(queue) == 0)

    sink.release.set()
    joiner.join()
    matcher.join()
    changes = [(e.player_id, e.change) for e in sink.events]
    assert changes == [
        ("p1", QueueChange.JOINED),
        ("p2", QueueChange.JOINED),
        ("p1", QueueChange.MATCHED),
        ("p2", QueueChange.MATCHED),
    ]


def test_sink_may_call_back_into_the_queue(clock, player_data):
    seen = []

    class ReentrantSink:
        def publish(self, event):
            seen.append((event.player_id, event.change, len(queue)))
            if event.change is QueueChange.JOINED and event.player_id == "p2":
                queue.attempt_match("p2")

    queue = MatchmakingQueue(event_sink=ReentrantSink(), clock=clock)
    queue.enroll(player_data("p1"))
    queue.enroll(player_data("p2"))
    assert len(queue) == 0
    assert [(pid, change) for pid, change, _ in seen] == [
        ("p1", QueueChange.JOINED),
        ("p2", QueueChange.JOINED),
        ("p2", QueueChange.MATCHED),
        ("p1", QueueChange.MATCHED),
    ]
