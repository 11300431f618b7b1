"""Rejections: tests for envelopes, categories and recoverability."""

from arena.core.errors import (
    ErrorCategory, ErrorSeverity, Rejection, RejectionCode,
    already_enrolled, cell_occupied, corrupted_energy, invalid_move_coordinates,
    invalid_player_entry, no_match_available, not_a_participant, rate_limited,
    session_exists, session_not_found, session_not_terminal,
)


def test_to_response_envelope():
    rejection = invalid_player_entry("level: too low", "level")
    body = rejection.to_response()["error"]
    assert body["code"] == "INVALID_PLAYER_ENTRY"
    assert body["category"] == "validation"
    assert body["severity"] == "error"
    assert body["field"] == "level"
    assert body["message"] == "level: too low"
    assert body["timestamp"]


def test_to_event_envelope():
    event = cell_occupied(1, 2).to_event()
    assert event["type"] == "error"
    assert event["data"]["code"] == "CELL_OCCUPIED"
    assert event["data"]["message"] == "Cell (1, 2) already occupied"
    assert event["data"]["recoverable"] is True


def test_policy_and_lookup_failures_are_recoverable():
    assert already_enrolled("p1").recoverable
    assert no_match_available().recoverable
    assert session_not_found("room_x").recoverable


def test_validation_corruption_and_conflicts_are_not_recoverable():
    assert not invalid_move_coordinates(5, 5).recoverable
    assert not corrupted_energy(["negative current"]).recoverable
    assert not session_exists("room_x").recoverable
    assert not session_not_terminal("active").recoverable


def test_duplicate_enrollment_message():
    assert already_enrolled("p1").message == "Player already in queue"


def test_rate_limited_carries_retry_hint():
    rejection = rate_limited(12.34567)
    assert rejection.code == RejectionCode.RATE_LIMITED
    assert rejection.debug_info == {"retry_after_seconds": 12.346}


def test_debug_info_stays_out_of_public_envelopes():
    rejection = not_a_participant("mallory")
    assert "mallory" not in str(rejection.to_response())
    assert "mallory" not in str(rejection.to_event())
    assert rejection.severity is ErrorSeverity.ERROR


def test_corrupted_energy_lists_reasons():
    rejection = corrupted_energy(["current is NaN", "last_update is in the future"])
    assert rejection.category is ErrorCategory.CORRUPTED_INPUT
    assert rejection.debug_info["reasons"] == ["current is NaN", "last_update is in the future"]


def test_rejection_stamps_its_own_timestamp():
    rejection = Rejection(RejectionCode.NOT_YOUR_TURN, "Not your turn", ErrorCategory.POLICY)
    assert rejection.timestamp.tzinfo is not None
    assert rejection.field_name is None
    assert rejection.to_response()["error"]["field"] is None
