"""Player Schemas: tests for the enrollment boundary."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from arena.core.errors import Rejection, RejectionCode
from arena.schemas.player import PlayerEntry, parse_player_entry


def test_valid_entry_is_parsed(player_data):
    entry = parse_player_entry(player_data("p1", level=42, rating=1500))
    assert isinstance(entry, PlayerEntry)
    assert entry.player_id == "p1"
    assert entry.level == 42
    assert entry.rating == 1500
    assert entry.enqueued_at is None


def test_whitespace_is_stripped(player_data):
    entry = parse_player_entry(player_data("  p1  ", display_name="  alice_1  "))
    assert entry.player_id == "p1"
    assert entry.display_name == "alice_1"


@pytest.mark.parametrize("overrides,field", [
    ({"display_name": "ab"}, "display_name"),
    ({"display_name": "x" * 21}, "display_name"),
    ({"display_name": "bad name!"}, "display_name"),
    ({"display_name": "    "}, "display_name"),
    ({"level": 0}, "level"),
    ({"level": 101}, "level"),
    ({"level": 5.0}, "level"),
    ({"level": "5"}, "level"),
    ({"level": True}, "level"),
    ({"rating": -1}, "rating"),
    ({"rating": 3000.5}, "rating"),
    ({"rating": float("nan")}, "rating"),
    ({"connection_handle": ""}, "connection_handle"),
])
def test_invalid_fields_are_rejected_with_field_name(player_data, overrides, field):
    result = parse_player_entry(player_data("p1", **overrides))
    assert isinstance(result, Rejection)
    assert result.code == RejectionCode.INVALID_PLAYER_ENTRY
    assert result.field_name == field
    assert result.message.startswith(f"{field}: ")


def test_missing_field_is_rejected(player_data):
    data = player_data("p1")
    del data["connection_handle"]
    result = parse_player_entry(data)
    assert result.field_name == "connection_handle"


@pytest.mark.parametrize("raw", [None, "p1", 42, ["p1"]])
def test_non_object_is_rejected(raw):
    result = parse_player_entry(raw)
    assert result.code == RejectionCode.INVALID_PLAYER_ENTRY
    assert result.message == "Player must be a valid object"
    assert result.field_name is None


def test_entries_are_immutable(make_player):
    entry = make_player("p1")
    with pytest.raises(ValidationError):
        entry.level = 50


def test_enqueued_returns_stamped_copy(make_player):
    entry = make_player("p1")
    now = datetime(2026, 3, 1, tzinfo=timezone.utc)
    stamped = entry.enqueued(now)
    assert stamped.enqueued_at == now
    assert entry.enqueued_at is None
    assert parse_player_entry(stamped) is stamped
