"""Player Schemas: Pydantic models with field-level validation for the enrollment boundary.

Invariants:
    - PlayerEntry.display_name: 3-20 chars of [A-Za-z0-9_-], stripped
    - PlayerEntry.level: strict integer 1-100 (no floats, no bools)
    - PlayerEntry.rating: optional finite number 0-3000
    - A PlayerEntry that exists is valid: parse_player_entry is the only way in from raw data

Design Decisions:
    - Factory returns PlayerEntry | Rejection instead of raising: the queue reports the
      first failing field as its reason string
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError

from arena.core.errors import Rejection, invalid_player_entry

DISPLAY_NAME_PATTERN = r"^[A-Za-z0-9_-]+$"

PlayerIdField = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=64)]
DisplayName = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True, min_length=3, max_length=20, pattern=DISPLAY_NAME_PATTERN,
    ),
]
HandleField = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=128)]


class PlayerEntry(BaseModel):
    """A player as the queue stores them. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    player_id: PlayerIdField
    display_name: DisplayName
    level: int = Field(strict=True, ge=1, le=100)
    rating: float | None = Field(None, ge=0, le=3000, allow_inf_nan=False)
    connection_handle: HandleField
    enqueued_at: datetime | None = None

    def enqueued(self, now: datetime) -> "PlayerEntry":
        return self.model_copy(update={"enqueued_at": now})


def describe_validation_error(exc: ValidationError) -> tuple[str, str | None]:
    """First error as (message, field path)."""
    first = exc.errors()[0]
    field_path = ".".join(str(part) for part in first.get("loc", ())) or None
    message = first.get("msg", "invalid value")
    if field_path:
        message = f"{field_path}: {message}"
    return message, field_path


def parse_player_entry(raw: Any) -> PlayerEntry | Rejection:
    """Validate collaborator-supplied player data once, at the boundary."""
    if isinstance(raw, PlayerEntry):
        return raw
    if not isinstance(raw, Mapping):
        return invalid_player_entry("Player must be a valid object")
    try:
        return PlayerEntry.model_validate(dict(raw))
    except ValidationError as exc:
        message, field_path = describe_validation_error(exc)
        return invalid_player_entry(message, field_path)
