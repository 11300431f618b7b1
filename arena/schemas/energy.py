"""Energy Schemas: coerce a profile store's energy record into a core EnergySnapshot.

Invariants:
    - Structural problems (missing fields, unparseable or non-finite timestamps) become a
      CORRUPTED_ENERGY rejection, the same signal the core gives for negative balances
    - Booleans are never read as numbers: {"current": true} is corrupted, not 1
    - Range problems (negative, above capacity, future timestamps) are left to the core

Design Decisions:
    - last_update accepts datetimes, ISO strings and epoch seconds (pydantic lax datetime)
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from arena.core.energy import EnergySnapshot
from arena.core.errors import Rejection, corrupted_energy
from arena.schemas.player import describe_validation_error


class EnergyRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    current: int | float
    max_energy: int | None = None
    last_update: datetime

    @field_validator("current", "max_energy", mode="before")
    @classmethod
    def reject_bool(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("must be a number, not a boolean")
        return v


def parse_energy_snapshot(raw: Any, default_max: int) -> EnergySnapshot | Rejection:
    if isinstance(raw, EnergySnapshot):
        return raw
    if not isinstance(raw, Mapping):
        return corrupted_energy(["energy record must be an object"])
    try:
        record = EnergyRecord.model_validate(dict(raw))
    except ValidationError as exc:
        message, _ = describe_validation_error(exc)
        return corrupted_energy([message])
    return EnergySnapshot(
        current=record.current,
        max_energy=record.max_energy if record.max_energy is not None else default_max,
        last_update=record.last_update,
    )
