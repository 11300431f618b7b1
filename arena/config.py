"""Arena Configuration: environment-driven settings via pydantic-settings.

Invariants:
    - get_settings() is cached (lru_cache): single instance per process
    - Every setting has a default; the core runs with no environment at all
    - Core modules never read Settings directly; services translate them via from_settings()

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - ARENA_ prefix keeps these apart from the host service's own variables
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Arena settings from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ARENA_", env_file=".env", case_sensitive=False, extra="ignore",
    )

    # Energy
    energy_max: int = Field(5, ge=1)
    energy_regen_minutes: float = Field(5, gt=0)
    energy_cost_per_game: int = Field(1, ge=1)

    # Matchmaking
    match_level_tolerance: int = Field(2, ge=1)
    match_max_wait_ms: int = Field(30_000, gt=0)
    queue_max_age_ms: int = Field(300_000, gt=0)

    # Queue abuse protection
    rate_limit_max_actions: int = Field(10, ge=1)
    rate_limit_window_seconds: float = Field(60, gt=0)

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("log_format")
    @classmethod
    def check_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
