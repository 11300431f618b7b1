"""Structured Logging: formatters and the arena logger's handler.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Arena context (player_id, session_id, error_code, queue_size, ...) is surfaced when
      present; any other extra stays out of the output
    - The timestamp is the record's creation time, not the time it was formatted
    - configure_logging installs at most one handler on the "arena" logger, however
      often it runs

Design Decisions:
    - Configures the "arena" logger, not the root: the host owns the root logger, and
      arena records still propagate to it
    - JSON format in production, key=value text in development
"""

import json
import logging
from datetime import datetime, timezone

ARENA_LOGGER = "arena"

EXTRA_FIELDS = (
    "player_id", "session_id", "error_code", "queue_size", "quality", "removed",
    "retry_after_seconds",
)

_installed_handler: logging.Handler | None = None


def arena_context(record: logging.LogRecord) -> dict:
    return {
        key: record.__dict__[key]
        for key in EXTRA_FIELDS
        if record.__dict__.get(key) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log.update(arena_context(record))
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


class ContextTextFormatter(logging.Formatter):
    """Human-readable line with the arena context appended as key=value pairs."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = arena_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        head, sep, tail = line.partition("\n")
        return f"{head} [{pairs}]{sep}{tail}"


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Attach a stream handler to the arena logger, replacing one set up earlier."""
    global _installed_handler
    logger = logging.getLogger(ARENA_LOGGER)
    if _installed_handler is not None:
        logger.removeHandler(_installed_handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if fmt == "json" else ContextTextFormatter())
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    _installed_handler = handler
    return handler


def configure_logging(settings) -> logging.Handler:
    return setup_logging(settings.log_level, settings.log_format)
