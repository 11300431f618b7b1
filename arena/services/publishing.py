"""Event publishing shared by the queue and the directory.

Invariants:
    - Never called while the queue lock or the directory lock is held; a session lock may be
      held, so events of one session go out in mutation order
    - A sink exception is logged and swallowed per event; later events still go out
"""

import logging
from collections.abc import Iterable

from arena.core.collaborator_protocols import EventSink
from arena.core.events import ArenaEvent

logger = logging.getLogger(__name__)


def publish_events(sink: EventSink | None, events: Iterable[ArenaEvent]) -> None:
    if sink is None:
        return
    for event in events:
        try:
            sink.publish(event)
        except Exception:
            logger.exception(
                "Event sink failed on %s", event.event_type,
                extra={
                    "player_id": getattr(event, "player_id", None),
                    "session_id": getattr(event, "session_id", None),
                },
            )
