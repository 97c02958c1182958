"""
Event Sink: fire-and-forget status notifications

The lifecycle manager and the query orchestrator announce progress through an
EventSink. The real-time transport (websocket fan-out etc.) lives outside
this service; what ships here is:

  NullEventSink     drops everything
  LoggingEventSink  one INFO line per event

publish() never propagates a sink failure and tolerates a missing sink.
Delivery is inline: the pipeline awaits sink.publish(), so a sink must
return without waiting on its consumers. A transport that can block hands
the event to its own queue and returns.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Protocol, Union

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Event payloads
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DocumentEvent:
    document_id: str
    status:      str
    message:     str | None = None
    progress:    int | None = None
    timestamp:   str = field(default_factory=_now)

    event_name = "document:status"


@dataclass(frozen=True)
class QueryEvent:
    query_id:  str
    status:    str
    query:     str
    timestamp: str = field(default_factory=_now)

    event_name = "query:status"


@dataclass(frozen=True)
class AnalysisEvent:
    analysis_id: str
    document_id: str
    title:       str
    kind:        str
    timestamp:   str = field(default_factory=_now)

    event_name = "analysis:created"


@dataclass(frozen=True)
class SystemNotification:
    type:      str          # info | success | warning | error
    title:     str
    message:   str
    timestamp: str = field(default_factory=_now)

    event_name = "system:notification"


Event = Union[DocumentEvent, QueryEvent, AnalysisEvent, SystemNotification]


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------

class EventSink(Protocol):
    async def publish(self, event: Event) -> None:
        """Accept an event and return promptly; never wait for an acknowledgement."""
        ...


class NullEventSink:
    async def publish(self, event: Event) -> None:
        return None


class LoggingEventSink:
    """Writes each event as a single structured log line."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    async def publish(self, event: Event) -> None:
        self._log.info("Event | name=%s payload=%s", event.event_name, asdict(event))


async def publish(sink: EventSink | None, event: Event) -> None:
    """Deliver an event, logging (never raising) on failure."""
    if sink is None:
        return
    try:
        await sink.publish(event)
    except Exception as exc:
        logger.warning("Event | publish failed name=%s: %s", event.event_name, exc)
