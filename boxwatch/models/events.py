"""Core event data structures and enumerations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import uuid4


class EventSource(StrEnum):
    """Reporting channel that produced an event."""

    AI_BOX = "AI_BOX"
    NODE_RED = "NODE_RED"


class EventType(StrEnum):
    """Discriminates the payload fields of an Event."""

    HEARTBEAT = "heartbeat"
    STATUS_CHANGE = "status_change"
    SERVICE_STATUS = "service_status"


class OnlineStatus(StrEnum):
    """Online state of a box channel."""

    ONLINE = "online"
    OFFLINE = "offline"


class ServiceState(StrEnum):
    """Derived state of an expected service."""

    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True)
class Event:
    """Canonical event representation.

    Appended to the event log by the ingestion handlers, the transition
    detector and the offline sweeper.  Immutable: no component may mutate an
    Event after creation.  ``timestamp`` is always timezone-aware UTC.
    """

    timestamp: datetime
    source: EventSource
    type: EventType
    box_code: str | None = None
    ip: str | None = None
    online_status: OnlineStatus | None = None
    service_name: str | None = None
    service_status: str | None = None
    event_id: str = field(default_factory=lambda: str(uuid4()))

    @property
    def is_running_report(self) -> bool:
        return self.type == EventType.SERVICE_STATUS and self.service_status == ServiceState.RUNNING
