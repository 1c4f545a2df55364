"""Read-side view structures returned by the status engine and aggregator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from boxwatch.models.events import EventSource, OnlineStatus, ServiceState


@dataclass(frozen=True)
class ServiceView:
    """Derived state of one expected service on a box."""

    service_name: str
    service_status: ServiceState
    last_report: datetime | None = None


@dataclass(frozen=True)
class ChannelStatus:
    """Online state of one reporting channel, from its latest heartbeat."""

    source: EventSource
    online: bool
    last_heartbeat: datetime | None = None
    ip: str | None = None

    @property
    def online_status(self) -> OnlineStatus:
        return OnlineStatus.ONLINE if self.online else OnlineStatus.OFFLINE


@dataclass(frozen=True)
class BoxStatus:
    """One row of the live status view."""

    box_code: str
    box: ChannelStatus
    nodered: ChannelStatus
    services: list[ServiceView] = field(default_factory=list)


@dataclass(frozen=True)
class StatusChangeEntry:
    """A STATUS_CHANGE event annotated with the service context at that instant."""

    timestamp: datetime
    box_code: str | None
    source: EventSource
    online_status: OnlineStatus | None
    ip: str | None
    service_summary: str  # e.g. "mediaserver.service: running, aiserver.service: stopped" or "-"


@dataclass(frozen=True)
class UptimeStats:
    """Aggregated heartbeat count and closed-interval online/offline durations."""

    total_heartbeats: int = 0
    total_online_ms: int = 0
    total_offline_ms: int = 0
