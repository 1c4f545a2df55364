"""Core data structures for BoxWatch."""

from boxwatch.models.config import BoxWatchConfig, MonitorConfig
from boxwatch.models.events import (
    Event,
    EventSource,
    EventType,
    OnlineStatus,
    ServiceState,
)
from boxwatch.models.views import (
    BoxStatus,
    ChannelStatus,
    ServiceView,
    StatusChangeEntry,
    UptimeStats,
)

__all__ = [
    "BoxStatus",
    "BoxWatchConfig",
    "ChannelStatus",
    "Event",
    "EventSource",
    "EventType",
    "MonitorConfig",
    "OnlineStatus",
    "ServiceState",
    "ServiceView",
    "StatusChangeEntry",
    "UptimeStats",
]
