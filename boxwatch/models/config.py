"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

from boxwatch.models.events import EventSource


@dataclass
class MonitorConfig:
    """Status derivation and sweep tuning."""

    box_heartbeat_timeout: timedelta = timedelta(minutes=4)
    nodered_heartbeat_timeout: timedelta = timedelta(minutes=2)
    service_freshness: timedelta = timedelta(minutes=3)
    sweep_interval_seconds: float = 5.0
    history_limit: int = 1000
    display_tz: str = "UTC"
    # box code -> ordered expected service names
    service_map: dict[str, list[str]] = field(default_factory=dict)

    def heartbeat_timeouts(self) -> dict[EventSource, timedelta]:
        """Per-channel silence threshold used by the live view and the sweeper."""
        return {
            EventSource.AI_BOX: self.box_heartbeat_timeout,
            EventSource.NODE_RED: self.nodered_heartbeat_timeout,
        }


@dataclass
class StoreConfig:
    """Event log store configuration."""

    backend: str = "memory"  # "memory" | "sqlite"
    path: str = "boxwatch.db"


@dataclass
class APIConfig:
    """REST API configuration."""

    host: str = "0.0.0.0"
    port: int = 3000


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class BoxWatchConfig:
    """Top-level BoxWatch configuration."""

    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
