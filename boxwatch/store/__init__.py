"""Event log store for BoxWatch.

Submodules:
    base    -- EventStore ABC and EventFilter.
    memory  -- In-memory store with a per-(box, source, type) last-event index.
    sqlite  -- SQLite-backed store for persistence across restarts.
"""

from __future__ import annotations

from boxwatch.models.config import StoreConfig
from boxwatch.store.base import EventFilter, EventStore
from boxwatch.store.memory import InMemoryEventStore
from boxwatch.store.sqlite import SQLiteEventStore

__all__ = [
    "EventFilter",
    "EventStore",
    "InMemoryEventStore",
    "SQLiteEventStore",
    "build_store",
]


def build_store(config: StoreConfig) -> EventStore:
    """Create the store backend named by ``config.backend``."""
    if config.backend == "memory":
        return InMemoryEventStore()
    if config.backend == "sqlite":
        return SQLiteEventStore(config.path)
    raise ValueError(f"Unknown store backend: {config.backend!r}")
