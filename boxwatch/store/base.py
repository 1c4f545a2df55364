"""Event log store interface.

The store is an append-only sink with query-by-filter capability.  Events
are never mutated or deleted; history is exactly the append sequence, and
insertion order breaks ties between events with equal timestamps.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime

from boxwatch.models.events import Event, EventSource, EventType


@dataclass(frozen=True)
class EventFilter:
    """Conjunctive filter; ``None`` fields match anything.

    ``since`` and ``until`` are inclusive UTC bounds on ``Event.timestamp``.
    """

    source: EventSource | None = None
    type: EventType | None = None
    box_code: str | None = None
    since: datetime | None = None
    until: datetime | None = None

    def matches(self, event: Event) -> bool:
        if self.source is not None and event.source != self.source:
            return False
        if self.type is not None and event.type != self.type:
            return False
        if self.box_code is not None and event.box_code != self.box_code:
            return False
        if self.since is not None and event.timestamp < self.since:
            return False
        if self.until is not None and event.timestamp > self.until:
            return False
        return True

    @property
    def index_key(self) -> tuple[str, EventSource, EventType] | None:
        """Key into a (box, source, type) index, or None if the filter is broader."""
        if (
            self.box_code is None
            or self.source is None
            or self.type is None
            or self.since is not None
            or self.until is not None
        ):
            return None
        return (self.box_code, self.source, self.type)


class EventStore(ABC):
    """Abstract append-only event log.

    Implementations must be safe to call from multiple threads: concurrent
    appends must never corrupt or lose individual events.
    """

    @abstractmethod
    def append(self, event: Event) -> None:
        """Persist *event* at the end of the log."""

    @abstractmethod
    def query(self, flt: EventFilter | None = None) -> Iterator[Event]:
        """Yield events matching *flt* in insertion order.

        The iterator walks a point-in-time snapshot; call again to restart.
        """

    @abstractmethod
    def latest(self, flt: EventFilter) -> Event | None:
        """Return the most recent match by (timestamp, insertion order)."""

    @abstractmethod
    def distinct_box_codes(self, flt: EventFilter | None = None) -> set[str]:
        """Return every non-empty box code seen under *flt*."""

    def close(self) -> None:  # noqa: B027
        """Release backend resources.  Default: nothing to release."""
