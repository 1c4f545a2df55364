"""In-memory event log with an incremental last-event index."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from itertools import islice

from boxwatch.models.events import Event, EventSource, EventType
from boxwatch.store.base import EventFilter, EventStore


class InMemoryEventStore(EventStore):
    """List-backed store.

    Besides the append log, keeps the most recent event per
    (box_code, source, type) so the hot "latest heartbeat / latest status
    change for this box" lookups do not rescan the log.
    """

    def __init__(self) -> None:
        self._events: list[Event] = []
        self._last: dict[tuple[str, EventSource, EventType], Event] = {}
        self._lock = threading.RLock()

    def append(self, event: Event) -> None:
        with self._lock:
            self._events.append(event)
            if event.box_code is None:
                return
            key = (event.box_code, event.source, event.type)
            current = self._last.get(key)
            # >= so a later append wins a timestamp tie
            if current is None or event.timestamp >= current.timestamp:
                self._last[key] = event

    def query(self, flt: EventFilter | None = None) -> Iterator[Event]:
        flt = flt or EventFilter()
        with self._lock:
            size = len(self._events)
        return (event for event in islice(self._events, size) if flt.matches(event))

    def latest(self, flt: EventFilter) -> Event | None:
        key = flt.index_key
        if key is not None:
            with self._lock:
                return self._last.get(key)

        best: Event | None = None
        for event in self.query(flt):
            if best is None or event.timestamp >= best.timestamp:
                best = event
        return best

    def distinct_box_codes(self, flt: EventFilter | None = None) -> set[str]:
        return {event.box_code for event in self.query(flt) if event.box_code}
