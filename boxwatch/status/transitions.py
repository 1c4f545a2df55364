"""Edge-triggered transition detection on heartbeat arrival.

A heartbeat is always logged.  A STATUS_CHANGE ``online`` is appended only
when the channel has no recorded status yet or its latest recorded status is
``offline``; repeated heartbeats of an online channel append nothing, so the
STATUS_CHANGE timeline contains true transitions only.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime

from boxwatch.models.events import Event, EventSource, EventType, OnlineStatus
from boxwatch.observability.logging import get_logger
from boxwatch.observability.metrics import status_transitions_total
from boxwatch.store.base import EventFilter, EventStore
from boxwatch.timecodec import Clock

_logger = get_logger("status.transitions")

ChannelKey = tuple[str, EventSource]


class TransitionDetector:
    """Serialises read-then-append transition checks per (box_code, source).

    The keyed locks are shared with the offline sweeper so a heartbeat and a
    sweep of the same channel can never interleave their check and append.
    """

    def __init__(self, store: EventStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock
        self._locks: defaultdict[ChannelKey, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock(self, box_code: str, source: EventSource) -> asyncio.Lock:
        return self._locks[(box_code, source)]

    async def record_heartbeat(
        self,
        box_code: str,
        source: EventSource,
        ip: str | None = None,
    ) -> Event | None:
        """Log a heartbeat and append an ``online`` edge if the channel was not online.

        Returns the appended STATUS_CHANGE event, or None when the channel
        was already online.
        """
        loop = asyncio.get_running_loop()
        async with self.lock(box_code, source):
            # store I/O runs off the event loop; the keyed lock still serialises the channel
            change, last_status = await loop.run_in_executor(
                None, self._append_heartbeat, box_code, source, ip, self._clock.now()
            )
        if change is None:
            return None

        status_transitions_total.labels(source=source.value, status=OnlineStatus.ONLINE.value).inc()
        _logger.info(
            "box_status_changed",
            box_code=box_code,
            source=source.value,
            previous="offline" if last_status is not None else "unknown",
            status="online",
            ip=ip,
        )
        return change

    def _append_heartbeat(
        self,
        box_code: str,
        source: EventSource,
        ip: str | None,
        now: datetime,
    ) -> tuple[Event | None, Event | None]:
        """Return (appended online transition or None, previous STATUS_CHANGE)."""
        self._store.append(
            Event(
                timestamp=now,
                source=source,
                type=EventType.HEARTBEAT,
                box_code=box_code,
                ip=ip,
                online_status=OnlineStatus.ONLINE,
            )
        )

        last_status = self._store.latest(
            EventFilter(source=source, type=EventType.STATUS_CHANGE, box_code=box_code)
        )
        if last_status is not None and last_status.online_status == OnlineStatus.ONLINE:
            return None, last_status

        change = Event(
            timestamp=now,
            source=source,
            type=EventType.STATUS_CHANGE,
            box_code=box_code,
            ip=ip,
            online_status=OnlineStatus.ONLINE,
        )
        self._store.append(change)
        return change, last_status
