"""Heartbeat counts and cumulative online/offline durations."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from boxwatch.models.events import Event, EventSource, EventType, OnlineStatus
from boxwatch.models.views import UptimeStats
from boxwatch.store.base import EventFilter, EventStore


def compute_uptime(
    store: EventStore,
    box_code: str | None = None,
    source: EventSource = EventSource.AI_BOX,
    since: datetime | None = None,
    until: datetime | None = None,
) -> UptimeStats:
    """Aggregate one channel's activity.

    ``total_heartbeats`` counts HEARTBEAT events within [since, until].
    Durations are independent of the range: each box's full STATUS_CHANGE
    sequence is walked in time order and every closed interval
    ``next.timestamp - current.timestamp`` is credited to online or offline
    according to ``current.online_status``.  The open interval after the last
    transition is not counted.
    """
    heartbeats = sum(
        1
        for _ in store.query(
            EventFilter(
                source=source,
                type=EventType.HEARTBEAT,
                box_code=box_code,
                since=since,
                until=until,
            )
        )
    )

    per_box: defaultdict[str | None, list[Event]] = defaultdict(list)
    for change in store.query(
        EventFilter(source=source, type=EventType.STATUS_CHANGE, box_code=box_code)
    ):
        per_box[change.box_code].append(change)

    online_ms = 0
    offline_ms = 0
    for changes in per_box.values():
        # stable sort keeps insertion order for equal timestamps
        changes.sort(key=lambda change: change.timestamp)
        for current, following in zip(changes, changes[1:], strict=False):
            span_ms = int((following.timestamp - current.timestamp).total_seconds() * 1000)
            if current.online_status == OnlineStatus.ONLINE:
                online_ms += span_ms
            else:
                offline_ms += span_ms

    return UptimeStats(
        total_heartbeats=heartbeats,
        total_online_ms=online_ms,
        total_offline_ms=offline_ms,
    )
