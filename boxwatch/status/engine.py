"""Status derivation engine.

Read-side projections of the event log, all pure functions of the store
contents and the clock at query time:

    list_boxes          -- live status view, one row per known box.
    channel_status      -- online flag + last heartbeat for one channel.
    list_status_changes -- STATUS_CHANGE history with service context.
    list_events         -- raw heartbeat / service-status history.
    known_box_codes     -- box codes for populating query filters.

A box is "known" if it has any event or is named in the service map.  Each
view is composed of several point-in-time reads; no cross-read consistency
is guaranteed.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta

from boxwatch.models.events import Event, EventSource, EventType, ServiceState
from boxwatch.models.views import BoxStatus, ChannelStatus, ServiceView, StatusChangeEntry
from boxwatch.store.base import EventFilter, EventStore
from boxwatch.timecodec import Clock

DEFAULT_HISTORY_LIMIT = 1000


class StatusEngine:
    """Derives current and historical box state from the event log.

    Args:
        store:             Event log.
        clock:             Source of "now".
        service_map:       Box code -> ordered expected service names.  Loaded
                           once at startup and passed in explicitly.
        timeouts:          Heartbeat silence threshold per channel.
        service_freshness: Max age of a "running" report before it decays to
                           "stopped".
        history_limit:     Cap on rows returned by the history views.
    """

    def __init__(
        self,
        store: EventStore,
        clock: Clock,
        service_map: Mapping[str, Sequence[str]],
        timeouts: Mapping[EventSource, timedelta],
        service_freshness: timedelta,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        self._store = store
        self._clock = clock
        self._service_map = {box: list(names) for box, names in service_map.items()}
        self._timeouts = dict(timeouts)
        self._freshness = service_freshness
        self._history_limit = history_limit

    # ------------------------------------------------------------------
    # Live status
    # ------------------------------------------------------------------

    def list_boxes(self) -> list[BoxStatus]:
        """One row per known box: both channels plus every expected service."""
        now = self._clock.now()
        return [
            BoxStatus(
                box_code=box_code,
                box=self._channel(box_code, EventSource.AI_BOX, now),
                nodered=self._channel(box_code, EventSource.NODE_RED, now),
                services=self._services(box_code, now),
            )
            for box_code in self._ordered_box_codes()
        ]

    def channel_status(self, source: EventSource, box_code: str | None = None) -> ChannelStatus:
        """Channel state for one box, or from the freshest heartbeat of any box."""
        now = self._clock.now()
        if box_code is not None:
            return self._channel(box_code, source, now)
        heartbeat = self._store.latest(EventFilter(source=source, type=EventType.HEARTBEAT))
        return self._channel_from(heartbeat, source, now)

    def known_box_codes(self) -> list[str]:
        return sorted(self._store.distinct_box_codes() | set(self._service_map))

    def _ordered_box_codes(self) -> list[str]:
        """Service-map boxes first in map order, then the rest alphabetically."""
        seen = self._store.distinct_box_codes()
        extra = sorted(seen - set(self._service_map))
        return list(self._service_map) + extra

    def _channel(self, box_code: str, source: EventSource, now: datetime) -> ChannelStatus:
        heartbeat = self._store.latest(
            EventFilter(source=source, type=EventType.HEARTBEAT, box_code=box_code)
        )
        return self._channel_from(heartbeat, source, now)

    def _channel_from(self, heartbeat: Event | None, source: EventSource, now: datetime) -> ChannelStatus:
        if heartbeat is None:
            return ChannelStatus(source=source, online=False)
        timeout = self._timeouts.get(source)
        online = timeout is not None and now - heartbeat.timestamp < timeout
        return ChannelStatus(
            source=source,
            online=online,
            last_heartbeat=heartbeat.timestamp,
            ip=heartbeat.ip,
        )

    def _services(self, box_code: str, now: datetime) -> list[ServiceView]:
        latest: dict[str, Event] = {}
        for report in self._store.query(
            EventFilter(type=EventType.SERVICE_STATUS, box_code=box_code)
        ):
            if not report.service_name:
                continue
            current = latest.get(report.service_name)
            if current is None or report.timestamp >= current.timestamp:
                latest[report.service_name] = report

        # dicts keep first-insertion order, i.e. first-seen order of each name
        expected = self._service_map.get(box_code) or list(latest)
        views: list[ServiceView] = []
        for name in expected:
            report = latest.get(name)
            running = (
                report is not None
                and now - report.timestamp < self._freshness
                and report.is_running_report
            )
            views.append(
                ServiceView(
                    service_name=name,
                    service_status=ServiceState.RUNNING if running else ServiceState.STOPPED,
                    last_report=report.timestamp if report else None,
                )
            )
        return views

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def list_status_changes(
        self,
        box_code: str | None = None,
        source: EventSource = EventSource.AI_BOX,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[StatusChangeEntry]:
        """STATUS_CHANGE events newest-first, each with its service summary."""
        changes = self._newest_first(
            self._store.query(
                EventFilter(
                    source=source,
                    type=EventType.STATUS_CHANGE,
                    box_code=box_code,
                    since=since,
                    until=until,
                )
            ),
            limit,
        )

        summaries: dict[str, str] = {}
        for code in {change.box_code for change in changes}:
            box_changes = [change for change in changes if change.box_code == code]
            summaries.update(self._service_summaries(code, box_changes))

        return [
            StatusChangeEntry(
                timestamp=change.timestamp,
                box_code=change.box_code,
                source=change.source,
                online_status=change.online_status,
                ip=change.ip,
                service_summary=summaries.get(change.event_id, "-"),
            )
            for change in changes
        ]

    def list_events(
        self,
        type: EventType,
        box_code: str | None = None,
        source: EventSource | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[Event]:
        """Raw events of one type, newest first."""
        return self._newest_first(
            self._store.query(
                EventFilter(source=source, type=type, box_code=box_code, since=since, until=until)
            ),
            limit,
        )

    def _newest_first(self, events: Iterable[Event], limit: int | None) -> list[Event]:
        indexed = sorted(enumerate(events), key=lambda pair: (pair[1].timestamp, pair[0]), reverse=True)
        cap = self._history_limit if limit is None else min(limit, self._history_limit)
        return [event for _, event in indexed[:cap]]

    def _service_summaries(self, box_code: str | None, changes: list[Event]) -> dict[str, str]:
        """Map change event_id -> summary of the latest report per service at-or-before it."""
        if box_code is None:
            return {}
        reports = sorted(
            enumerate(
                self._store.query(EventFilter(type=EventType.SERVICE_STATUS, box_code=box_code))
            ),
            key=lambda pair: (pair[1].timestamp, pair[0]),
        )

        summaries: dict[str, str] = {}
        latest: dict[str, str] = {}
        pos = 0
        for change in sorted(changes, key=lambda c: c.timestamp):
            while pos < len(reports) and reports[pos][1].timestamp <= change.timestamp:
                report = reports[pos][1]
                if report.service_name:
                    latest[report.service_name] = report.service_status or ""
                pos += 1
            summaries[change.event_id] = self._format_summary(box_code, latest)
        return summaries

    def _format_summary(self, box_code: str, latest: Mapping[str, str]) -> str:
        if not latest:
            return "-"
        expected = [name for name in self._service_map.get(box_code, []) if name in latest]
        others = sorted(name for name in latest if name not in expected)
        return ", ".join(f"{name}: {latest[name]}" for name in expected + others)
