"""Ingestion of heartbeats and service-status reports."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from boxwatch.errors import InvalidPayloadError
from boxwatch.models.events import Event, EventSource, EventType
from boxwatch.observability.logging import get_logger
from boxwatch.observability.metrics import heartbeats_total, service_reports_total
from boxwatch.status.transitions import TransitionDetector
from boxwatch.store.base import EventStore
from boxwatch.timecodec import Clock

_logger = get_logger("status.ingest")


class IngestService:
    """Validates inbound reports and appends them to the event log."""

    def __init__(self, store: EventStore, detector: TransitionDetector, clock: Clock) -> None:
        self._store = store
        self._detector = detector
        self._clock = clock

    async def heartbeat(
        self,
        box_code: str,
        source: EventSource = EventSource.AI_BOX,
        ip: str | None = None,
    ) -> Event | None:
        """Record a heartbeat; returns the ``online`` transition if one was appended."""
        box_code = _require_box_code(box_code)
        change = await self._detector.record_heartbeat(box_code, source, ip)
        heartbeats_total.labels(source=source.value).inc()
        _logger.debug("heartbeat_received", box_code=box_code, source=source.value, ip=ip)
        return change

    def service_status(
        self,
        box_code: str,
        reports: Sequence[Mapping[str, object]],
        source: EventSource = EventSource.NODE_RED,
        ip: str | None = None,
    ) -> list[Event]:
        """Append one SERVICE_STATUS event per report, all at the same instant.

        Every report is validated before the first append, so a bad entry
        rejects the whole payload without mutating the log.

        Raises:
            InvalidPayloadError: empty box code, or a report without a
                ``service_name`` or ``status``.
        """
        box_code = _require_box_code(box_code)
        parsed: list[tuple[str, str]] = []
        for index, report in enumerate(reports):
            name = str(report.get("service_name") or "").strip()
            status = str(report.get("status") or "").strip().lower()
            if not name or not status:
                raise InvalidPayloadError(f"services[{index}] requires service_name and status")
            parsed.append((name, status))

        now = self._clock.now()
        events = [
            Event(
                timestamp=now,
                source=source,
                type=EventType.SERVICE_STATUS,
                box_code=box_code,
                ip=ip,
                service_name=name,
                service_status=status,
            )
            for name, status in parsed
        ]
        for event in events:
            self._store.append(event)

        service_reports_total.labels(source=source.value).inc(len(events))
        _logger.debug("service_status_received", box_code=box_code, source=source.value, count=len(events))
        return events


def _require_box_code(box_code: str | None) -> str:
    if box_code is None or not str(box_code).strip():
        raise InvalidPayloadError("boxCode is required")
    return str(box_code).strip()
