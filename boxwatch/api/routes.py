"""REST endpoints.

Route handlers read their collaborators from ``request.app.state``:
``ingest`` (IngestService), ``engine`` (StatusEngine), ``store``
(EventStore) and ``display_tz``.

Handlers that touch the store are plain ``def`` so FastAPI runs them in its
threadpool; the heartbeat handlers stay async and the transition detector
moves their store I/O off the event loop.
"""

from __future__ import annotations

from datetime import datetime, tzinfo

from fastapi import APIRouter, Query, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from boxwatch.api.schemas import (
    BoxRow,
    ChannelStatusResponse,
    FiltersResponse,
    HealthResponse,
    HeartbeatAck,
    HeartbeatRequest,
    LogRow,
    ServiceRow,
    ServiceStatusAck,
    ServiceStatusRequest,
    StatsResponse,
)
from boxwatch.models.events import EventSource, EventType
from boxwatch.status.aggregator import compute_uptime
from boxwatch.timecodec import format_display, parse_range_bound

router = APIRouter()


def _client_ip(request: Request) -> str | None:
    if request.client is None:
        return None
    return request.client.host.replace("::ffff:", "")


def _display(request: Request, value: datetime | None) -> str | None:
    if value is None:
        return None
    return format_display(value, request.app.state.display_tz)


def _range(request: Request, start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    tz: tzinfo = request.app.state.display_tz
    since = parse_range_bound(start, tz) if start else None
    until = parse_range_bound(end, tz, end=True) if end else None
    return since, until


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@router.post("/heartbeat", response_model=HeartbeatAck)
async def post_heartbeat(body: HeartbeatRequest, request: Request) -> HeartbeatAck:
    change = await request.app.state.ingest.heartbeat(body.box_code, EventSource.AI_BOX, _client_ip(request))
    return HeartbeatAck(transition=change is not None)


@router.post("/nodered/heartbeat", response_model=HeartbeatAck)
async def post_nodered_heartbeat(body: HeartbeatRequest, request: Request) -> HeartbeatAck:
    change = await request.app.state.ingest.heartbeat(body.box_code, EventSource.NODE_RED, _client_ip(request))
    return HeartbeatAck(transition=change is not None)


@router.post("/service-status", response_model=ServiceStatusAck)
def post_service_status(body: ServiceStatusRequest, request: Request) -> ServiceStatusAck:
    events = request.app.state.ingest.service_status(
        body.box_code,
        [report.model_dump() for report in body.services],
        source=body.source or EventSource.NODE_RED,
        ip=_client_ip(request),
    )
    return ServiceStatusAck(recorded=len(events))


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@router.get("/boxes", response_model=list[BoxRow])
def get_boxes(request: Request) -> list[BoxRow]:
    rows: list[BoxRow] = []
    for no, status in enumerate(request.app.state.engine.list_boxes(), start=1):
        rows.append(
            BoxRow(
                no=no,
                box_code=status.box_code,
                online_status=status.box.online_status,
                last_heartbeat=_display(request, status.box.last_heartbeat),
                ip=status.box.ip,
                nodered_status=status.nodered.online_status,
                nodered_last_heartbeat=_display(request, status.nodered.last_heartbeat),
                services=[
                    ServiceRow(
                        service_name=service.service_name,
                        service_status=service.service_status,
                        last_report=_display(request, service.last_report),
                    )
                    for service in status.services
                ],
            )
        )
    return rows


@router.get("/nodered/status", response_model=ChannelStatusResponse)
def get_nodered_status(
    request: Request,
    box_code: str | None = Query(default=None, alias="boxCode"),
) -> ChannelStatusResponse:
    status = request.app.state.engine.channel_status(EventSource.NODE_RED, box_code or None)
    return ChannelStatusResponse(online=status.online, last_heartbeat=_display(request, status.last_heartbeat))


@router.get("/logs", response_model=list[LogRow], response_model_exclude_none=True)
def get_logs(
    request: Request,
    box_code: str | None = Query(default=None, alias="boxCode"),
    start: str | None = Query(default=None, alias="from"),
    end: str | None = Query(default=None, alias="to"),
    type: EventType = Query(default=EventType.STATUS_CHANGE),
    source: EventSource | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1),
) -> list[LogRow]:
    since, until = _range(request, start, end)
    engine = request.app.state.engine
    box_code = box_code or None

    if type == EventType.STATUS_CHANGE:
        entries = engine.list_status_changes(
            box_code=box_code,
            source=source or EventSource.AI_BOX,
            since=since,
            until=until,
            limit=limit,
        )
        return [
            LogRow(
                timestamp=_display(request, entry.timestamp),
                box_code=entry.box_code,
                source=entry.source,
                type=EventType.STATUS_CHANGE,
                online_status=entry.online_status,
                ip=entry.ip,
                service_status=entry.service_summary,
            )
            for entry in entries
        ]

    events = engine.list_events(type, box_code=box_code, source=source, since=since, until=until, limit=limit)
    return [
        LogRow(
            timestamp=_display(request, event.timestamp),
            box_code=event.box_code,
            source=event.source,
            type=event.type,
            online_status=event.online_status,
            ip=event.ip,
            service_name=event.service_name,
            service_status=event.service_status,
        )
        for event in events
    ]


@router.get("/stats", response_model=StatsResponse)
def get_stats(
    request: Request,
    box_code: str | None = Query(default=None, alias="boxCode"),
    start: str | None = Query(default=None, alias="from"),
    end: str | None = Query(default=None, alias="to"),
    source: EventSource = Query(default=EventSource.AI_BOX),
) -> StatsResponse:
    since, until = _range(request, start, end)
    stats = compute_uptime(request.app.state.store, box_code or None, source, since, until)
    return StatsResponse(
        total_heartbeats=stats.total_heartbeats,
        total_online_ms=stats.total_online_ms,
        total_offline_ms=stats.total_offline_ms,
    )


@router.get("/filters", response_model=FiltersResponse)
def get_filters(request: Request) -> FiltersResponse:
    return FiltersResponse(box_codes=request.app.state.engine.known_box_codes())


@router.get("/health", response_model=HealthResponse)
async def get_health() -> HealthResponse:
    from boxwatch import __version__

    return HealthResponse(version=__version__)


@router.get("/metrics", include_in_schema=False)
async def get_metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
