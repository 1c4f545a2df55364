"""Pydantic request/response models for the REST API.

Field aliases keep the wire names used by the reporting devices and the
dashboard (``boxCode``, ``totalOnlineMs``, ...).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from boxwatch.models.events import EventSource, EventType, OnlineStatus, ServiceState


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ErrorResponse(BaseModel):
    """Uniform error envelope."""

    error: str
    detail: str = ""


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


class HeartbeatRequest(_WireModel):
    box_code: str = Field(alias="boxCode", min_length=1, max_length=128)


class ServiceReport(_WireModel):
    service_name: str = Field(min_length=1, max_length=256)
    status: str = Field(min_length=1, max_length=64)


class ServiceStatusRequest(_WireModel):
    box_code: str = Field(alias="boxCode", min_length=1, max_length=128)
    services: list[ServiceReport]
    source: EventSource | None = None


class HeartbeatAck(BaseModel):
    ok: bool = True
    transition: bool = False


class ServiceStatusAck(BaseModel):
    ok: bool = True
    recorded: int = 0


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class ServiceRow(BaseModel):
    service_name: str
    service_status: ServiceState
    last_report: str | None = None


class BoxRow(_WireModel):
    no: int
    box_code: str = Field(alias="boxCode")
    online_status: OnlineStatus
    last_heartbeat: str | None = None
    ip: str | None = None
    nodered_status: OnlineStatus
    nodered_last_heartbeat: str | None = None
    services: list[ServiceRow] = Field(default_factory=list)


class ChannelStatusResponse(BaseModel):
    online: bool
    last_heartbeat: str | None = None


class LogRow(_WireModel):
    """One history row.  For status changes ``service_status`` holds the service summary."""

    timestamp: str
    box_code: str | None = Field(default=None, alias="boxCode")
    source: EventSource
    type: EventType
    online_status: OnlineStatus | None = None
    ip: str | None = None
    service_name: str | None = None
    service_status: str | None = None


class StatsResponse(_WireModel):
    total_heartbeats: int = Field(alias="totalHeartbeats")
    total_online_ms: int = Field(alias="totalOnlineMs")
    total_offline_ms: int = Field(alias="totalOfflineMs")


class FiltersResponse(_WireModel):
    box_codes: list[str] = Field(alias="boxCodes")


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = ""
