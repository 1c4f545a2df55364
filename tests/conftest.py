"""Shared fixtures for BoxWatch tests.

Provides a controllable clock, both store backends, and the status
components wired together so tests can drive heartbeats, sweeps and queries
without real time passing.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from boxwatch.models.events import Event, EventSource, EventType, OnlineStatus
from boxwatch.status.engine import StatusEngine
from boxwatch.status.ingest import IngestService
from boxwatch.status.sweeper import OfflineSweeper
from boxwatch.status.transitions import TransitionDetector
from boxwatch.store.base import EventStore
from boxwatch.store.memory import InMemoryEventStore
from boxwatch.store.sqlite import SQLiteEventStore

# ---------------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------------

T0 = datetime(2024, 5, 6, 10, 0, 0, tzinfo=UTC)

BOX_TIMEOUT = timedelta(minutes=4)
NODERED_TIMEOUT = timedelta(minutes=2)
FRESHNESS = timedelta(minutes=3)

TIMEOUTS = {
    EventSource.AI_BOX: BOX_TIMEOUT,
    EventSource.NODE_RED: NODERED_TIMEOUT,
}

SERVICE_MAP = {
    "HMXTKE6BEJHBJ0317": ["mediaserver.service", "aiserver.service"],
}


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self._now = start

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value

    def advance(self, **kwargs: float) -> datetime:
        self._now += timedelta(**kwargs)
        return self._now


# ---------------------------------------------------------------------------
# Event factory helpers
# ---------------------------------------------------------------------------


def make_event(
    type: EventType = EventType.HEARTBEAT,
    box_code: str | None = "B1",
    source: EventSource = EventSource.AI_BOX,
    timestamp: datetime = T0,
    online_status: OnlineStatus | None = None,
    ip: str | None = "10.0.0.5",
    service_name: str | None = None,
    service_status: str | None = None,
) -> Event:
    """Create an Event with sensible defaults for testing."""
    if online_status is None and type in (EventType.HEARTBEAT, EventType.STATUS_CHANGE):
        online_status = OnlineStatus.ONLINE
    return Event(
        timestamp=timestamp,
        source=source,
        type=type,
        box_code=box_code,
        ip=ip,
        online_status=online_status,
        service_name=service_name,
        service_status=service_status,
    )


def make_change(status: OnlineStatus, at: datetime, box_code: str = "B1", **kwargs) -> Event:
    return make_event(type=EventType.STATUS_CHANGE, box_code=box_code, timestamp=at, online_status=status, **kwargs)


def make_report(service: str, status: str, at: datetime, box_code: str = "B1", **kwargs) -> Event:
    return make_event(
        type=EventType.SERVICE_STATUS,
        box_code=box_code,
        timestamp=at,
        online_status=None,
        service_name=service,
        service_status=status,
        source=kwargs.pop("source", EventSource.NODE_RED),
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest) -> EventStore:
    """Each test using this fixture runs against both backends."""
    backend: EventStore = InMemoryEventStore() if request.param == "memory" else SQLiteEventStore(":memory:")
    yield backend
    backend.close()


@pytest.fixture
def memory_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def detector(memory_store: InMemoryEventStore, clock: FakeClock) -> TransitionDetector:
    return TransitionDetector(memory_store, clock)


@pytest.fixture
def sweeper(memory_store: InMemoryEventStore, detector: TransitionDetector, clock: FakeClock) -> OfflineSweeper:
    return OfflineSweeper(memory_store, detector, clock, TIMEOUTS, interval_seconds=5.0)


@pytest.fixture
def ingest(memory_store: InMemoryEventStore, detector: TransitionDetector, clock: FakeClock) -> IngestService:
    return IngestService(memory_store, detector, clock)


@pytest.fixture
def engine(memory_store: InMemoryEventStore, clock: FakeClock) -> StatusEngine:
    return StatusEngine(
        memory_store,
        clock,
        service_map=SERVICE_MAP,
        timeouts=TIMEOUTS,
        service_freshness=FRESHNESS,
    )
