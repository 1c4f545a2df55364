"""Shared fixtures for BoxWatch integration tests.

Wires a real store, detector, engine, ingestion service and sweeper behind
the FastAPI app, all driven by a FakeClock, so tests can exercise complete
heartbeat -> sweep -> query flows over HTTP without real time passing.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass

import httpx
import pytest

from boxwatch.api.app import create_app
from boxwatch.status.engine import StatusEngine
from boxwatch.status.ingest import IngestService
from boxwatch.status.sweeper import OfflineSweeper
from boxwatch.status.transitions import TransitionDetector
from boxwatch.store.base import EventStore
from boxwatch.store.sqlite import SQLiteEventStore
from tests.conftest import FRESHNESS, SERVICE_MAP, TIMEOUTS, FakeClock


@dataclass
class Monitor:
    clock: FakeClock
    store: EventStore
    sweeper: OfflineSweeper
    client: httpx.AsyncClient


@pytest.fixture
async def monitor(tmp_path) -> AsyncIterator[Monitor]:
    clock = FakeClock()
    store = SQLiteEventStore(tmp_path / "events.db")
    detector = TransitionDetector(store, clock)
    engine = StatusEngine(store, clock, SERVICE_MAP, TIMEOUTS, FRESHNESS)
    ingest = IngestService(store, detector, clock)
    sweeper = OfflineSweeper(store, detector, clock, TIMEOUTS)
    app = create_app(store=store, engine=engine, ingest=ingest)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://boxwatch.test") as client:
        yield Monitor(clock=clock, store=store, sweeper=sweeper, client=client)
    store.close()
