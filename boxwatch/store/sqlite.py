"""SQLite-backed event log.

One append-only ``events`` table.  ``id`` (autoincrement) records insertion
order; timestamps are stored as ISO-8601 UTC text so lexical order matches
chronological order for every row this module writes.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from boxwatch.errors import StoreUnavailableError
from boxwatch.models.events import Event, EventSource, EventType, OnlineStatus
from boxwatch.observability.logging import get_logger
from boxwatch.store.base import EventFilter, EventStore
from boxwatch.timecodec import format_iso, parse_iso

_logger = get_logger("store.sqlite")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id       TEXT NOT NULL,
    ts             TEXT NOT NULL,
    box_code       TEXT,
    source         TEXT NOT NULL,
    type           TEXT NOT NULL,
    ip             TEXT,
    online_status  TEXT,
    service_name   TEXT,
    service_status TEXT
);
CREATE INDEX IF NOT EXISTS idx_events_box_source_type ON events (box_code, source, type);
CREATE INDEX IF NOT EXISTS idx_events_ts ON events (ts);
"""

_COLUMNS = "id, event_id, ts, box_code, source, type, ip, online_status, service_name, service_status"

# Rows fetched per round-trip while scanning for the newest decodable row
_LATEST_BATCH = 32


class SQLiteEventStore(EventStore):
    """Event store persisted to a single SQLite file (or ``:memory:``)."""

    def __init__(self, path: str | Path = ":memory:") -> None:
        self._path = str(path)
        self._lock = threading.Lock()
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        except (sqlite3.Error, OSError) as exc:
            raise StoreUnavailableError("open", exc) from exc
        _logger.info("sqlite_store_opened", path=self._path)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append(self, event: Event) -> None:
        row = (
            event.event_id,
            format_iso(event.timestamp),
            event.box_code,
            event.source.value,
            event.type.value,
            event.ip,
            event.online_status.value if event.online_status else None,
            event.service_name,
            event.service_status,
        )
        with self._lock:
            try:
                self._conn.execute(
                    "INSERT INTO events (event_id, ts, box_code, source, type, ip,"
                    " online_status, service_name, service_status)"
                    " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    row,
                )
                self._conn.commit()
            except sqlite3.Error as exc:
                raise StoreUnavailableError("append", exc) from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query(self, flt: EventFilter | None = None) -> Iterator[Event]:
        where, params = _where(flt or EventFilter())
        rows = self._fetch(f"SELECT {_COLUMNS} FROM events{where} ORDER BY id", params)
        return (event for event in map(_decode, rows) if event is not None)

    def latest(self, flt: EventFilter) -> Event | None:
        where, params = _where(flt)
        sql = f"SELECT {_COLUMNS} FROM events{where} ORDER BY ts DESC, id DESC"
        with self._lock:
            try:
                cursor = self._conn.execute(sql, params)
                while batch := cursor.fetchmany(_LATEST_BATCH):
                    for row in batch:
                        event = _decode(row)
                        if event is not None:
                            return event
            except sqlite3.Error as exc:
                raise StoreUnavailableError("latest", exc) from exc
        return None

    def distinct_box_codes(self, flt: EventFilter | None = None) -> set[str]:
        where, params = _where(flt or EventFilter())
        joiner = " AND " if where else " WHERE "
        rows = self._fetch(
            f"SELECT DISTINCT box_code FROM events{where}{joiner}box_code IS NOT NULL AND box_code != ''",
            params,
        )
        return {row["box_code"] for row in rows}

    def close(self) -> None:
        with self._lock:
            try:
                self._conn.close()
            except sqlite3.Error as exc:
                _logger.warning("sqlite_store_close_failed", error=str(exc))

    def _fetch(self, sql: str, params: list[Any]) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StoreUnavailableError("query", exc) from exc


def _where(flt: EventFilter) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    if flt.source is not None:
        clauses.append("source = ?")
        params.append(flt.source.value)
    if flt.type is not None:
        clauses.append("type = ?")
        params.append(flt.type.value)
    if flt.box_code is not None:
        clauses.append("box_code = ?")
        params.append(flt.box_code)
    if flt.since is not None:
        clauses.append("ts >= ?")
        params.append(format_iso(flt.since))
    if flt.until is not None:
        clauses.append("ts <= ?")
        params.append(format_iso(flt.until))
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


def _decode(row: sqlite3.Row) -> Event | None:
    """Rebuild an Event from a row; rows with a bad timestamp or enum are skipped."""
    try:
        return Event(
            timestamp=parse_iso(row["ts"]),
            source=EventSource(row["source"]),
            type=EventType(row["type"]),
            box_code=row["box_code"],
            ip=row["ip"],
            online_status=OnlineStatus(row["online_status"]) if row["online_status"] else None,
            service_name=row["service_name"],
            service_status=row["service_status"],
            event_id=row["event_id"],
        )
    except ValueError as exc:
        _logger.warning("sqlite_row_skipped", row_id=row["id"], error=str(exc))
        return None
