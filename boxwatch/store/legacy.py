"""Import of the legacy JSON status log.

The legacy log is one JSON array of flat records whose ``timestamp`` is a
``DD/MM/YYYY HH:MM:SS`` string written in a fixed zone.  Records with an
unparseable timestamp or an unknown source/type are skipped and counted,
never fatal.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
from typing import Any

from boxwatch.models.events import Event, EventSource, EventType, OnlineStatus
from boxwatch.observability.logging import get_logger
from boxwatch.store.base import EventStore
from boxwatch.timecodec import parse_display

_logger = get_logger("store.legacy")


@dataclass
class ImportResult:
    imported: int = 0
    skipped: int = 0


def decode_legacy_record(record: Mapping[str, Any], tz: tzinfo) -> Event:
    """Convert one legacy record.

    Raises:
        ValueError: bad timestamp, source, type or online status.
    """
    status = record.get("online_status")
    service_status = record.get("service_status")
    return Event(
        timestamp=parse_display(record.get("timestamp", ""), tz),
        source=EventSource(record.get("source", "")),
        type=EventType(record.get("type", "")),
        box_code=record.get("boxCode") or None,
        ip=record.get("ip") or None,
        online_status=OnlineStatus(status) if status else None,
        service_name=record.get("service_name") or None,
        service_status=str(service_status).lower() if service_status else None,
    )


def import_legacy_records(store: EventStore, records: Iterable[Any], tz: tzinfo) -> ImportResult:
    """Append every decodable record to *store* in file order."""
    result = ImportResult()
    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            result.skipped += 1
            _logger.warning("legacy_record_skipped", index=index, error="record is not an object")
            continue
        try:
            event = decode_legacy_record(record, tz)
        except ValueError as exc:
            result.skipped += 1
            _logger.warning("legacy_record_skipped", index=index, error=str(exc))
            continue
        store.append(event)
        result.imported += 1
    _logger.info("legacy_import_finished", imported=result.imported, skipped=result.skipped)
    return result


def import_legacy_file(store: EventStore, path: str | Path, tz: tzinfo) -> ImportResult:
    """Load a legacy ``status_log.json`` file into *store*."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON array of log records")
    return import_legacy_records(store, data, tz)
