"""Tests for importing the legacy JSON status log."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta, timezone

import pytest
from click.testing import CliRunner

from boxwatch.cli import cli
from boxwatch.models.events import EventSource, EventType, OnlineStatus
from boxwatch.store.legacy import decode_legacy_record, import_legacy_file, import_legacy_records
from boxwatch.store.memory import InMemoryEventStore
from boxwatch.store.sqlite import SQLiteEventStore

_ICT = timezone(timedelta(hours=7))

_RECORDS = [
    {
        "timestamp": "06/05/2024 17:00:00",
        "source": "AI_BOX",
        "type": "status_change",
        "boxCode": "HMXTKE6BEJHBJ0317",
        "online_status": "online",
        "ip": "192.168.1.20",
    },
    {
        "timestamp": "06/05/2024 17:00:05",
        "source": "NODE_RED",
        "type": "service_status",
        "boxCode": "HMXTKE6BEJHBJ0317",
        "service_name": "mediaserver.service",
        "service_status": "Running",
    },
    {"timestamp": "31/02/2024 10:00:00", "source": "AI_BOX", "type": "heartbeat", "boxCode": "B1"},
    {"timestamp": "06/05/2024 17:01:00", "source": "SATELLITE", "type": "heartbeat", "boxCode": "B1"},
    "not a record",
]


class TestDecode:
    def test_status_change_record(self) -> None:
        event = decode_legacy_record(_RECORDS[0], _ICT)
        assert event.timestamp == datetime(2024, 5, 6, 10, 0, 0, tzinfo=UTC)
        assert event.source == EventSource.AI_BOX
        assert event.type == EventType.STATUS_CHANGE
        assert event.online_status == OnlineStatus.ONLINE
        assert event.ip == "192.168.1.20"

    def test_service_status_is_lowercased(self) -> None:
        event = decode_legacy_record(_RECORDS[1], UTC)
        assert event.service_name == "mediaserver.service"
        assert event.service_status == "running"
        assert event.online_status is None

    @pytest.mark.parametrize("record", _RECORDS[2:4])
    def test_bad_record_raises_value_error(self, record) -> None:
        with pytest.raises(ValueError):
            decode_legacy_record(record, UTC)


class TestImport:
    def test_bad_records_are_skipped_and_counted(self) -> None:
        store = InMemoryEventStore()
        result = import_legacy_records(store, _RECORDS, _ICT)

        assert (result.imported, result.skipped) == (2, 3)
        assert [e.type for e in store.query()] == [EventType.STATUS_CHANGE, EventType.SERVICE_STATUS]

    def test_file_must_hold_an_array(self, tmp_path) -> None:
        path = tmp_path / "status_log.json"
        path.write_text(json.dumps({"timestamp": "x"}), encoding="utf-8")
        with pytest.raises(ValueError):
            import_legacy_file(InMemoryEventStore(), path, UTC)


class TestImportCommand:
    @pytest.fixture(autouse=True)
    def _quiet_logging(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("boxwatch.cli.main.setup_logging", lambda level: None)

    def test_imports_into_sqlite(self, tmp_path) -> None:
        log_path = tmp_path / "status_log.json"
        log_path.write_text(json.dumps(_RECORDS), encoding="utf-8")
        db_path = tmp_path / "events.db"

        result = CliRunner().invoke(
            cli, ["import-legacy", str(log_path), "--tz", "Asia/Ho_Chi_Minh", "--db", str(db_path)]
        )

        assert result.exit_code == 0, result.output
        assert "imported 2 events, skipped 3" in result.output
        store = SQLiteEventStore(db_path)
        try:
            first = next(iter(store.query()))
            assert first.timestamp == datetime(2024, 5, 6, 10, 0, 0, tzinfo=UTC)
        finally:
            store.close()

    def test_unknown_zone_is_usage_error(self, tmp_path) -> None:
        log_path = tmp_path / "status_log.json"
        log_path.write_text("[]", encoding="utf-8")

        result = CliRunner().invoke(cli, ["import-legacy", str(log_path), "--tz", "Mars/Base", "--db", ":memory:"])

        assert result.exit_code == 2

    def test_warns_when_server_backend_is_not_sqlite(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        log_path = tmp_path / "status_log.json"
        log_path.write_text("[]", encoding="utf-8")
        monkeypatch.setenv("BOXWATCH_STORE_BACKEND", "memory")

        result = CliRunner().invoke(cli, ["import-legacy", str(log_path), "--db", str(tmp_path / "events.db")])

        assert result.exit_code == 0, result.output
        assert "BOXWATCH_STORE_BACKEND=sqlite" in result.output

    def test_no_warning_with_sqlite_backend(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        log_path = tmp_path / "status_log.json"
        log_path.write_text("[]", encoding="utf-8")
        monkeypatch.setenv("BOXWATCH_STORE_BACKEND", "sqlite")

        result = CliRunner().invoke(cli, ["import-legacy", str(log_path), "--db", str(tmp_path / "events.db")])

        assert result.exit_code == 0, result.output
        assert "warning" not in result.output
