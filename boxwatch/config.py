"""Configuration loading from environment variables."""

from __future__ import annotations

import json
import os
import re
from datetime import timedelta
from pathlib import Path

from boxwatch.models.config import (
    APIConfig,
    BoxWatchConfig,
    LogConfig,
    MonitorConfig,
    StoreConfig,
)
from boxwatch.timecodec import resolve_tz

_DURATION_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"BOXWATCH_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def parse_duration(value: str) -> timedelta:
    """Parse ``30s``, ``4m``, ``1h`` or ``2d`` into a timedelta."""
    match = re.match(r"^([0-9]+)(s|m|h|d)$", value.strip())
    if not match or int(match.group(1)) == 0:
        raise ValueError(f"Invalid duration format: {value}")
    return timedelta(**{_DURATION_UNITS[match.group(2)]: int(match.group(1))})


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_backend(value: str) -> str:
    valid = {"memory", "sqlite"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid store backend: {value}. Must be one of {valid}")
    return value.lower()


def _validate_tz(value: str) -> str:
    resolve_tz(value)
    return value


def parse_service_map(raw: str) -> dict[str, list[str]]:
    """Parse a JSON object mapping box code to a list of expected service names.

    Duplicate names within a box are dropped, keeping first occurrence order.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Service map is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("Service map must be a JSON object of box code -> [service names]")

    service_map: dict[str, list[str]] = {}
    for box_code, names in data.items():
        if not isinstance(names, list) or not all(isinstance(n, str) and n for n in names):
            raise ValueError(f"Service map entry for {box_code!r} must be a list of service names")
        service_map[str(box_code)] = list(dict.fromkeys(names))
    return service_map


def _load_service_map() -> dict[str, list[str]]:
    path = _env("SERVICE_MAP_FILE")
    if path:
        return parse_service_map(Path(path).read_text(encoding="utf-8"))
    raw = _env("SERVICE_MAP")
    if raw:
        return parse_service_map(raw)
    return {}


def load_config() -> BoxWatchConfig:
    """Load configuration from BOXWATCH_* environment variables."""
    box_timeout = parse_duration(_env("BOX_HEARTBEAT_TIMEOUT", "4m"))
    nodered_timeout = parse_duration(_env("NODERED_HEARTBEAT_TIMEOUT", "2m"))
    freshness = parse_duration(_env("SERVICE_FRESHNESS", "3m"))

    return BoxWatchConfig(
        monitor=MonitorConfig(
            box_heartbeat_timeout=box_timeout,
            nodered_heartbeat_timeout=nodered_timeout,
            service_freshness=freshness,
            sweep_interval_seconds=_env_float("SWEEP_INTERVAL", 5.0, min_val=0.5),
            history_limit=_env_int("HISTORY_LIMIT", 1000, min_val=1, max_val=10000),
            display_tz=_validate_tz(_env("DISPLAY_TZ", "UTC")),
            service_map=_load_service_map(),
        ),
        store=StoreConfig(
            backend=_validate_backend(_env("STORE_BACKEND", "memory")),
            path=_env("STORE_PATH", "boxwatch.db"),
        ),
        api=APIConfig(
            host=_env("API_HOST", "0.0.0.0"),
            port=_env_int("API_PORT", 3000, min_val=1, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
