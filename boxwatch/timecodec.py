"""Timestamp codec and clock.

The canonical representation of an instant is a timezone-aware UTC
``datetime`` truncated to whole seconds.  Display strings
(``DD/MM/YYYY HH:MM:SS``) are produced in one fixed zone and are only ever
parsed back with that same zone; naive local-time parsing is never used, so
comparisons never depend on the host's locale or timezone.
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime, time, tzinfo
from typing import Protocol
from zoneinfo import ZoneInfo

DISPLAY_FORMAT = "%d/%m/%Y %H:%M:%S"

_RE_DISPLAY = re.compile(r"^\d{2}/\d{2}/\d{4} \d{2}:\d{2}:\d{2}$")
_RE_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class TimestampParseError(ValueError):
    """Raised when a timestamp string does not match the expected layout."""


class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock returning whole-second UTC instants."""

    def now(self) -> datetime:
        return utc_now()


def utc_now() -> datetime:
    return datetime.now(tz=UTC).replace(microsecond=0)


def to_utc(dt: datetime) -> datetime:
    """Normalise *dt* to canonical form.  Naive datetimes are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).replace(microsecond=0)


def resolve_tz(name: str) -> tzinfo:
    """Resolve a zone name such as ``UTC`` or ``Asia/Ho_Chi_Minh``."""
    if name.upper() in ("UTC", "Z"):
        return UTC
    try:
        return ZoneInfo(name)
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc


def format_display(dt: datetime, tz: tzinfo = UTC) -> str:
    """Format *dt* as ``DD/MM/YYYY HH:MM:SS`` in the display zone *tz*."""
    return to_utc(dt).astimezone(tz).strftime(DISPLAY_FORMAT)


def parse_display(text: str, tz: tzinfo = UTC) -> datetime:
    """Parse a display string written in zone *tz* back to a UTC instant.

    Raises:
        TimestampParseError: if *text* is not a valid ``DD/MM/YYYY HH:MM:SS``.
    """
    if not isinstance(text, str) or not _RE_DISPLAY.match(text.strip()):
        raise TimestampParseError(f"Invalid display timestamp: {text!r}")
    try:
        naive = datetime.strptime(text.strip(), DISPLAY_FORMAT)
    except ValueError as exc:
        raise TimestampParseError(f"Invalid display timestamp: {text!r}") from exc
    return naive.replace(tzinfo=tz).astimezone(UTC)


def format_iso(dt: datetime) -> str:
    """Storage form: ISO-8601 UTC with second precision."""
    return to_utc(dt).isoformat(timespec="seconds")


def parse_iso(text: str) -> datetime:
    """Parse stored ISO-8601 text.  A missing offset is treated as UTC.

    Raises:
        TimestampParseError: if *text* is not ISO-8601.
    """
    if not isinstance(text, str) or not text:
        raise TimestampParseError(f"Invalid ISO timestamp: {text!r}")
    try:
        return to_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError as exc:
        raise TimestampParseError(f"Invalid ISO timestamp: {text!r}") from exc


def parse_range_bound(text: str, tz: tzinfo = UTC, end: bool = False) -> datetime:
    """Parse a query range bound.

    A bare ``YYYY-MM-DD`` date covers the whole day in the display zone:
    00:00:00 for a start bound, 23:59:59 for an end bound.  Anything else
    must be an ISO-8601 datetime; naive values are read in the display zone.
    """
    text = text.strip()
    if _RE_DATE.match(text):
        try:
            day = date.fromisoformat(text)
        except ValueError as exc:
            raise TimestampParseError(f"Invalid date: {text!r}") from exc
        bound = time(23, 59, 59) if end else time(0, 0, 0)
        return datetime.combine(day, bound, tzinfo=tz).astimezone(UTC)
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as exc:
        raise TimestampParseError(f"Invalid range bound: {text!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return to_utc(parsed)
