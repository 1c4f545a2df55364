"""Tests for the timestamp codec: display round-trip, ISO storage form, range bounds."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest
from hypothesis import given
from hypothesis import strategies as st

from boxwatch.timecodec import (
    SystemClock,
    TimestampParseError,
    format_display,
    format_iso,
    parse_display,
    parse_iso,
    parse_range_bound,
    resolve_tz,
    to_utc,
)

_ICT = timezone(timedelta(hours=7))

_whole_second_instants = st.datetimes(
    min_value=datetime(1971, 1, 1),
    max_value=datetime(2999, 12, 31),
    timezones=st.just(UTC),
).map(lambda dt: dt.replace(microsecond=0))

# ---------------------------------------------------------------------------
# Display format
# ---------------------------------------------------------------------------


class TestDisplayFormat:
    def test_formats_day_first_with_zero_padding(self) -> None:
        dt = datetime(2024, 3, 5, 7, 8, 9, tzinfo=UTC)
        assert format_display(dt) == "05/03/2024 07:08:09"

    def test_formats_in_display_zone(self) -> None:
        dt = datetime(2024, 3, 5, 20, 0, 0, tzinfo=UTC)
        assert format_display(dt, _ICT) == "06/03/2024 03:00:00"

    def test_parse_interprets_text_in_display_zone(self) -> None:
        parsed = parse_display("06/03/2024 03:00:00", _ICT)
        assert parsed == datetime(2024, 3, 5, 20, 0, 0, tzinfo=UTC)
        assert parsed.tzinfo is UTC

    @given(_whole_second_instants)
    def test_round_trip_utc(self, dt: datetime) -> None:
        assert parse_display(format_display(dt, UTC), UTC) == dt

    @given(_whole_second_instants)
    def test_round_trip_fixed_offset(self, dt: datetime) -> None:
        assert parse_display(format_display(dt, _ICT), _ICT) == dt

    def test_sub_second_precision_is_dropped(self) -> None:
        dt = datetime(2024, 1, 1, 0, 0, 0, 750000, tzinfo=UTC)
        assert parse_display(format_display(dt)) == dt.replace(microsecond=0)

    @pytest.mark.parametrize(
        "text",
        ["", "2024-01-01 10:00:00", "32/01/2024 10:00:00", "01/13/2024 10:00:00", "1/1/2024 1:00:00", "garbage"],
    )
    def test_malformed_display_raises(self, text: str) -> None:
        with pytest.raises(TimestampParseError):
            parse_display(text)

    def test_parse_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_display("not a time")


# ---------------------------------------------------------------------------
# Storage form and normalisation
# ---------------------------------------------------------------------------


class TestIsoAndNormalisation:
    def test_iso_round_trip(self) -> None:
        dt = datetime(2024, 5, 6, 10, 0, 0, tzinfo=UTC)
        assert format_iso(dt) == "2024-05-06T10:00:00+00:00"
        assert parse_iso(format_iso(dt)) == dt

    def test_iso_accepts_z_suffix_and_offsets(self) -> None:
        assert parse_iso("2024-05-06T10:00:00Z") == datetime(2024, 5, 6, 10, tzinfo=UTC)
        assert parse_iso("2024-05-06T17:00:00+07:00") == datetime(2024, 5, 6, 10, tzinfo=UTC)

    def test_naive_iso_is_utc(self) -> None:
        assert parse_iso("2024-05-06T10:00:00") == datetime(2024, 5, 6, 10, tzinfo=UTC)

    @pytest.mark.parametrize("text", ["", "06/05/2024 10:00:00", "yesterday"])
    def test_bad_iso_raises(self, text: str) -> None:
        with pytest.raises(TimestampParseError):
            parse_iso(text)

    def test_to_utc_converts_and_truncates(self) -> None:
        dt = datetime(2024, 5, 6, 17, 0, 0, 123456, tzinfo=_ICT)
        assert to_utc(dt) == datetime(2024, 5, 6, 10, 0, 0, tzinfo=UTC)

    def test_system_clock_is_aware_whole_seconds(self) -> None:
        now = SystemClock().now()
        assert now.tzinfo is UTC
        assert now.microsecond == 0


# ---------------------------------------------------------------------------
# Query range bounds
# ---------------------------------------------------------------------------


class TestRangeBounds:
    def test_date_start_bound_is_midnight(self) -> None:
        assert parse_range_bound("2024-05-06") == datetime(2024, 5, 6, 0, 0, 0, tzinfo=UTC)

    def test_date_end_bound_is_last_second(self) -> None:
        assert parse_range_bound("2024-05-06", end=True) == datetime(2024, 5, 6, 23, 59, 59, tzinfo=UTC)

    def test_date_bound_uses_display_zone(self) -> None:
        assert parse_range_bound("2024-05-06", _ICT) == datetime(2024, 5, 5, 17, 0, 0, tzinfo=UTC)

    def test_iso_datetime_bound(self) -> None:
        assert parse_range_bound("2024-05-06T10:30:00Z") == datetime(2024, 5, 6, 10, 30, tzinfo=UTC)

    @pytest.mark.parametrize("text", ["2024-13-01", "06/05/2024", "soon"])
    def test_bad_bound_raises(self, text: str) -> None:
        with pytest.raises(TimestampParseError):
            parse_range_bound(text)


class TestResolveTz:
    def test_utc_names(self) -> None:
        assert resolve_tz("UTC") is UTC
        assert resolve_tz("utc") is UTC

    def test_unknown_zone_raises(self) -> None:
        with pytest.raises(ValueError):
            resolve_tz("Mars/Olympus_Mons")
