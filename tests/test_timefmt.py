"""Tests for time formatting helpers."""

from datetime import date, datetime, timedelta, timezone

import pytest

from framelog.core.timefmt import (
    format_date,
    format_datetime,
    format_duration,
    format_instant,
    format_time,
    get_timezone,
    localize,
    parse_interval,
    start_of_day,
    to_utc,
)

NEW_YORK = "America/New_York"


class TestInstantFormatting:
    """Test timezone-aware date and time formatting."""

    def test_localize_converts_to_display_timezone(self) -> None:
        instant = datetime(2019, 5, 4, 16, 0, tzinfo=timezone.utc)

        local = localize(instant, NEW_YORK)

        assert (local.year, local.month, local.day, local.hour) == (2019, 5, 4, 12)

    def test_format_date(self) -> None:
        instant = datetime(2019, 5, 4, 16, 0, tzinfo=timezone.utc)
        assert format_date(instant, NEW_YORK) == "May 4, 2019"

    def test_format_date_crosses_day_boundary(self) -> None:
        """Test a UTC instant after midnight can still be the previous local day."""
        instant = datetime(2019, 5, 5, 2, 0, tzinfo=timezone.utc)
        assert format_date(instant, NEW_YORK) == "May 4, 2019"
        assert format_date(instant, "UTC") == "May 5, 2019"

    def test_format_time(self) -> None:
        assert format_time(datetime(2019, 5, 4, 16, 0, tzinfo=timezone.utc), NEW_YORK) == "12:00 pm"
        assert format_time(datetime(2019, 5, 5, 17, 30, tzinfo=timezone.utc), NEW_YORK) == "1:30 pm"
        assert format_time(datetime(2019, 5, 5, 4, 5, tzinfo=timezone.utc), NEW_YORK) == "12:05 am"

    def test_format_datetime(self) -> None:
        instant = datetime(2019, 5, 3, 0, 0, tzinfo=timezone.utc)
        assert format_datetime(instant, NEW_YORK) == "May 2, 2019 8:00 pm"

    def test_custom_patterns(self) -> None:
        instant = datetime(2019, 5, 4, 16, 7, tzinfo=timezone.utc)

        assert format_date(instant, "UTC", "{dt:%Y-%m-%d}") == "2019-05-04"
        assert format_time(instant, "UTC", "{hour:02d}:{minute:02d}") == "16:07"
        assert format_instant(instant, "{weekday_abbr} {AMPM}", "UTC") == "Sat PM"

    def test_unknown_field_raises_error(self) -> None:
        instant = datetime(2019, 5, 4, 16, 0, tzinfo=timezone.utc)

        with pytest.raises(ValueError, match="Unknown field"):
            format_date(instant, "UTC", "{fortnight}")

    def test_unknown_timezone_raises_error(self) -> None:
        with pytest.raises(ValueError, match="Unknown timezone"):
            get_timezone("Mars/Olympus_Mons")

    def test_to_utc_treats_naive_as_utc(self) -> None:
        assert to_utc(datetime(2019, 5, 4, 16, 0)) == datetime(2019, 5, 4, 16, 0, tzinfo=timezone.utc)

    def test_start_of_day(self) -> None:
        assert start_of_day(date(2019, 5, 3)) == datetime(2019, 5, 3, tzinfo=timezone.utc)


class TestDurationFormatting:
    """Test duration formatting."""

    def test_hours_and_padded_minutes(self) -> None:
        assert format_duration(timedelta(minutes=30)) == "0:30"
        assert format_duration(timedelta(hours=1, minutes=30)) == "1:30"
        assert format_duration(timedelta(hours=2)) == "2:00"

    def test_hours_exceed_a_day(self) -> None:
        assert format_duration(timedelta(days=1, hours=3, minutes=5)) == "27:05"

    def test_seconds_are_truncated(self) -> None:
        assert format_duration(timedelta(minutes=1, seconds=59)) == "0:01"

    def test_human_readable_pattern(self) -> None:
        assert format_duration(timedelta(hours=3, minutes=12), "{hours}h {minutes}m") == "3h 12m"

    def test_zero(self) -> None:
        assert format_duration(timedelta(0)) == "0:00"


class TestParseInterval:
    """Test interval parsing."""

    def test_hours_and_minutes(self) -> None:
        assert parse_interval("3h 12m") == timedelta(hours=3, minutes=12)

    def test_all_units(self) -> None:
        assert parse_interval("1d 2h 3m 4s") == timedelta(days=1, hours=2, minutes=3, seconds=4)

    def test_compact_form(self) -> None:
        assert parse_interval("1h30m") == timedelta(hours=1, minutes=30)

    @pytest.mark.parametrize("text", ["", "soon", "3 hours", "1h x"])
    def test_invalid_interval(self, text: str) -> None:
        with pytest.raises(ValueError, match="Invalid interval"):
            parse_interval(text)
