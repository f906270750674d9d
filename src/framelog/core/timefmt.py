"""Timezone-aware formatting of instants and durations.

Frames store their instants in UTC.  Everything shown to a user is converted to
the display timezone first and then rendered with a ``str.format`` template, so
date, time and duration patterns stay configuration rather than code.

Instant templates may use these fields::

    dt, year, month, month_name, month_abbr, day, weekday, weekday_abbr,
    hour, hour12, minute, second, ampm, AMPM

``dt`` is the localized datetime itself, so ``{dt:%Y-%m-%d}`` works as well.

Duration templates may use ``hours`` (total hours, may exceed 24), ``minutes``,
``seconds`` and ``total_minutes``.
"""

import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_DATE_FORMAT = "{month_name} {day}, {year}"
DEFAULT_TIME_FORMAT = "{hour12}:{minute:02d} {ampm}"
DEFAULT_DURATION_FORMAT = "{hours}:{minutes:02d}"

_INTERVAL_PART = re.compile(r"(\d+)\s*([dhms])", re.IGNORECASE)
_INTERVAL_UNITS = {"d": "days", "h": "hours", "m": "minutes", "s": "seconds"}


def utcnow() -> datetime:
    """Return the current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC.  Naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_timezone(name: Union[str, tzinfo]) -> tzinfo:
    """Resolve a timezone name such as ``America/New_York``.

    Raises:
        ValueError: If the name is not a known IANA timezone
    """
    if isinstance(name, tzinfo):
        return name
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {name}")


def localize(instant: datetime, tz: Union[str, tzinfo]) -> datetime:
    """Convert a stored instant to the display timezone."""
    return to_utc(instant).astimezone(get_timezone(tz))


def start_of_day(day: date) -> datetime:
    """Return midnight UTC at the start of the given calendar date."""
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def _instant_fields(local: datetime) -> dict[str, Any]:
    hour12 = local.hour % 12 or 12
    ampm = "am" if local.hour < 12 else "pm"
    return {
        "dt": local,
        "year": local.year,
        "month": local.month,
        "month_name": local.strftime("%B"),
        "month_abbr": local.strftime("%b"),
        "day": local.day,
        "weekday": local.strftime("%A"),
        "weekday_abbr": local.strftime("%a"),
        "hour": local.hour,
        "hour12": hour12,
        "minute": local.minute,
        "second": local.second,
        "ampm": ampm,
        "AMPM": ampm.upper(),
    }


def _render(pattern: str, fields: dict[str, Any]) -> str:
    try:
        return pattern.format(**fields)
    except KeyError as e:
        raise ValueError(f"Unknown field {e} in format pattern '{pattern}'")
    except (IndexError, ValueError) as e:
        raise ValueError(f"Invalid format pattern '{pattern}': {e}")


def format_instant(instant: datetime, pattern: str, tz: Union[str, tzinfo]) -> str:
    """Render an instant in the display timezone using a template."""
    return _render(pattern, _instant_fields(localize(instant, tz)))


def format_date(
    instant: datetime, tz: Union[str, tzinfo], pattern: str = DEFAULT_DATE_FORMAT
) -> str:
    """Format the localized calendar date of an instant, e.g. ``May 4, 2019``."""
    return format_instant(instant, pattern, tz)


def format_time(
    instant: datetime, tz: Union[str, tzinfo], pattern: str = DEFAULT_TIME_FORMAT
) -> str:
    """Format the localized time of day of an instant, e.g. ``1:30 pm``."""
    return format_instant(instant, pattern, tz)


def format_datetime(
    instant: datetime,
    tz: Union[str, tzinfo],
    date_pattern: str = DEFAULT_DATE_FORMAT,
    time_pattern: str = DEFAULT_TIME_FORMAT,
) -> str:
    """Format date and time together, e.g. ``May 2, 2019 8:00 pm``."""
    return f"{format_date(instant, tz, date_pattern)} {format_time(instant, tz, time_pattern)}"


def format_duration(delta: timedelta, pattern: str = DEFAULT_DURATION_FORMAT) -> str:
    """Format a duration.  Hours are not wrapped at 24 and seconds are truncated.

    Args:
        delta: Duration to format
        pattern: Duration template, e.g. ``{hours}:{minutes:02d}``

    Returns:
        Formatted duration string
    """
    total_seconds = max(0, int(delta.total_seconds()))
    fields = {
        "hours": total_seconds // 3600,
        "minutes": (total_seconds % 3600) // 60,
        "seconds": total_seconds % 60,
        "total_minutes": total_seconds // 60,
    }
    return _render(pattern, fields)


def parse_interval(text: str) -> timedelta:
    """Parse an interval such as ``3h 12m`` into a timedelta.

    Args:
        text: Interval made of ``<number><unit>`` parts, units d/h/m/s

    Returns:
        Parsed interval

    Raises:
        ValueError: If the text is empty or contains anything else
    """
    cleaned = text.strip()
    parts = _INTERVAL_PART.findall(cleaned)
    if not parts or _INTERVAL_PART.sub("", cleaned).strip():
        raise ValueError(f"Invalid interval: '{text}'. Use a form like '3h 12m'")

    kwargs: dict[str, int] = {}
    for amount, unit in parts:
        key = _INTERVAL_UNITS[unit.lower()]
        kwargs[key] = kwargs.get(key, 0) + int(amount)
    return timedelta(**kwargs)
