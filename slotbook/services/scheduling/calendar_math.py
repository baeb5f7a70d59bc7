# slotbook/services/scheduling/calendar_math.py
"""
Calendar math for business hours.

Pure functions: weekly BusinessHours rows + a calendar date become tz-aware
windows in the business's local time zone. No database access here.
"""
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from slotbook.core.exceptions import ConfigurationError

_TIME_PATTERN = re.compile(r"^(\d{2}):(\d{2})(?::(\d{2}))?$")

Window = Tuple[datetime, datetime]


def get_zone(tz_name: str) -> ZoneInfo:
    """Resolve an IANA zone name, failing loudly on operator typos"""
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        raise ConfigurationError(f"Unknown timezone '{tz_name}'", timezone=tz_name)


def parse_wall_clock(value: str) -> time:
    """Parse 'HH:MM' or 'HH:MM:SS' into a time; anything else is a ConfigurationError"""
    match = _TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ConfigurationError(
            f"Malformed business hours time '{value}', expected HH:MM or HH:MM:SS",
            value=value,
        )

    hour, minute, second = int(match.group(1)), int(match.group(2)), int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        raise ConfigurationError(f"Business hours time '{value}' is out of range", value=value)

    return time(hour, minute, second)


def localize(target_date: date, wall_clock: time, zone: ZoneInfo) -> datetime:
    """Anchor a wall-clock time on a date in the given zone"""
    return datetime.combine(target_date, wall_clock, tzinfo=zone)


def day_windows(target_date: date, tz_name: str, hours_rows: Iterable) -> List[Window]:
    """
    Build the ordered open windows for a date.

    Args:
        target_date: Calendar date (no time of day)
        tz_name: Business IANA timezone
        hours_rows: Active BusinessHours rows for target_date.weekday()

    Returns:
        List of (window_start_local, window_end_local), one per row, in row
        order. Rows are never merged. An empty list means closed that day.
    """
    zone = get_zone(tz_name)
    windows = []

    for row in hours_rows:
        start = parse_wall_clock(row.start_time)
        end = parse_wall_clock(row.end_time)
        windows.append((localize(target_date, start, zone), localize(target_date, end, zone)))

    return windows


def day_bounds_utc(target_date: date, tz_name: str) -> Window:
    """UTC instants of local midnight on target_date and on the following day"""
    zone = get_zone(tz_name)
    start = localize(target_date, time.min, zone)
    end = localize(target_date + timedelta(days=1), time.min, zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Normalise a datetime to aware UTC.

    Naive values are read back from storage that drops tzinfo (SQLite) and are
    always written as UTC, so they are tagged rather than converted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
