"""Time-zone projection helpers.

Pure functions that render a UTC instant as wall-clock values inside an IANA
timezone. Nothing here consults the host timezone or the current time, so
callers (and tests) can pin any instant and zone.

Day numbering follows the booking data model: Sunday=0 ... Saturday=6.
"""

import logging
from datetime import datetime, time
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

ISO_WEEKDAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}

WEEKDAY_NUMBERS = {
    "Sunday": 0,
    "Monday": 1,
    "Tuesday": 2,
    "Wednesday": 3,
    "Thursday": 4,
    "Friday": 5,
    "Saturday": 6,
}


class InvalidTimezone(ValueError):
    """Raised for an unknown IANA timezone name."""


@lru_cache(maxsize=256)
def get_zone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name."""
    if not name:
        raise InvalidTimezone("Timezone name is required")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezone(f"Unknown timezone: {name}") from e


def project(instant: datetime, tz_name: str) -> datetime:
    """Convert an aware instant to local wall-clock time in ``tz_name``."""
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError("Instant must be timezone-aware")
    return instant.astimezone(get_zone(tz_name))


def weekday_name(instant: datetime, tz_name: str) -> str:
    """English weekday name of ``instant`` in ``tz_name`` (locale independent)."""
    return ISO_WEEKDAY_NAMES[project(instant, tz_name).isoweekday()]


def day_of_week(instant: datetime, tz_name: str) -> int:
    """Day of week of ``instant`` in ``tz_name`` (Sunday=0)."""
    name = weekday_name(instant, tz_name)
    number = WEEKDAY_NUMBERS.get(name)
    if number is None:
        logger.error(
            "Weekday name mapping failed for %s in %s (name=%r); using local fallback",
            instant.isoformat(),
            tz_name,
            name,
        )
        return project(instant, tz_name).isoweekday() % 7
    return number


def time_of_day(instant: datetime, tz_name: str) -> str:
    """24-hour wall-clock time ``HH:MM:SS`` of ``instant`` in ``tz_name``."""
    return project(instant, tz_name).strftime("%H:%M:%S")


def date_string(instant: datetime, tz_name: str) -> str:
    """Calendar date ``YYYY-MM-DD`` of ``instant`` in ``tz_name``."""
    return project(instant, tz_name).date().isoformat()


def normalize_time(value: str | time) -> str:
    """Normalize ``HH:MM``, ``HH:MM:SS`` or a ``time`` to ``HH:MM:SS``."""
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    parts = value.strip().split(":")
    if len(parts) == 2:
        parts.append("00")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time value: {value!r}")
    hours, minutes, seconds = (int(p) for p in parts)
    # time() enforces the ranges
    return time(hours, minutes, seconds).strftime("%H:%M:%S")
