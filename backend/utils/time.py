"""Time-related utility functions."""

from datetime import datetime, time, timezone

from dateutil import parser as date_parser

MINUTES_PER_DAY = 24 * 60


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def normalize_time(time_str: str) -> str:
    """Convert various time formats to HH:MM 24-hour format."""
    if not time_str:
        return time_str

    time_str = time_str.strip()

    # Already in HH:MM format
    if len(time_str) == 5 and time_str[2] == ":":
        return time_str

    try:
        parsed = date_parser.parse(time_str)
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid time: {time_str!r}") from e

    return f"{parsed.hour:02d}:{parsed.minute:02d}"


def to_minutes(value: str | time | int) -> int:
    """
    Minutes from midnight for a time-of-day.

    Accepts "HH:MM", "HH:MM:SS", 12-hour strings like "1:30 PM",
    datetime.time objects, or an int that is already in minutes.
    """
    if isinstance(value, bool):
        raise TypeError("Time of day cannot be a bool")
    if isinstance(value, int):
        if not 0 <= value <= MINUTES_PER_DAY:
            raise ValueError(f"Minute of day out of range: {value}")
        return value
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if isinstance(value, str):
        hhmm = normalize_time(value)
        parts = hhmm.split(":")
        hours, minutes = int(parts[0]), int(parts[1])
        if not (0 <= hours <= 24 and 0 <= minutes < 60) or (hours == 24 and minutes):
            raise ValueError(f"Invalid time: {value!r}")
        return hours * 60 + minutes
    raise TypeError(f"Unsupported time-of-day value: {value!r}")


def minutes_to_label(minutes: int) -> str:
    """Format minutes from midnight as HH:MM."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minutes_to_time(minutes: int) -> time:
    """Minutes from midnight as a datetime.time (24:00 is not representable)."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minute of day out of range: {minutes}")
    return time(minutes // 60, minutes % 60)
