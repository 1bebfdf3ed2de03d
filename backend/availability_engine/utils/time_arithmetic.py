"""
Minute arithmetic for local wall-clock times.

Rules store local times of day; everything the validator and the expander do
is done on minutes since midnight.
"""

from datetime import date, datetime, time, timedelta
import re
from typing import Iterator, Tuple, Union

from ..core.exceptions import InvalidTimeFormatException

TimeLike = Union[str, time, datetime]

_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def time_to_minutes(value: TimeLike) -> int:
    """
    Minutes since midnight for a local time.

    Accepts "H:MM", "HH:MM" or "HH:MM:SS" strings (seconds are ignored),
    ``datetime.time`` or ``datetime``.

    Raises:
        InvalidTimeFormatException: If a string does not parse as a clock time
    """
    if isinstance(value, datetime):
        return value.hour * 60 + value.minute
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if not isinstance(value, str):
        raise InvalidTimeFormatException(value)

    match = _CLOCK_RE.match(value.strip())
    if not match:
        raise InvalidTimeFormatException(value)

    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3) or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise InvalidTimeFormatException(value)
    return hours * 60 + minutes


def minutes_to_clock(minutes: int) -> Tuple[int, int]:
    """Inverse of time_to_minutes: (hour, minute)."""
    return divmod(minutes, 60)


def minutes_to_time(minutes: int) -> time:
    hour, minute = minutes_to_clock(minutes)
    return time(hour, minute)


def parse_time(value: TimeLike) -> time:
    """Normalize any accepted time input to a minute-precision ``datetime.time``."""
    return minutes_to_time(time_to_minutes(value))


def format_clock(value: TimeLike) -> str:
    """Render as zero-padded "HH:MM"."""
    hour, minute = minutes_to_clock(time_to_minutes(value))
    return f"{hour:02d}:{minute:02d}"


def day_of_week(target_date: date) -> int:
    """Sunday-based day index (0 = Sunday ... 6 = Saturday)."""
    return (target_date.weekday() + 1) % 7


def iter_dates(start_date: date, end_date: date) -> Iterator[date]:
    """Every calendar date in [start_date, end_date]."""
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)
