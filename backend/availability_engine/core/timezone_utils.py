"""
Timezone utilities for slot generation.

The slot expander works with a fixed local-to-UTC offset per (profile, date).
These helpers build the resolvers the engine calls to obtain that offset.
"""

from datetime import date, datetime, time
from typing import Callable, Mapping, Optional

import pytz

from .config import settings

# (profile_id, calendar_date) -> minutes added to local time to get UTC
OffsetResolver = Callable[[str, date], int]


def local_to_utc_offset_minutes(tz_name: str, target_date: date) -> int:
    """
    Offset for a timezone on a given date.

    Measured at local noon so DST switches (which happen overnight) resolve
    to the offset in force for most of the day.

    Args:
        tz_name: IANA timezone name, e.g. "America/Lima"
        target_date: Calendar date in that timezone

    Returns:
        Minutes to add to local wall-clock time to obtain UTC
    """
    tz = pytz.timezone(tz_name)
    local_noon = tz.localize(datetime.combine(target_date, time(12, 0)))
    utc_offset = local_noon.utcoffset()
    return -int(utc_offset.total_seconds() // 60)


def fixed_offset_resolver(offset_minutes: Optional[int] = None) -> OffsetResolver:
    """Resolver returning the same offset for every profile and date."""
    offset = settings.local_to_utc_offset_minutes if offset_minutes is None else offset_minutes

    def resolve(profile_id: str, target_date: date) -> int:
        return offset

    return resolve


def timezone_offset_resolver(
    profile_timezones: Mapping[str, str],
    default_offset_minutes: Optional[int] = None,
) -> OffsetResolver:
    """
    Resolver backed by per-profile IANA timezone names.

    Profiles missing from the mapping fall back to the configured fixed offset.
    """
    fallback = fixed_offset_resolver(default_offset_minutes)

    def resolve(profile_id: str, target_date: date) -> int:
        tz_name = profile_timezones.get(profile_id)
        if not tz_name:
            return fallback(profile_id, target_date)
        return local_to_utc_offset_minutes(tz_name, target_date)

    return resolve
