# backend/availability_engine/services/slot_expander.py
"""
Expansion of one availability rule into concrete slots for one calendar date.

Pure functions of their inputs: no session, no store calls.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, List, Optional

from ..core.config import settings
from ..utils.time_arithmetic import day_of_week, time_to_minutes


@dataclass(frozen=True)
class ExpandedSlot:
    """A [start, end) pair of UTC instants."""

    start: datetime
    end: datetime


def _as_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


class SlotExpander:
    """
    Turns a rule's local window into UTC slot instants.

    Local minute offsets are converted by adding ``local_to_utc_offset_minutes``
    to midnight UTC of the calendar date (300 means local time is UTC-5).
    """

    def __init__(
        self,
        local_to_utc_offset_minutes: Optional[int] = None,
        effective_to_sentinel: Optional[date] = None,
    ):
        self.local_to_utc_offset_minutes = (
            settings.local_to_utc_offset_minutes
            if local_to_utc_offset_minutes is None
            else local_to_utc_offset_minutes
        )
        self.effective_to_sentinel = effective_to_sentinel or settings.effective_to_sentinel

    def within_effective_window(self, rule: Any, calendar_date: date) -> bool:
        effective_from = _as_date(rule.effective_from) or date.min
        effective_to = _as_date(rule.effective_to) or self.effective_to_sentinel
        return effective_from <= calendar_date <= effective_to

    def applies_on(self, rule: Any, calendar_date: date) -> bool:
        """Day of week matches and the date is inside the effective window."""
        return rule.day_of_week == day_of_week(calendar_date) and self.within_effective_window(
            rule, calendar_date
        )

    def expand(
        self,
        rule: Any,
        calendar_date: date,
        utc_offset_minutes: Optional[int] = None,
    ) -> List[ExpandedSlot]:
        """
        Slots for ``rule`` on ``calendar_date``, strictly increasing by start.

        Each slot is ``slot_duration`` long and the next one starts
        ``buffer_time`` minutes after the previous one ends. A slot that would
        run past the rule's end time is not emitted.
        """
        if not self.within_effective_window(rule, calendar_date):
            return []

        offset = (
            self.local_to_utc_offset_minutes if utc_offset_minutes is None else utc_offset_minutes
        )
        start_minutes = time_to_minutes(rule.start_time)
        end_minutes = time_to_minutes(rule.end_time)
        slot_duration = rule.slot_duration
        buffer_time = rule.buffer_time or 0

        day_start_utc = datetime.combine(calendar_date, time(0, 0), tzinfo=timezone.utc)
        slots: List[ExpandedSlot] = []

        cursor = start_minutes
        while cursor + slot_duration <= end_minutes:
            slot_start = day_start_utc + timedelta(minutes=cursor + offset)
            slots.append(
                ExpandedSlot(start=slot_start, end=slot_start + timedelta(minutes=slot_duration))
            )
            cursor += slot_duration + buffer_time

        return slots

    def preview_count(self, rule: Any, calendar_date: date) -> int:
        """
        Whole-window slot count, ignoring buffer time.

        Overstates generation whenever buffer_time > 0; kept as-is because
        preview consumers already rely on this number. See generated_count.
        """
        if not self.within_effective_window(rule, calendar_date):
            return 0
        window = time_to_minutes(rule.end_time) - time_to_minutes(rule.start_time)
        return window // rule.slot_duration

    def generated_count(self, rule: Any, calendar_date: date) -> int:
        """Number of slots expand() yields: (W + b) // (d + b), or 0 when W < d."""
        if not self.within_effective_window(rule, calendar_date):
            return 0
        window = time_to_minutes(rule.end_time) - time_to_minutes(rule.start_time)
        slot_duration = rule.slot_duration
        buffer_time = rule.buffer_time or 0
        if window < slot_duration:
            return 0
        return (window + buffer_time) // (slot_duration + buffer_time)
