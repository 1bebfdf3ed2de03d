# backend/availability_engine/services/rule_validator.py
"""
Structural and cross-rule validation for availability rules.

Checks run in a fixed order and stop at the first failure:

1. day_of_week in [0, 6]
2. start_time < end_time
3. slot_duration >= minimum slot length
4. slot_duration fits inside the window
5. no overlap with another active rule for the same profile and day

Buffer, capacity and effective-window sanity checks run between 4 and 5 so a
malformed rule never costs a store round-trip.
"""

from datetime import date
import logging
from typing import Any, Dict, Optional

from ..core.config import settings
from ..core.enums import DayOfWeek
from ..core.exceptions import (
    InvalidDayOfWeekException,
    InvalidEffectiveWindowException,
    InvalidTimeRangeException,
    OverlappingRuleException,
    SlotExceedsWindowException,
    SlotTooShortException,
    ValidationException,
)
from ..models.availability_rule import AvailabilityRule
from ..repositories.availability_rule_repository import AvailabilityRuleRepository
from ..schemas.availability import AvailabilityRuleCreate, AvailabilityRuleUpdate
from ..utils.time_arithmetic import format_clock, parse_time, time_to_minutes

logger = logging.getLogger(__name__)

RULE_FIELDS = (
    "profile_id",
    "day_of_week",
    "start_time",
    "end_time",
    "slot_duration",
    "buffer_time",
    "max_appointments_per_slot",
    "effective_from",
    "effective_to",
)

# Fields where an explicit None in a patch means "clear" rather than "keep"
_NULLABLE_FIELDS = {"effective_to"}


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open [start, end) intersection test."""
    return start_a < end_b and start_b < end_a


class RuleValidator:
    """Validates new rules and merged updates against the rule store."""

    def __init__(
        self,
        rule_repository: AvailabilityRuleRepository,
        min_slot_duration: Optional[int] = None,
    ):
        self.rule_repository = rule_repository
        self.min_slot_duration = (
            settings.min_slot_duration_minutes if min_slot_duration is None else min_slot_duration
        )

    def validate_new_rule(self, data: AvailabilityRuleCreate) -> Dict[str, Any]:
        """
        Validate a rule about to be created.

        Returns:
            Normalized column values ready for the rule store

        Raises:
            ValidationException: First structural failure
            OverlappingRuleException: Conflicting active sibling rule
        """
        candidate = data.model_dump()
        if candidate.get("effective_from") is None:
            candidate["effective_from"] = date.today()
        return self._validate(candidate, exclude_rule_id=None)

    def validate_rule_update(
        self, existing: AvailabilityRule, patch: AvailabilityRuleUpdate
    ) -> Dict[str, Any]:
        """
        Merge a partial update onto the stored rule and validate the result.

        Unspecified fields inherit the stored values, so changing only the day
        re-checks the existing window against the new day's rules.

        Returns:
            The full normalized record after the merge
        """
        merged = {field: getattr(existing, field) for field in RULE_FIELDS}
        for field, value in patch.model_dump(exclude_unset=True).items():
            if value is None and field not in _NULLABLE_FIELDS:
                continue
            merged[field] = value
        return self._validate(merged, exclude_rule_id=existing.id)

    def _validate(
        self, candidate: Dict[str, Any], exclude_rule_id: Optional[str]
    ) -> Dict[str, Any]:
        day = candidate["day_of_week"]
        if isinstance(day, bool) or not isinstance(day, int):
            raise InvalidDayOfWeekException(day)
        if not DayOfWeek.SUNDAY <= day <= DayOfWeek.SATURDAY:
            raise InvalidDayOfWeekException(day)

        start_minutes = time_to_minutes(candidate["start_time"])
        end_minutes = time_to_minutes(candidate["end_time"])
        if start_minutes >= end_minutes:
            raise InvalidTimeRangeException(
                format_clock(candidate["start_time"]), format_clock(candidate["end_time"])
            )

        slot_duration = candidate["slot_duration"]
        if slot_duration < self.min_slot_duration:
            raise SlotTooShortException(slot_duration, self.min_slot_duration)

        available_minutes = end_minutes - start_minutes
        if slot_duration > available_minutes:
            raise SlotExceedsWindowException(slot_duration, available_minutes)

        self._check_secondary_fields(candidate)
        self._check_overlap(candidate, start_minutes, end_minutes, exclude_rule_id)

        normalized = dict(candidate)
        normalized["start_time"] = parse_time(candidate["start_time"])
        normalized["end_time"] = parse_time(candidate["end_time"])
        return normalized

    def _check_secondary_fields(self, candidate: Dict[str, Any]) -> None:
        if candidate["buffer_time"] < 0:
            raise ValidationException(
                message="buffer_time cannot be negative",
                code="INVALID_BUFFER_TIME",
                details={"buffer_time": candidate["buffer_time"]},
            )
        if candidate["max_appointments_per_slot"] < 1:
            raise ValidationException(
                message="max_appointments_per_slot must be at least 1",
                code="INVALID_CAPACITY",
                details={"max_appointments_per_slot": candidate["max_appointments_per_slot"]},
            )
        effective_from = candidate["effective_from"]
        effective_to = candidate.get("effective_to")
        if effective_to is not None and effective_to < effective_from:
            raise InvalidEffectiveWindowException(
                "effective_to must be on or after effective_from",
                details={
                    "effective_from": effective_from.isoformat(),
                    "effective_to": effective_to.isoformat(),
                },
            )

    def _check_overlap(
        self,
        candidate: Dict[str, Any],
        start_minutes: int,
        end_minutes: int,
        exclude_rule_id: Optional[str],
    ) -> None:
        siblings = self.rule_repository.find_by_day_of_week(
            candidate["profile_id"], candidate["day_of_week"], active_only=True
        )
        for rule in siblings:
            if exclude_rule_id is not None and rule.id == exclude_rule_id:
                continue  # Skip the rule being updated
            rule_start = time_to_minutes(rule.start_time)
            rule_end = time_to_minutes(rule.end_time)
            if intervals_overlap(start_minutes, end_minutes, rule_start, rule_end):
                logger.info(
                    "Rejected overlapping availability rule",
                    extra={
                        "profile_id": candidate["profile_id"],
                        "day_of_week": candidate["day_of_week"],
                        "conflicting_rule_id": rule.id,
                    },
                )
                raise OverlappingRuleException(
                    conflicting_rule_id=rule.id,
                    day_of_week=candidate["day_of_week"],
                    new_range=(
                        f"{format_clock(candidate['start_time'])}-"
                        f"{format_clock(candidate['end_time'])}"
                    ),
                    conflicting_range=(
                        f"{format_clock(rule.start_time)}-{format_clock(rule.end_time)}"
                    ),
                )
