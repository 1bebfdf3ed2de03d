"""
Unit tests for RuleValidator.

The rule store is a Mock shaped like AvailabilityRuleRepository, so these tests only
exercise check ordering and merge semantics.
"""

from datetime import date, time
from unittest.mock import Mock

import pytest

from availability_engine.core.exceptions import (
    InvalidDayOfWeekException,
    InvalidEffectiveWindowException,
    InvalidTimeFormatException,
    InvalidTimeRangeException,
    OverlappingRuleException,
    SlotExceedsWindowException,
    SlotTooShortException,
    ValidationException,
)
from availability_engine.models.availability_rule import AvailabilityRule
from availability_engine.repositories.availability_rule_repository import (
    AvailabilityRuleRepository,
)
from availability_engine.schemas.availability import AvailabilityRuleCreate, AvailabilityRuleUpdate
from availability_engine.services.rule_validator import RuleValidator, intervals_overlap


def _stored_rule(
    rule_id: str, start: time, end: time, day: int = 1, **overrides
) -> AvailabilityRule:
    values = {
        "id": rule_id,
        "profile_id": "profile-1",
        "day_of_week": day,
        "start_time": start,
        "end_time": end,
        "slot_duration": 30,
        "buffer_time": 0,
        "max_appointments_per_slot": 1,
        "is_active": True,
        "effective_from": date(2024, 1, 1),
        "effective_to": None,
    }
    values.update(overrides)
    return AvailabilityRule(**values)


def _create(**overrides) -> AvailabilityRuleCreate:
    data = {
        "profile_id": "profile-1",
        "day_of_week": 1,
        "start_time": "09:00",
        "end_time": "17:00",
        "slot_duration": 30,
        "effective_from": date(2024, 1, 1),
    }
    data.update(overrides)
    return AvailabilityRuleCreate(**data)


@pytest.fixture
def repository() -> Mock:
    repo = Mock(spec=AvailabilityRuleRepository)
    repo.find_by_day_of_week.return_value = []
    return repo


@pytest.fixture
def validator(repository) -> RuleValidator:
    return RuleValidator(repository, min_slot_duration=15)


class TestIntervalsOverlap:
    @pytest.mark.parametrize(
        "a,b,expected",
        [
            ((540, 1020), (720, 780), True),  # contains
            ((720, 780), (540, 1020), True),  # contained
            ((540, 600), (570, 630), True),  # partial
            ((540, 600), (600, 660), False),  # touching, half-open
            ((600, 660), (540, 600), False),
            ((540, 600), (660, 720), False),
            ((540, 600), (540, 600), True),  # identical
        ],
    )
    def test_half_open_semantics(self, a, b, expected):
        assert intervals_overlap(a[0], a[1], b[0], b[1]) is expected


class TestValidateNewRule:
    def test_returns_normalized_values(self, validator):
        values = validator.validate_new_rule(_create(start_time="9:00", end_time="17:00:00"))

        assert values["start_time"] == time(9, 0)
        assert values["end_time"] == time(17, 0)
        assert values["buffer_time"] == 0
        assert values["max_appointments_per_slot"] == 1
        assert values["profile_id"] == "profile-1"

    def test_defaults_effective_from_to_today(self, validator):
        values = validator.validate_new_rule(_create(effective_from=None))
        assert values["effective_from"] == date.today()

    @pytest.mark.parametrize("day", [-1, 7, 10])
    def test_invalid_day_of_week(self, validator, day):
        with pytest.raises(InvalidDayOfWeekException):
            validator.validate_new_rule(_create(day_of_week=day))

    def test_day_checked_before_time_range(self, validator):
        with pytest.raises(InvalidDayOfWeekException):
            validator.validate_new_rule(_create(day_of_week=9, start_time="18:00"))

    @pytest.mark.parametrize("start,end", [("17:00", "09:00"), ("09:00", "09:00")])
    def test_start_not_before_end(self, validator, start, end):
        with pytest.raises(InvalidTimeRangeException) as exc_info:
            validator.validate_new_rule(_create(start_time=start, end_time=end))
        assert exc_info.value.code == "INVALID_TIME_RANGE"

    def test_time_range_wins_over_later_checks(self, validator, repository):
        """start >= end fails as InvalidTimeRange whatever the other fields say."""
        repository.find_by_day_of_week.return_value = [
            _stored_rule("other", time(0, 0), time(23, 0))
        ]
        with pytest.raises(InvalidTimeRangeException):
            validator.validate_new_rule(
                _create(start_time="12:00", end_time="11:00", slot_duration=1, buffer_time=-5)
            )
        repository.find_by_day_of_week.assert_not_called()

    def test_malformed_time(self, validator):
        with pytest.raises(InvalidTimeFormatException):
            validator.validate_new_rule(_create(start_time="9am"))

    def test_slot_too_short(self, validator):
        with pytest.raises(SlotTooShortException) as exc_info:
            validator.validate_new_rule(_create(slot_duration=10))
        assert exc_info.value.details["minimum_minutes"] == 15

    def test_minimum_slot_is_accepted(self, validator):
        validator.validate_new_rule(_create(start_time="09:00", end_time="09:15", slot_duration=15))

    def test_slot_exceeds_window_carries_available_minutes(self, validator):
        with pytest.raises(SlotExceedsWindowException) as exc_info:
            validator.validate_new_rule(
                _create(start_time="09:00", end_time="09:45", slot_duration=60)
            )
        assert exc_info.value.details["available_minutes"] == 45

    def test_negative_buffer(self, validator):
        with pytest.raises(ValidationException) as exc_info:
            validator.validate_new_rule(_create(buffer_time=-1))
        assert exc_info.value.code == "INVALID_BUFFER_TIME"

    def test_zero_capacity(self, validator):
        with pytest.raises(ValidationException) as exc_info:
            validator.validate_new_rule(_create(max_appointments_per_slot=0))
        assert exc_info.value.code == "INVALID_CAPACITY"

    def test_effective_to_before_from(self, validator):
        with pytest.raises(InvalidEffectiveWindowException):
            validator.validate_new_rule(
                _create(effective_from=date(2024, 2, 1), effective_to=date(2024, 1, 31))
            )

    def test_overlap_reports_conflicting_rule(self, validator, repository):
        repository.find_by_day_of_week.return_value = [
            _stored_rule("rule-a", time(9, 0), time(17, 0))
        ]

        with pytest.raises(OverlappingRuleException) as exc_info:
            validator.validate_new_rule(_create(start_time="12:00", end_time="13:00"))

        assert exc_info.value.conflicting_rule_id == "rule-a"
        assert exc_info.value.details["conflicting_range"] == "09:00-17:00"
        assert exc_info.value.details["new_range"] == "12:00-13:00"
        repository.find_by_day_of_week.assert_called_once_with("profile-1", 1, active_only=True)

    def test_adjacent_rules_do_not_overlap(self, validator, repository):
        repository.find_by_day_of_week.return_value = [
            _stored_rule("morning", time(9, 0), time(12, 0)),
            _stored_rule("evening", time(17, 0), time(20, 0)),
        ]
        values = validator.validate_new_rule(_create(start_time="12:00", end_time="17:00"))
        assert values["start_time"] == time(12, 0)


class TestValidateRuleUpdate:
    def test_unspecified_fields_inherit_existing(self, validator):
        existing = _stored_rule("rule-a", time(9, 0), time(17, 0), buffer_time=5)

        patch = AvailabilityRuleUpdate(start_time="08:00")
        values = validator.validate_rule_update(existing, patch)

        assert values["start_time"] == time(8, 0)
        assert values["end_time"] == time(17, 0)
        assert values["buffer_time"] == 5
        assert values["day_of_week"] == 1

    def test_update_does_not_conflict_with_itself(self, validator, repository):
        existing = _stored_rule("rule-a", time(9, 0), time(17, 0))
        repository.find_by_day_of_week.return_value = [existing]

        patch = AvailabilityRuleUpdate(start_time="08:00")
        values = validator.validate_rule_update(existing, patch)

        assert values["start_time"] == time(8, 0)

    def test_day_change_checks_new_days_rules(self, validator, repository):
        existing = _stored_rule("rule-a", time(9, 0), time(12, 0), day=1)
        repository.find_by_day_of_week.return_value = [
            _stored_rule("tuesday", time(10, 0), time(11, 0), day=2)
        ]

        with pytest.raises(OverlappingRuleException) as exc_info:
            validator.validate_rule_update(existing, AvailabilityRuleUpdate(day_of_week=2))

        assert exc_info.value.conflicting_rule_id == "tuesday"
        repository.find_by_day_of_week.assert_called_once_with("profile-1", 2, active_only=True)

    def test_merged_window_rechecks_slot_duration(self, validator):
        existing = _stored_rule("rule-a", time(9, 0), time(17, 0), slot_duration=60)

        with pytest.raises(SlotExceedsWindowException):
            validator.validate_rule_update(existing, AvailabilityRuleUpdate(end_time="09:30"))

    def test_merged_start_after_existing_end(self, validator):
        existing = _stored_rule("rule-a", time(9, 0), time(12, 0))

        with pytest.raises(InvalidTimeRangeException):
            validator.validate_rule_update(existing, AvailabilityRuleUpdate(start_time="13:00"))

    def test_explicit_none_keeps_value_except_effective_to(self, validator):
        existing = _stored_rule(
            "rule-a", time(9, 0), time(17, 0), effective_to=date(2024, 6, 30)
        )

        values = validator.validate_rule_update(
            existing, AvailabilityRuleUpdate(slot_duration=None, effective_to=None)
        )

        assert values["slot_duration"] == 30
        assert values["effective_to"] is None
