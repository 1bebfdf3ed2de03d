# backend/availability_engine/services/availability_engine.py
"""
Availability Engine

Public API over availability rules and slot generation:
- create / update / delete / deactivate rules (validated, serialized per profile+day)
- preview slot counts for a date range (read-only)
- generate and persist slots for a date or a date range (idempotent per start time)

Rule state machine: create -> active, active -> inactive (deactivate),
active|inactive -> deleted. Deactivation is one-way: updates cannot flip
``is_active`` back on.
"""

from datetime import date, datetime, time, timedelta, timezone
import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import TimeSlotStatus
from ..core.exceptions import (
    GenerationDeadlineExceededException,
    InvalidDateRangeException,
    RuleLockTimeoutException,
    RuleNotFoundException,
)
from ..core.rule_lock import rule_lock_key, rule_mutation_lock
from ..core.timezone_utils import OffsetResolver, fixed_offset_resolver
from ..core.ulid_helper import is_valid_ulid
from ..models.availability_rule import AvailabilityRule
from ..repositories.availability_rule_repository import AvailabilityRuleRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.time_slot_repository import TimeSlotRepository
from ..schemas.availability import (
    AvailabilityRuleCreate,
    AvailabilityRuleResponse,
    AvailabilityRuleUpdate,
    SlotGenerationResult,
    SlotPreviewRow,
    TimeSlotResponse,
)
from ..utils.time_arithmetic import day_of_week, format_clock, iter_dates, time_to_minutes
from .base import BaseService
from .rule_validator import RuleValidator
from .slot_expander import SlotExpander

logger = logging.getLogger(__name__)

# Times update_rule re-reads a rule that moved day while it waited for the lock
_UPDATE_LOCK_ATTEMPTS = 3


class AvailabilityEngine(BaseService):
    """
    Orchestrates rule validation, rule persistence and slot generation.

    Request-scoped: one instance per session, no state kept between calls.
    """

    def __init__(
        self,
        db: Session,
        rule_repository: Optional[AvailabilityRuleRepository] = None,
        slot_repository: Optional[TimeSlotRepository] = None,
        expander: Optional[SlotExpander] = None,
        offset_resolver: Optional[OffsetResolver] = None,
    ):
        super().__init__(db)
        self.rule_repository = (
            rule_repository or RepositoryFactory.create_availability_rule_repository(db)
        )
        self.slot_repository = slot_repository or RepositoryFactory.create_time_slot_repository(db)
        self.validator = RuleValidator(self.rule_repository)
        self.expander = expander or SlotExpander()
        self.offset_resolver = offset_resolver or fixed_offset_resolver(
            self.expander.local_to_utc_offset_minutes
        )

    # Rule management

    @BaseService.measure_operation("create_rule")
    def create_rule(
        self, data: Union[AvailabilityRuleCreate, Dict[str, Any]]
    ) -> AvailabilityRule:
        """
        Validate and persist a new rule.

        Raises:
            ValidationException: Structural failure (day, time range, slot length)
            OverlappingRuleException: Overlaps an active rule on the same day
            RuleLockTimeoutException: Another mutation for this day is in flight
        """
        if isinstance(data, dict):
            data = AvailabilityRuleCreate.model_validate(data)

        self.log_operation(
            "create_rule", profile_id=data.profile_id, day_of_week=data.day_of_week
        )

        with rule_mutation_lock(data.profile_id, [data.day_of_week]):
            with self.transaction():
                values = self.validator.validate_new_rule(data)
                rule = self.rule_repository.create(**values)

        logger.info(
            f"Created availability rule {rule.id} for profile {rule.profile_id} "
            f"day {rule.day_of_week} {format_clock(rule.start_time)}-{format_clock(rule.end_time)}"
        )
        return rule

    @BaseService.measure_operation("update_rule")
    def update_rule(
        self, rule_id: str, patch: Union[AvailabilityRuleUpdate, Dict[str, Any]]
    ) -> AvailabilityRule:
        """
        Apply a partial update, re-validating the merged record.

        Raises:
            RuleNotFoundException: Unknown rule id
            ValidationException / OverlappingRuleException: As for create_rule
            RuleLockTimeoutException: The rule kept changing day under concurrent updates
        """
        if isinstance(patch, dict):
            patch = AvailabilityRuleUpdate.model_validate(patch)

        self.log_operation(
            "update_rule", rule_id=rule_id, fields=sorted(patch.model_dump(exclude_unset=True))
        )

        for _ in range(_UPDATE_LOCK_ATTEMPTS):
            existing = self._get_rule_or_raise(rule_id)

            # Lock the day being left and the day being joined
            days = {existing.day_of_week}
            if patch.day_of_week is not None:
                days.add(patch.day_of_week)

            rule: Optional[AvailabilityRule] = None
            with rule_mutation_lock(existing.profile_id, days):
                with self.transaction():
                    current = self._get_rule_or_raise(rule_id)
                    if current.day_of_week in days:
                        values = self.validator.validate_rule_update(current, patch)
                        values.pop("profile_id", None)
                        rule = self.rule_repository.update(rule_id, **values)
                        if rule is None:
                            raise RuleNotFoundException(rule_id)
            if rule is not None:
                return rule

            self.logger.info(
                f"Rule {rule_id} moved to day {current.day_of_week} while waiting for "
                f"the lock on days {sorted(days)}, retrying"
            )

        raise RuleLockTimeoutException(
            rule_lock_key(current.profile_id, current.day_of_week),
            settings.rule_lock_timeout_seconds,
        )

    @BaseService.measure_operation("delete_rule")
    def delete_rule(self, rule_id: str) -> bool:
        """Permanently delete a rule. Already generated slots are left untouched."""
        self._get_rule_or_raise(rule_id)
        self.log_operation("delete_rule", rule_id=rule_id)

        with self.transaction():
            deleted = self.rule_repository.delete(rule_id)
        return deleted

    @BaseService.measure_operation("deactivate_rule")
    def deactivate_rule(self, rule_id: str) -> AvailabilityRule:
        """Soft-delete: the rule stops taking part in overlap checks and generation."""
        self._get_rule_or_raise(rule_id)
        self.log_operation("deactivate_rule", rule_id=rule_id)

        with self.transaction():
            rule = self.rule_repository.deactivate(rule_id)
            if rule is None:
                raise RuleNotFoundException(rule_id)
        return rule

    def get_rule(self, rule_id: str) -> AvailabilityRule:
        return self._get_rule_or_raise(rule_id)

    def list_rules(self, profile_id: str, active_only: bool = True) -> List[AvailabilityRule]:
        return self.rule_repository.find_by_profile_id(profile_id, active_only=active_only)

    def list_rule_responses(
        self, profile_id: str, active_only: bool = True
    ) -> List[AvailabilityRuleResponse]:
        """Rules for a profile as response DTOs, ordered by day then start time."""
        return [
            AvailabilityRuleResponse.model_validate(rule)
            for rule in self.list_rules(profile_id, active_only=active_only)
        ]

    @BaseService.measure_operation("list_slots")
    def list_slots(
        self,
        profile_id: str,
        start_date: date,
        end_date: date,
        service_id: Optional[str] = None,
    ) -> List[TimeSlotResponse]:
        """
        Stored slots starting on the local dates [start_date, end_date].

        Local midnights are converted with the profile's offset for each end of
        the range, so a slot belongs to the local date it starts on.
        """
        self._check_date_range(start_date, end_date)
        range_start = datetime.combine(start_date, time(0, 0), tzinfo=timezone.utc) + timedelta(
            minutes=self.offset_resolver(profile_id, start_date)
        )
        day_after = end_date + timedelta(days=1)
        range_end = datetime.combine(day_after, time(0, 0), tzinfo=timezone.utc) + timedelta(
            minutes=self.offset_resolver(profile_id, day_after)
        )

        slots = self.slot_repository.find_by_profile_and_range(
            profile_id, range_start, range_end, service_id=service_id
        )
        return [TimeSlotResponse.model_validate(slot) for slot in slots]

    # Preview

    @BaseService.measure_operation("preview_slots")
    def preview_slots(
        self, profile_id: str, start_date: date, end_date: date
    ) -> List[SlotPreviewRow]:
        """
        One summary row per (date, applicable active rule) in [start_date, end_date].

        Read-only: never touches the slot store.
        """
        self._check_date_range(start_date, end_date)
        rules = self.rule_repository.find_by_profile_id(profile_id, active_only=True)

        rows: List[SlotPreviewRow] = []
        for current_date in iter_dates(start_date, end_date):
            for rule in rules:
                if not self.expander.applies_on(rule, current_date):
                    continue
                rows.append(
                    SlotPreviewRow(
                        date=current_date,
                        day_of_week=day_of_week(current_date),
                        rule_id=rule.id,
                        start_time=format_clock(rule.start_time),
                        end_time=format_clock(rule.end_time),
                        count=self.expander.preview_count(rule, current_date),
                        bookable_count=self.expander.generated_count(rule, current_date),
                    )
                )

        rows.sort(key=lambda row: (row.date, time_to_minutes(row.start_time)))
        return rows

    # Generation

    @BaseService.measure_operation("generate_slots_for_date")
    def generate_slots_for_date(
        self, profile_id: str, service_id: str, target_date: date
    ) -> SlotGenerationResult:
        """
        Expand every applicable active rule for ``target_date`` and persist the slots.

        Slots whose (profile, service, start_time) already exist are skipped, so
        re-running generation for a covered date creates nothing new.
        """
        rules = [
            rule
            for rule in self.rule_repository.find_by_profile_id(profile_id, active_only=True)
            if self.expander.applies_on(rule, target_date)
        ]
        if not rules:
            return SlotGenerationResult(generated_count=0, slots=[])

        offset = self.offset_resolver(profile_id, target_date)
        candidates: List[Dict[str, Any]] = []
        for rule in rules:
            for slot in self.expander.expand(rule, target_date, utc_offset_minutes=offset):
                candidates.append(
                    {
                        "profile_id": profile_id,
                        "service_id": service_id,
                        "start_time": slot.start,
                        "end_time": slot.end,
                        "max_reservations": rule.max_appointments_per_slot or 1,
                        "current_reservations": 0,
                        "status": TimeSlotStatus.AVAILABLE.value,
                    }
                )
        if not candidates:
            return SlotGenerationResult(generated_count=0, slots=[])

        candidates.sort(key=lambda item: item["start_time"])

        with self.transaction():
            existing = self.slot_repository.find_existing_start_times(
                profile_id,
                service_id,
                candidates[0]["start_time"],
                candidates[-1]["start_time"] + timedelta(seconds=1),
            )
            to_create = [item for item in candidates if item["start_time"] not in existing]
            if not to_create:
                self.logger.info(
                    f"Slots for profile {profile_id} service {service_id} on "
                    f"{target_date.isoformat()} already generated, skipping"
                )
                return SlotGenerationResult(generated_count=0, slots=[])

            created = self.slot_repository.bulk_create(to_create)
            result = SlotGenerationResult(
                generated_count=len(created),
                slots=[TimeSlotResponse.model_validate(slot) for slot in created],
            )

        skipped = len(candidates) - len(to_create)
        self.logger.info(
            f"Generated {result.generated_count} slots for profile {profile_id} on "
            f"{target_date.isoformat()} (skipped {skipped} existing)"
        )
        return result

    @BaseService.measure_operation("generate_slots_for_range")
    def generate_slots_for_range(
        self,
        profile_id: str,
        service_id: str,
        start_date: date,
        end_date: date,
        deadline: Optional[datetime] = None,
    ) -> SlotGenerationResult:
        """
        Run generate_slots_for_date for every date in [start_date, end_date].

        Each date commits on its own. When ``deadline`` passes between dates the
        run stops with GenerationDeadlineExceededException; dates already
        completed stay persisted and are listed in the exception details.
        """
        self._check_date_range(start_date, end_date)
        if deadline is not None and deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=timezone.utc)

        total = 0
        slots: List[TimeSlotResponse] = []
        completed: List[str] = []

        for current_date in iter_dates(start_date, end_date):
            if deadline is not None and datetime.now(timezone.utc) >= deadline:
                self.logger.warning(
                    f"Slot generation for profile {profile_id} hit its deadline after "
                    f"{len(completed)} dates"
                )
                raise GenerationDeadlineExceededException(completed, total)

            result = self.generate_slots_for_date(profile_id, service_id, current_date)
            total += result.generated_count
            slots.extend(result.slots)
            completed.append(current_date.isoformat())

        return SlotGenerationResult(generated_count=total, slots=slots)

    # Helpers

    def _get_rule_or_raise(self, rule_id: str) -> AvailabilityRule:
        if not is_valid_ulid(rule_id):
            raise RuleNotFoundException(rule_id)
        rule = self.rule_repository.get_by_id(rule_id)
        if rule is None:
            raise RuleNotFoundException(rule_id)
        return rule

    @staticmethod
    def _check_date_range(start_date: date, end_date: date) -> None:
        if end_date < start_date:
            raise InvalidDateRangeException(start_date.isoformat(), end_date.isoformat())
