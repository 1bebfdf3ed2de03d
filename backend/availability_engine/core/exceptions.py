# backend/availability_engine/core/exceptions.py
"""
Error taxonomy for the availability engine.

Every domain error carries a stable ``code`` and structured ``details`` and
knows its HTTP status, so a host API can surface it with
``raise exc.to_http_exception()``.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base for engine errors; ``code`` defaults to the class name."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Malformed rule or request input (400)."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Unknown id (404)."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Clashes with stored state or a concurrent writer (409)."""

    status_code = status.HTTP_409_CONFLICT


class ServiceException(DomainException):
    """Operation could not complete (500)."""


# Rule validation failures


class InvalidTimeFormatException(ValidationException):
    """Raised when a time string is not H:MM / HH:MM (optionally with seconds)."""

    def __init__(self, value: Any):
        super().__init__(
            message=f"Invalid time format: {value!r}. Expected HH:MM",
            code="INVALID_TIME_FORMAT",
            details={"value": str(value)},
        )


class InvalidDayOfWeekException(ValidationException):
    def __init__(self, day_of_week: Any):
        super().__init__(
            message="day_of_week must be between 0 (Sunday) and 6 (Saturday)",
            code="INVALID_DAY_OF_WEEK",
            details={"day_of_week": day_of_week},
        )


class InvalidTimeRangeException(ValidationException):
    def __init__(self, start_time: str, end_time: str):
        super().__init__(
            message="start_time must be before end_time",
            code="INVALID_TIME_RANGE",
            details={"start_time": start_time, "end_time": end_time},
        )


class SlotTooShortException(ValidationException):
    def __init__(self, slot_duration: int, minimum: int):
        super().__init__(
            message=f"slot_duration must be at least {minimum} minutes",
            code="SLOT_TOO_SHORT",
            details={"slot_duration": slot_duration, "minimum_minutes": minimum},
        )


class SlotExceedsWindowException(ValidationException):
    def __init__(self, slot_duration: int, available_minutes: int):
        super().__init__(
            message=(
                f"slot_duration ({slot_duration}min) is greater than "
                f"available time ({available_minutes}min)"
            ),
            code="SLOT_EXCEEDS_WINDOW",
            details={"slot_duration": slot_duration, "available_minutes": available_minutes},
        )


class InvalidEffectiveWindowException(ValidationException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="INVALID_EFFECTIVE_WINDOW", details=details)


class InvalidDateRangeException(ValidationException):
    def __init__(self, start_date: str, end_date: str):
        super().__init__(
            message="end_date must be on or after start_date",
            code="INVALID_DATE_RANGE",
            details={"start_date": start_date, "end_date": end_date},
        )


class OverlappingRuleException(ConflictException):
    """Raised when a rule overlaps an active rule for the same profile and day."""

    def __init__(
        self,
        conflicting_rule_id: str,
        day_of_week: int,
        new_range: str,
        conflicting_range: str,
    ):
        super().__init__(
            message="This time range overlaps with an existing rule for this day",
            code="OVERLAPPING_RULE",
            details={
                "conflicting_rule_id": conflicting_rule_id,
                "day_of_week": day_of_week,
                "new_range": new_range,
                "conflicting_range": conflicting_range,
            },
        )
        self.conflicting_rule_id = conflicting_rule_id


class RuleLockTimeoutException(ConflictException):
    def __init__(self, lock_key: str, timeout_seconds: float):
        super().__init__(
            message="Another change to this day's availability is in progress, retry shortly",
            code="RULE_LOCK_TIMEOUT",
            details={"lock_key": lock_key, "timeout_seconds": timeout_seconds},
        )


class RuleNotFoundException(NotFoundException):
    def __init__(self, rule_id: str):
        super().__init__(
            message="Availability rule not found",
            code="RULE_NOT_FOUND",
            details={"rule_id": rule_id},
        )


class GenerationDeadlineExceededException(ServiceException):
    """Raised when range generation runs past the caller's deadline."""

    def __init__(self, completed_dates: List[str], generated_count: int):
        super().__init__(
            message="Slot generation stopped: deadline exceeded",
            code="GENERATION_DEADLINE_EXCEEDED",
            details={"completed_dates": completed_dates, "generated_count": generated_count},
        )


class RepositoryException(Exception):
    """Store failure (connection, query or constraint), wrapped by repositories."""
