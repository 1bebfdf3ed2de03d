# backend/availability_engine/schemas/availability.py
"""
Availability rule and slot schemas.

Request models only coerce types. Range and ordering checks live in the
RuleValidator so that every failure surfaces as a structured domain error
(day of week, time range, slot length, overlap) in a fixed order.
"""

import datetime
from typing import List, Optional, Union

from pydantic import ConfigDict, Field

from ._strict_base import StandardizedModel, StrictRequestModel

# Type aliases for clarity
DateType = datetime.date
TimeType = datetime.time
DateTimeType = datetime.datetime

TimeInput = Union[TimeType, str]


class AvailabilityRuleCreate(StrictRequestModel):
    """Input for creating a recurring weekly rule."""

    profile_id: str = Field(..., min_length=1, max_length=64)
    day_of_week: int = Field(..., description="0 = Sunday ... 6 = Saturday")
    start_time: TimeInput = Field(..., description="Local time, HH:MM")
    end_time: TimeInput = Field(..., description="Local time, HH:MM")
    slot_duration: int = Field(..., description="Minutes per generated slot")
    buffer_time: int = 0
    max_appointments_per_slot: int = 1
    effective_from: Optional[DateType] = None
    effective_to: Optional[DateType] = None


class AvailabilityRuleUpdate(StrictRequestModel):
    """
    Partial update. Only fields explicitly set are applied; everything else is
    inherited from the stored rule before re-validation.
    """

    day_of_week: Optional[int] = None
    start_time: Optional[TimeInput] = None
    end_time: Optional[TimeInput] = None
    slot_duration: Optional[int] = None
    buffer_time: Optional[int] = None
    max_appointments_per_slot: Optional[int] = None
    effective_from: Optional[DateType] = None
    effective_to: Optional[DateType] = None


class AvailabilityRuleResponse(StandardizedModel):
    id: str
    profile_id: str
    day_of_week: int
    start_time: TimeType
    end_time: TimeType
    slot_duration: int
    buffer_time: int
    max_appointments_per_slot: int
    is_active: bool
    effective_from: DateType
    effective_to: Optional[DateType] = None
    created_at: DateTimeType
    updated_at: DateTimeType

    model_config = ConfigDict(from_attributes=True)


class SlotPreviewRow(StandardizedModel):
    """
    Preview summary for one (date, rule) pair.

    ``count`` is the whole-window count ``(end - start) // slot_duration`` and
    ignores buffer time. ``bookable_count`` is what generation would actually
    produce for the same rule and date.
    """

    date: DateType
    day_of_week: int
    rule_id: str
    start_time: str
    end_time: str
    count: int
    bookable_count: int


class TimeSlotResponse(StandardizedModel):
    id: str
    profile_id: str
    service_id: str
    start_time: DateTimeType
    end_time: DateTimeType
    max_reservations: int
    current_reservations: int
    status: str

    model_config = ConfigDict(from_attributes=True)


class SlotGenerationResult(StandardizedModel):
    generated_count: int = 0
    slots: List[TimeSlotResponse] = Field(default_factory=list)
