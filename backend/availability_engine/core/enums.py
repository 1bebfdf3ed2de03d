# backend/availability_engine/core/enums.py
"""
Core enums for the availability engine.
"""

from enum import Enum


class TimeSlotStatus(str, Enum):
    """
    Lifecycle status of a generated time slot.

    The engine only ever writes AVAILABLE; the reservation workflow owns
    every later transition.
    """

    AVAILABLE = "available"
    FULL = "full"
    CANCELLED = "cancelled"


class DayOfWeek(int, Enum):
    """Sunday-based day index used by availability rules."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
