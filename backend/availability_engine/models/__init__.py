"""
Database models for the availability engine.

- AvailabilityRule: recurring weekly availability windows
- TimeSlot: concrete slots generated from those rules
"""

from .availability_rule import AvailabilityRule
from .time_slot import TimeSlot

__all__ = ["AvailabilityRule", "TimeSlot"]
