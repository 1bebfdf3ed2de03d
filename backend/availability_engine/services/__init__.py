from .availability_engine import AvailabilityEngine
from .base import BaseService
from .rule_validator import RuleValidator
from .slot_expander import ExpandedSlot, SlotExpander

__all__ = ["AvailabilityEngine", "BaseService", "ExpandedSlot", "RuleValidator", "SlotExpander"]
