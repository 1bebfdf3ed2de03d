# backend/availability_engine/repositories/factory.py
"""
Repository Factory for the availability engine

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .availability_rule_repository import AvailabilityRuleRepository
    from .time_slot_repository import TimeSlotRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation so services can swap implementations
    (tests inject mocks built from the same specs).
    """

    @staticmethod
    def create_availability_rule_repository(db: Session) -> "AvailabilityRuleRepository":
        """Create repository for availability rules."""
        from .availability_rule_repository import AvailabilityRuleRepository

        return AvailabilityRuleRepository(db)

    @staticmethod
    def create_time_slot_repository(db: Session) -> "TimeSlotRepository":
        """Create repository for generated time slots."""
        from .time_slot_repository import TimeSlotRepository

        return TimeSlotRepository(db)
