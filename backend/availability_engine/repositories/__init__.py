# backend/availability_engine/repositories/__init__.py
"""
Repository Pattern Implementation for the availability engine

Key Components:
- BaseRepository: Foundation for all repositories with generic CRUD operations
- IRepository: Interface defining required methods for all repositories
- RepositoryFactory: Factory for creating repository instances
- AvailabilityRuleRepository: Rule store (by id, by profile, by profile + day)
- TimeSlotRepository: Slot store (bulk insert, existing-start lookup)

Usage:
    from availability_engine.repositories import RepositoryFactory

    rule_repository = RepositoryFactory.create_availability_rule_repository(db)
    rules = rule_repository.find_by_day_of_week(profile_id, 1)
"""

from .availability_rule_repository import AvailabilityRuleRepository
from .base_repository import BaseRepository, IRepository
from .factory import RepositoryFactory
from .time_slot_repository import TimeSlotRepository

__all__ = [
    "AvailabilityRuleRepository",
    "BaseRepository",
    "IRepository",
    "RepositoryFactory",
    "TimeSlotRepository",
]
