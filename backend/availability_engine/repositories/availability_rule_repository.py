# backend/availability_engine/repositories/availability_rule_repository.py
"""
AvailabilityRuleRepository - recurring weekly availability rules.

Read paths used by the engine:
- by id (update/delete/deactivate)
- by profile (preview and generation)
- by profile + day of week (overlap validation)
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Query, Session

from ..models.availability_rule import AvailabilityRule
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRuleRepository(BaseRepository[AvailabilityRule]):
    """Data access for AvailabilityRule rows."""

    def __init__(self, db: Session):
        super().__init__(db, AvailabilityRule)

    def _profile_query(self, profile_id: str, active_only: bool) -> Query:
        query = self._build_query().filter(AvailabilityRule.profile_id == profile_id)
        if active_only:
            query = query.filter(AvailabilityRule.is_active.is_(True))
        return query

    def find_by_profile_id(
        self, profile_id: str, active_only: bool = True
    ) -> List[AvailabilityRule]:
        """
        All rules for a profile ordered by day and start time.

        Args:
            profile_id: Owning profile
            active_only: Exclude deactivated rules
        """
        with self._db_errors(f"get availability rules for profile {profile_id}"):
            return (
                self._profile_query(profile_id, active_only)
                .order_by(AvailabilityRule.day_of_week, AvailabilityRule.start_time)
                .all()
            )

    def find_by_day_of_week(
        self, profile_id: str, day_of_week: int, active_only: bool = True
    ) -> List[AvailabilityRule]:
        """Rules for one profile and day, ordered by start time."""
        with self._db_errors(f"get availability rules for profile {profile_id} day {day_of_week}"):
            return (
                self._profile_query(profile_id, active_only)
                .filter(AvailabilityRule.day_of_week == day_of_week)
                .order_by(AvailabilityRule.start_time)
                .all()
            )

    def deactivate(self, rule_id: str) -> Optional[AvailabilityRule]:
        """Soft-delete a rule. Returns None if it does not exist."""
        return self.update(rule_id, is_active=False)
