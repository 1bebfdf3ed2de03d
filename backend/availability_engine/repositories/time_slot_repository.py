# backend/availability_engine/repositories/time_slot_repository.py
"""
TimeSlotRepository - generated bookable slots.

The engine only inserts slots (in batches) and checks which start times already
exist; status and reservation counters belong to the booking workflow.
"""

from datetime import datetime
import logging
from typing import List, Optional, Set

from sqlalchemy.orm import Session

from ..models.time_slot import TimeSlot
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class TimeSlotRepository(BaseRepository[TimeSlot]):
    """Data access for TimeSlot rows."""

    def __init__(self, db: Session):
        super().__init__(db, TimeSlot)

    def find_existing_start_times(
        self,
        profile_id: str,
        service_id: str,
        window_start: datetime,
        window_end: datetime,
    ) -> Set[datetime]:
        """
        Start instants already stored for a profile/service in [window_start, window_end).

        Used to keep generation idempotent per (profile, service, start_time).
        """
        with self._db_errors(f"check existing slots for profile {profile_id}"):
            rows = (
                self.db.query(TimeSlot.start_time)
                .filter(
                    TimeSlot.profile_id == profile_id,
                    TimeSlot.service_id == service_id,
                    TimeSlot.start_time >= window_start,
                    TimeSlot.start_time < window_end,
                )
                .all()
            )
        return {row[0] for row in rows}

    def find_by_profile_and_range(
        self,
        profile_id: str,
        range_start: datetime,
        range_end: datetime,
        service_id: Optional[str] = None,
    ) -> List[TimeSlot]:
        """Slots starting in [range_start, range_end), ordered by start time."""
        with self._db_errors(f"get time slots for profile {profile_id}"):
            query = self._build_query().filter(
                TimeSlot.profile_id == profile_id,
                TimeSlot.start_time >= range_start,
                TimeSlot.start_time < range_end,
            )
            if service_id is not None:
                query = query.filter(TimeSlot.service_id == service_id)
            return query.order_by(TimeSlot.start_time).all()
