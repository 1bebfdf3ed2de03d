# backend/availability_engine/models/time_slot.py
"""
Concrete bookable slots produced by expanding availability rules.
"""

from sqlalchemy import Column, Index, Integer, String, UniqueConstraint

from ..core.enums import TimeSlotStatus
from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime, utc_now


class TimeSlot(Base):
    """One bookable instance of a rule on a calendar date (UTC instants)."""

    __tablename__ = "time_slots"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    profile_id = Column(String(64), nullable=False, index=True)
    service_id = Column(String(64), nullable=False, index=True)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)
    # Copied from the rule at generation time, not a live reference
    max_reservations = Column(Integer, nullable=False, default=1)
    current_reservations = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=TimeSlotStatus.AVAILABLE.value)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint(
            "profile_id", "service_id", "start_time", name="uq_time_slots_profile_service_start"
        ),
        Index("idx_time_slots_profile_start", "profile_id", "start_time"),
        Index("idx_time_slots_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<TimeSlot {self.start_time.isoformat()}-{self.end_time.isoformat()} {self.status}>"
