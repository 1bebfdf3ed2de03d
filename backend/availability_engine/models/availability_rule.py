# backend/availability_engine/models/availability_rule.py
"""
Recurring weekly availability rules.

A rule says "profile X takes appointments on day D between start and end,
in slots of N minutes". Rules are expanded into concrete TimeSlot rows by the
slot expander; they are never booked directly.
"""

from datetime import date

from sqlalchemy import Boolean, CheckConstraint, Column, Date, Index, Integer, String, Time

from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime, utc_now


class AvailabilityRule(Base):
    """Weekly availability window for one profile."""

    __tablename__ = "availability_rules"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    profile_id = Column(String(64), nullable=False, index=True)
    # 0 = Sunday ... 6 = Saturday
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    slot_duration = Column(Integer, nullable=False)
    buffer_time = Column(Integer, nullable=False, default=0)
    max_appointments_per_slot = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    effective_from = Column(Date, nullable=False, default=date.today)
    effective_to = Column(Date, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_rules_day_of_week"),
        CheckConstraint("start_time < end_time", name="ck_availability_rules_time_order"),
        CheckConstraint("buffer_time >= 0", name="ck_availability_rules_buffer_nonnegative"),
        Index("idx_availability_rules_profile_day", "profile_id", "day_of_week", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<AvailabilityRule {self.id} day={self.day_of_week} "
            f"{self.start_time}-{self.end_time} active={self.is_active}>"
        )
