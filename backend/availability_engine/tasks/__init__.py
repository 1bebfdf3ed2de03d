"""
Celery tasks package for background slot generation.
"""

from .celery_app import celery_app
from .slot_generation import (
    generate_daily_slots,
    generate_slots_for_date,
    generate_upcoming_slots,
)

__all__ = [
    "celery_app",
    "generate_daily_slots",
    "generate_slots_for_date",
    "generate_upcoming_slots",
]
