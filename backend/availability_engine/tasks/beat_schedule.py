# backend/availability_engine/tasks/beat_schedule.py
"""
Celery Beat schedule for slot generation.

One daily entry fans out over the configured (profile, service) targets and
generates tomorrow's slots for each. The cron comes from
``SLOT_GENERATION_CRON`` (midnight UTC by default).
"""

import logging
from typing import Any, Dict, Optional

from celery.schedules import crontab

from ..core.config import settings

logger = logging.getLogger(__name__)

DAILY_SLOT_GENERATION = "daily-slot-generation"

_DEFAULT_CRON = "0 0 * * *"


def _parse_cron_expression(cron_expr: str) -> Any:
    """Convert a five-field cron expression into a Celery crontab schedule."""
    parts = cron_expr.strip().split()
    if len(parts) != 5:
        logger.warning(
            "Invalid SLOT_GENERATION_CRON expression '%s'; falling back to %s",
            cron_expr,
            _DEFAULT_CRON,
        )
        parts = _DEFAULT_CRON.split()
    minute, hour, day_of_month, month_of_year, day_of_week = parts
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        day_of_week=day_of_week,
    )


def get_beat_schedule(cron_expr: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
    """
    Build the periodic task schedule.

    Args:
        cron_expr: Overrides SLOT_GENERATION_CRON

    Returns:
        Mapping of entry name to Celery beat configuration dict
    """
    # Deferred: celery_app calls this while it is still being imported
    from .celery_app import SLOT_GENERATION_QUEUE

    return {
        DAILY_SLOT_GENERATION: {
            "task": "slot_generation.generate_daily_slots",
            "schedule": _parse_cron_expression(cron_expr or settings.slot_generation_cron),
            "args": (),
            "kwargs": {},
            "options": {"queue": SLOT_GENERATION_QUEUE},
        },
    }
