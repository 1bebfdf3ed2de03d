# backend/availability_engine/tasks/slot_generation.py
"""
Background slot generation.

Workers call the same engine operations as request handlers. Generation is
idempotent per (profile, service, start_time), so retries and overlapping
schedules never duplicate slots.
"""

from datetime import date, datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional

from ..core.config import settings
from ..core.exceptions import RepositoryException
from ..database import get_db_session
from ..services.availability_engine import AvailabilityEngine
from .celery_app import TASK_SOFT_TIME_LIMIT_S, celery_app

logger = logging.getLogger(__name__)

# Leave headroom before the soft time limit for the final commit
_DEADLINE_MARGIN_S = 30


@celery_app.task(
    name="slot_generation.generate_slots_for_date",
    autoretry_for=(RepositoryException,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def generate_slots_for_date(profile_id: str, service_id: str, target_date: str) -> Dict[str, Any]:
    """Generate slots for one ISO calendar date."""
    day = date.fromisoformat(target_date)
    with get_db_session() as db:
        result = AvailabilityEngine(db).generate_slots_for_date(profile_id, service_id, day)

    logger.info(
        "[SLOT-GEN] Generated %d slots for profile %s on %s",
        result.generated_count,
        profile_id,
        target_date,
    )
    return {
        "profile_id": profile_id,
        "service_id": service_id,
        "target_date": target_date,
        "generated_count": result.generated_count,
    }


@celery_app.task(
    name="slot_generation.generate_upcoming_slots",
    autoretry_for=(RepositoryException,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def generate_upcoming_slots(
    profile_id: str,
    service_id: str,
    days: Optional[int] = None,
    start_date: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Generate slots for the lookahead window starting tomorrow (or ``start_date``).

    Args:
        profile_id: Profile whose rules are expanded
        service_id: Service the slots are booked against
        days: Window length, defaults to SLOT_GENERATION_LOOKAHEAD_DAYS
        start_date: ISO date overriding "tomorrow"
    """
    window_days = days or settings.slot_generation_lookahead_days
    first_day = (
        date.fromisoformat(start_date) if start_date else date.today() + timedelta(days=1)
    )
    last_day = first_day + timedelta(days=window_days - 1)
    deadline = datetime.now(timezone.utc) + timedelta(
        seconds=TASK_SOFT_TIME_LIMIT_S - _DEADLINE_MARGIN_S
    )

    with get_db_session() as db:
        result = AvailabilityEngine(db).generate_slots_for_range(
            profile_id, service_id, first_day, last_day, deadline=deadline
        )

    logger.info(
        "[SLOT-GEN] Generated %d slots for profile %s between %s and %s",
        result.generated_count,
        profile_id,
        first_day.isoformat(),
        last_day.isoformat(),
    )
    return {
        "profile_id": profile_id,
        "service_id": service_id,
        "start_date": first_day.isoformat(),
        "end_date": last_day.isoformat(),
        "generated_count": result.generated_count,
    }


@celery_app.task(name="slot_generation.generate_daily_slots")
def generate_daily_slots(target_date: Optional[str] = None) -> Dict[str, Any]:
    """
    Beat entry point: queue tomorrow's generation for every configured target.

    Each (profile, service) pair gets its own generate_slots_for_date task so
    one failing profile retries on its own without holding up the others.
    """
    day = target_date or (date.today() + timedelta(days=1)).isoformat()
    targets = settings.slot_generation_target_pairs
    if not targets:
        logger.warning("[SLOT-GEN] No SLOT_GENERATION_TARGETS configured, nothing to schedule")

    for profile_id, service_id in targets:
        generate_slots_for_date.delay(profile_id, service_id, day)

    logger.info("[SLOT-GEN] Queued slot generation for %d targets on %s", len(targets), day)
    return {"target_date": day, "scheduled": len(targets)}
