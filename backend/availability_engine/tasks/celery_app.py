# backend/availability_engine/tasks/celery_app.py
"""
Celery application for background slot generation.

Broker and result backend come from the environment (or settings), tasks are
JSON-serialized, and everything routes to a dedicated ``slot_generation`` queue.
Beat runs the daily fan-out defined in ``beat_schedule``.
"""

import logging
import os
from typing import Any

from celery import Celery
from celery.signals import setup_logging

from ..core.config import settings

# Soft limit for a single task; range generation stops a bit before it
TASK_SOFT_TIME_LIMIT_S = 300

SLOT_GENERATION_QUEUE = "slot_generation"


def _broker_url() -> str:
    return (
        os.getenv("CELERY_BROKER_URL")
        or os.getenv("REDIS_URL")
        or settings.redis_url
        or "redis://localhost:6379/0"
    )


def create_celery_app() -> Celery:
    broker_url = _broker_url()
    app = Celery(
        "availability_engine",
        broker=broker_url,
        backend=os.getenv("CELERY_RESULT_BACKEND") or broker_url,
        include=["availability_engine.tasks.slot_generation"],
    )
    app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_soft_time_limit=TASK_SOFT_TIME_LIMIT_S,
        task_time_limit=TASK_SOFT_TIME_LIMIT_S * 2,
        # Generation is idempotent, so redelivery after a crash is safe
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        worker_hijack_root_logger=False,
        task_routes={"slot_generation.*": {"queue": SLOT_GENERATION_QUEUE}},
        task_default_queue=SLOT_GENERATION_QUEUE,
    )

    from .beat_schedule import get_beat_schedule

    app.conf.beat_schedule = get_beat_schedule()
    return app


@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Keep Celery from installing its own handlers."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


celery_app = create_celery_app()
