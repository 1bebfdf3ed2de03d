"""
Mutexes serializing availability rule mutations per (profile, day of week).

Overlap validation reads sibling rules and then writes, so two concurrent
writers for the same profile and day could both pass validation. Every
create/update runs inside ``rule_mutation_lock`` for the day keys it touches.

An in-process lock is always taken. When ``RULE_LOCK_REDIS_URL`` is set a
Redis ``SET NX EX`` mutex is taken as well so separate workers serialize too.
"""

from __future__ import annotations

from contextlib import ExitStack, contextmanager
import logging
import threading
import time
from typing import Iterable, Iterator, Optional
import weakref

from redis import Redis

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings
from .exceptions import RuleLockTimeoutException
from .ulid_helper import generate_ulid

logger = logging.getLogger(__name__)

_POLL_INTERVAL_S = 0.05


class _LocalLock:
    """Holder for a threading.Lock, which cannot be weakly referenced itself."""

    __slots__ = ("lock", "__weakref__")

    def __init__(self) -> None:
        self.lock = threading.Lock()


# Entries vanish once no caller holds or waits on the key
_LOCAL_LOCKS: "weakref.WeakValueDictionary[str, _LocalLock]" = weakref.WeakValueDictionary()
_LOCAL_LOCKS_GUARD = threading.Lock()

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()


def rule_lock_key(profile_id: str, day_of_week: int) -> str:
    return f"rule:{profile_id}:{day_of_week}:mutex"


def _namespaced_key(key: str) -> str:
    return f"{settings.rule_lock_namespace}:lock:{key}"


def _get_local_lock(key: str) -> _LocalLock:
    with _LOCAL_LOCKS_GUARD:
        holder = _LOCAL_LOCKS.get(key)
        if holder is None:
            holder = _LocalLock()
            _LOCAL_LOCKS[key] = holder
        return holder


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if not settings.rule_lock_redis_url:
        return None
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.rule_lock_redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            prometheus_metrics.record_rule_lock("acquire", "redis_unavailable")
            logger.warning("rule_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def _acquire_redis(client: Redis, key: str, token: str, deadline: float) -> bool:
    """Spin on SET NX until acquired or the deadline passes. Fails open on Redis errors."""
    redis_key = _namespaced_key(key)
    while True:
        try:
            if client.set(redis_key, token, nx=True, ex=settings.rule_lock_ttl_seconds):
                return True
        except Exception as exc:
            prometheus_metrics.record_rule_lock("acquire", "redis_error")
            logger.warning(
                "rule_lock_redis_acquire_failed",
                extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
            )
            return True
        if time.monotonic() >= deadline:
            return False
        time.sleep(_POLL_INTERVAL_S)


def _release_redis(client: Redis, key: str, token: str) -> None:
    redis_key = _namespaced_key(key)
    try:
        # Only drop the mutex if it is still ours (TTL may have expired and been re-taken)
        if client.get(redis_key) == token:
            client.delete(redis_key)
    except Exception as exc:
        prometheus_metrics.record_rule_lock("release", "error")
        logger.warning(
            "rule_lock_redis_release_failed",
            extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
        )


@contextmanager
def _key_lock(key: str, deadline: float, timeout_s: float) -> Iterator[None]:
    # Strong reference keeps the registry entry alive while this call uses it
    holder = _get_local_lock(key)
    local_lock = holder.lock
    remaining = max(0.0, deadline - time.monotonic())
    if not local_lock.acquire(timeout=remaining):
        prometheus_metrics.record_rule_lock("acquire", "timeout")
        logger.info("Rule lock wait timed out", extra={"lock_key": key})
        raise RuleLockTimeoutException(key, timeout_s)

    try:
        client = _get_sync_redis()
        token = generate_ulid()
        if client is not None and not _acquire_redis(client, key, token, deadline):
            prometheus_metrics.record_rule_lock("acquire", "timeout")
            logger.info("Distributed rule lock wait timed out", extra={"lock_key": key})
            raise RuleLockTimeoutException(key, timeout_s)
        prometheus_metrics.record_rule_lock("acquire", "acquired")
        try:
            yield
        finally:
            if client is not None:
                _release_redis(client, key, token)
            prometheus_metrics.record_rule_lock("release", "released")
    finally:
        local_lock.release()


@contextmanager
def rule_mutation_lock(
    profile_id: str,
    days_of_week: Iterable[int],
    timeout_s: Optional[float] = None,
) -> Iterator[None]:
    """
    Hold the mutation lock for every (profile_id, day) pair until the block exits.

    Keys are taken in sorted order so two writers touching the same pair of days
    cannot deadlock.

    Raises:
        RuleLockTimeoutException: If any key cannot be taken within the timeout
    """
    timeout = settings.rule_lock_timeout_seconds if timeout_s is None else timeout_s
    deadline = time.monotonic() + timeout
    keys = sorted({rule_lock_key(profile_id, day) for day in days_of_week})

    with ExitStack() as stack:
        for key in keys:
            stack.enter_context(_key_lock(key, deadline, timeout))
        yield
