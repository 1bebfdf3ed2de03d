"""Tests for per-(profile, day) rule mutation locks."""

import gc
import threading
from unittest.mock import MagicMock, patch

import pytest

from availability_engine.core import rule_lock
from availability_engine.core.exceptions import RuleLockTimeoutException
from availability_engine.core.rule_lock import rule_lock_key, rule_mutation_lock
from availability_engine.monitoring.prometheus_metrics import REGISTRY


def _lock_events(action: str, outcome: str) -> float:
    return (
        REGISTRY.get_sample_value(
            "availability_rule_lock_events_total", {"action": action, "outcome": outcome}
        )
        or 0.0
    )


def test_lock_key_format():
    assert rule_lock_key("01ABC", 3) == "rule:01ABC:3:mutex"


def test_second_writer_times_out_while_first_holds_the_day():
    holding = threading.Event()
    release = threading.Event()

    def holder():
        with rule_mutation_lock("profile-lock-1", [1]):
            holding.set()
            release.wait(timeout=5)

    thread = threading.Thread(target=holder)
    thread.start()
    try:
        assert holding.wait(timeout=5)
        with pytest.raises(RuleLockTimeoutException) as exc_info:
            with rule_mutation_lock("profile-lock-1", [1], timeout_s=0.05):
                pass
        assert exc_info.value.code == "RULE_LOCK_TIMEOUT"
        assert exc_info.value.details["lock_key"] == "rule:profile-lock-1:1:mutex"
    finally:
        release.set()
        thread.join(timeout=5)


def test_other_days_and_profiles_are_independent():
    with rule_mutation_lock("profile-lock-2", [1]):
        with rule_mutation_lock("profile-lock-2", [2], timeout_s=0.05):
            pass
        with rule_mutation_lock("profile-lock-3", [1], timeout_s=0.05):
            pass


def test_lock_is_released_after_exception():
    with pytest.raises(RuntimeError):
        with rule_mutation_lock("profile-lock-4", [5]):
            raise RuntimeError("boom")

    with rule_mutation_lock("profile-lock-4", [5], timeout_s=0.05):
        pass


def test_local_lock_entries_are_dropped_after_release():
    key = rule_lock_key("profile-lock-6", 3)

    with rule_mutation_lock("profile-lock-6", [3]):
        assert key in rule_lock._LOCAL_LOCKS

    gc.collect()
    assert key not in rule_lock._LOCAL_LOCKS


def test_acquire_timeout_and_release_are_counted():
    acquired = _lock_events("acquire", "acquired")
    released = _lock_events("release", "released")
    timeouts = _lock_events("acquire", "timeout")

    with rule_mutation_lock("profile-lock-7", [1, 2]):
        with pytest.raises(RuleLockTimeoutException):
            with rule_mutation_lock("profile-lock-7", [2], timeout_s=0.01):
                pass

    assert _lock_events("acquire", "acquired") == acquired + 2
    assert _lock_events("release", "released") == released + 2
    assert _lock_events("acquire", "timeout") == timeouts + 1


def test_multi_day_lock_covers_every_day():
    with rule_mutation_lock("profile-lock-5", [4, 2]):
        for day in (2, 4):
            with pytest.raises(RuleLockTimeoutException):
                with rule_mutation_lock("profile-lock-5", [day], timeout_s=0.01):
                    pass


class TestRedisMutex:
    def test_acquires_and_releases_own_token(self):
        client = MagicMock()
        client.set.return_value = True
        client.get.side_effect = lambda key: client.set.call_args.args[1]

        with patch.object(rule_lock, "_get_sync_redis", return_value=client):
            with rule_mutation_lock("profile-redis-1", [1]):
                pass

        redis_key = client.set.call_args.args[0]
        assert redis_key.endswith(":lock:rule:profile-redis-1:1:mutex")
        assert client.set.call_args.kwargs["nx"] is True
        client.delete.assert_called_once_with(redis_key)

    def test_does_not_delete_foreign_token(self):
        client = MagicMock()
        client.set.return_value = True
        client.get.return_value = "someone-else"

        with patch.object(rule_lock, "_get_sync_redis", return_value=client):
            with rule_mutation_lock("profile-redis-2", [1]):
                pass

        client.delete.assert_not_called()

    def test_times_out_when_key_is_held_elsewhere(self):
        client = MagicMock()
        client.set.return_value = False

        with patch.object(rule_lock, "_get_sync_redis", return_value=client):
            with pytest.raises(RuleLockTimeoutException):
                with rule_mutation_lock("profile-redis-3", [1], timeout_s=0.01):
                    pass

        # The in-process lock must not stay held after the Redis wait failed
        with rule_mutation_lock("profile-redis-3", [1], timeout_s=0.01):
            pass

    def test_redis_errors_fail_open(self):
        redis_errors = _lock_events("acquire", "redis_error")
        release_errors = _lock_events("release", "error")
        client = MagicMock()
        client.set.side_effect = ConnectionError("redis down")
        client.get.side_effect = ConnectionError("redis down")

        with patch.object(rule_lock, "_get_sync_redis", return_value=client):
            with rule_mutation_lock("profile-redis-4", [1], timeout_s=0.01):
                entered = True

        assert entered
        assert _lock_events("acquire", "redis_error") == redis_errors + 1
        assert _lock_events("release", "error") == release_errors + 1
