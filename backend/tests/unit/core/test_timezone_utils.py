from datetime import date

import pytest

from availability_engine.core.timezone_utils import (
    fixed_offset_resolver,
    local_to_utc_offset_minutes,
    timezone_offset_resolver,
)


@pytest.mark.parametrize(
    "tz_name,day,expected",
    [
        ("America/Lima", date(2024, 1, 1), 300),
        ("America/Lima", date(2024, 7, 1), 300),
        ("America/New_York", date(2024, 1, 15), 300),
        ("America/New_York", date(2024, 7, 15), 240),
        ("UTC", date(2024, 7, 15), 0),
        ("Asia/Kolkata", date(2024, 7, 15), -330),
    ],
)
def test_local_to_utc_offset(tz_name, day, expected):
    assert local_to_utc_offset_minutes(tz_name, day) == expected


def test_dst_switch_day_uses_midday_offset():
    # 2024-03-10: New York springs forward at 02:00
    assert local_to_utc_offset_minutes("America/New_York", date(2024, 3, 10)) == 240


def test_fixed_resolver_ignores_profile_and_date():
    resolve = fixed_offset_resolver(-60)
    assert resolve("a", date(2024, 1, 1)) == -60
    assert resolve("b", date(2030, 6, 1)) == -60


def test_fixed_resolver_defaults_to_settings(monkeypatch):
    from availability_engine.core import timezone_utils

    monkeypatch.setattr(timezone_utils.settings, "local_to_utc_offset_minutes", 180)
    assert fixed_offset_resolver()("any", date(2024, 1, 1)) == 180


def test_timezone_resolver_falls_back_for_unknown_profiles():
    resolve = timezone_offset_resolver({"ny": "America/New_York"}, default_offset_minutes=300)

    assert resolve("ny", date(2024, 7, 1)) == 240
    assert resolve("unknown", date(2024, 7, 1)) == 300
