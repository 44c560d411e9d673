import re
from datetime import datetime, timedelta, timezone

import pytest

from site_issues.utils.time_utils import (
    as_utc,
    end_of_local_day,
    format_duration,
    round_to_minutes,
    start_of_local_day,
    time_difference_ms,
)

MINUTE = 60 * 1000
HOUR = 60 * MINUTE


def _parse_duration(text: str) -> int:
    units = {"d": 24 * 60, "h": 60, "m": 1}
    return sum(int(n) * units[u] for n, u in re.findall(r"(\d+)([dhm])", text))


def test_documented_examples():
    assert format_duration(0) == "0m"
    assert format_duration(90 * MINUTE) == "1h 30m"
    assert format_duration(24 * HOUR) == "1d"
    assert format_duration(25 * HOUR) == "1d 1h"


def test_minutes_hours_and_days():
    assert format_duration(59 * MINUTE) == "59m"
    assert format_duration(60 * MINUTE) == "1h"
    assert format_duration(23 * HOUR + 59 * MINUTE) == "23h 59m"
    assert format_duration(24 * HOUR + 5 * MINUTE) == "1d 5m"
    assert format_duration(2 * 24 * HOUR + 3 * HOUR + 4 * MINUTE) == "2d 3h 4m"


def test_rounds_to_nearest_minute_half_up():
    assert format_duration(29_999) == "0m"
    assert format_duration(30_000) == "1m"
    assert format_duration(59 * MINUTE + 30_000) == "1h"
    assert round_to_minutes(150_000) == 3


def test_formatted_output_keeps_rounded_minutes():
    for minutes in range(0, 5 * 24 * 60, 37):
        assert _parse_duration(format_duration(minutes * MINUTE)) == minutes


def test_negative_duration_rejected():
    with pytest.raises(ValueError):
        format_duration(-1)


def test_as_utc_treats_naive_as_utc():
    naive = datetime(2024, 3, 1, 12, 0)
    assert as_utc(naive) == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    assert as_utc(None) is None

    plus_two = datetime(2024, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert as_utc(plus_two).hour == 12


def test_time_difference_mixes_naive_and_aware():
    start = datetime(2024, 3, 1, 12, 0)
    end = datetime(2024, 3, 1, 13, 30, tzinfo=timezone.utc)
    assert time_difference_ms(start, end) == 90 * MINUTE
    assert time_difference_ms(end, start) == -90 * MINUTE


def test_local_day_bounds_contain_now():
    now = datetime.now(timezone.utc)
    start = start_of_local_day(now)
    end = end_of_local_day(now)

    assert start <= now < end
    assert start.astimezone().hour == 0
    assert start.astimezone().minute == 0
