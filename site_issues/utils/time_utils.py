"""Timestamp helpers and the human readable duration formatter."""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

MS_PER_MINUTE = 60 * 1000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a datetime to an aware UTC value.

    Naive values (e.g. read back from SQLite) are taken to already be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_local_day(now: Optional[datetime] = None) -> datetime:
    """Midnight of the server's local calendar day, expressed in UTC."""
    local_now = (now or utc_now()).astimezone()
    midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


def end_of_local_day(now: Optional[datetime] = None) -> datetime:
    # Exclusive upper bound of the local calendar day
    start_local = start_of_local_day(now).astimezone()
    next_day = (start_local + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return next_day.astimezone(timezone.utc)


def time_difference_ms(start: datetime, end: datetime) -> float:
    """Elapsed milliseconds from `start` to `end` (negative if end is earlier)."""
    return (as_utc(end) - as_utc(start)).total_seconds() * 1000


def round_to_minutes(milliseconds: float) -> int:
    """Round a millisecond duration to the nearest whole minute, halves rounding up."""
    return math.floor(milliseconds / MS_PER_MINUTE + 0.5)


def format_duration(milliseconds: float) -> str:
    """
    Format a duration in milliseconds as a compact "Xd Yh Zm" string.

    Examples:
        0 -> "0m", 90 minutes -> "1h 30m", 24 hours -> "1d", 25 hours -> "1d 1h"

    Raises:
        ValueError: if `milliseconds` is negative
    """
    if milliseconds < 0:
        raise ValueError(f"Duration must not be negative, got {milliseconds}ms")

    total_minutes = round_to_minutes(milliseconds)

    if total_minutes < 60:
        return f"{total_minutes}m"

    total_hours, remaining_minutes = divmod(total_minutes, 60)

    if total_hours < 24:
        return f"{total_hours}h {remaining_minutes}m" if remaining_minutes else f"{total_hours}h"

    days, remaining_hours = divmod(total_hours, 24)

    result = f"{days}d"
    if remaining_hours:
        result += f" {remaining_hours}h"
    if remaining_minutes:
        result += f" {remaining_minutes}m"

    return result
