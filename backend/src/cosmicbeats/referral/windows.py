"""Date-window arithmetic for quotas, expiration and leaderboards.

All functions take `now` explicitly. Datetimes are naive UTC, matching the
columns they are compared against.
"""

import math
from datetime import datetime, timedelta

ONE_DAY = timedelta(days=1)
ONE_WEEK = timedelta(days=7)


def week_start(now: datetime) -> datetime:
    """Most recent Monday 00:00 at or before `now`."""
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=midnight.weekday())


def week_bounds(now: datetime) -> tuple[datetime, datetime]:
    start = week_start(now)
    return start, start + ONE_WEEK


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def expiration_deadline(created_at: datetime, expiration_days: int) -> datetime:
    return created_at + timedelta(days=expiration_days)


def is_expired(created_at: datetime, now: datetime, expiration_days: int) -> bool:
    """True once `now` has reached the deadline."""
    return expiration_deadline(created_at, expiration_days) <= now


def days_remaining(created_at: datetime, now: datetime, expiration_days: int) -> int:
    """Whole days left before the deadline, rounded up, never negative."""
    left = expiration_deadline(created_at, expiration_days) - now
    return max(0, math.ceil(left / ONE_DAY))
