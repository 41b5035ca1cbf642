"""
Datetime helpers shared by the config resolver and the safety guards.
"""

import math
from datetime import datetime, timezone

SECONDS_PER_DAY = 24 * 60 * 60


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Return an aware datetime; naive values are taken to be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def whole_days_between(later: datetime, earlier: datetime) -> int:
    """Number of whole days elapsed from ``earlier`` to ``later`` (floored)."""
    seconds = (as_utc(later) - as_utc(earlier)).total_seconds()
    return math.floor(seconds / SECONDS_PER_DAY)
