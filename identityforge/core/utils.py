"""
Utility functions for IdentityForge.

All stored timestamps are integer milliseconds since the epoch.
"""

import time
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DAY_MS = 86_400_000
WEEK_DAYS = 7


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def start_of_day_ms(now: int) -> int:
    """
    Floor an epoch-millisecond value to its day boundary.

    Works on the raw epoch value, so the boundary is UTC midnight
    regardless of display timezone.

    Examples:
        86_400_000 + 5 -> 86_400_000
        2000 -> 0
    """
    return now - (now % DAY_MS)


def window_start_ms(now: int, days: int = WEEK_DAYS) -> int:
    """Start of the trailing window of `days` days ending at `now`."""
    return now - days * DAY_MS


def format_timestamp(ms: Optional[int], tz_name: str = "UTC") -> str:
    """
    Render epoch milliseconds for display.

    Args:
        ms: Epoch milliseconds, or None
        tz_name: IANA timezone name; unknown names fall back to UTC

    Returns:
        String like "2024-05-01 07:30:12" or "-" when ms is None
    """
    if ms is None:
        return "-"

    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        tz = timezone.utc

    return datetime.fromtimestamp(ms / 1000, tz=tz).strftime("%Y-%m-%d %H:%M:%S")


def format_age_human(hours: float) -> str:
    """
    Convert hours to human-readable age format.

    Examples:
        0.5 -> "30m"
        2.5 -> "2h 30m"
        25 -> "1d 1h"
        750 -> "1mo 1d"

    Args:
        hours: Age in hours

    Returns:
        Human-readable string like "1y 6mo 7d" or "2h 30m"
    """
    if hours <= 0:
        return "just now"

    total_minutes = int(hours * 60)

    MINUTES_PER_HOUR = 60
    MINUTES_PER_DAY = 60 * 24
    MINUTES_PER_MONTH = MINUTES_PER_DAY * 30  # Approximate
    MINUTES_PER_YEAR = MINUTES_PER_DAY * 365

    years = total_minutes // MINUTES_PER_YEAR
    remaining = total_minutes % MINUTES_PER_YEAR

    months = remaining // MINUTES_PER_MONTH
    remaining = remaining % MINUTES_PER_MONTH

    days = remaining // MINUTES_PER_DAY
    remaining = remaining % MINUTES_PER_DAY

    hours_part = remaining // MINUTES_PER_HOUR
    minutes_part = remaining % MINUTES_PER_HOUR

    parts = []

    if years > 0:
        parts.append(f"{years}y")
        if months > 0:
            parts.append(f"{months}mo")
    elif months > 0:
        parts.append(f"{months}mo")
        if days > 0:
            parts.append(f"{days}d")
    elif days > 0:
        parts.append(f"{days}d")
        if hours_part > 0:
            parts.append(f"{hours_part}h")
    elif hours_part > 0:
        parts.append(f"{hours_part}h")
        if minutes_part > 0:
            parts.append(f"{minutes_part}m")
    else:
        parts.append(f"{minutes_part}m")

    return " ".join(parts)


def format_since(then_ms: Optional[int], now: int) -> str:
    """
    Describe how long ago `then_ms` was relative to `now`.

    Returns "never" when there is no timestamp.
    """
    if then_ms is None:
        return "never"

    hours = (now - then_ms) / 3_600_000
    human = format_age_human(hours)
    return human if human == "just now" else f"{human} ago"
