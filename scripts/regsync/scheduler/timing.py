"""
First-firing computation for the daily and weekly jobs.

All times are UTC. Day indices use 0=Sunday, matching the scheduler config.
"""

from datetime import datetime, timedelta
from typing import Tuple

DAY_NAMES = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]


def parse_time(time_str: str) -> Tuple[int, int]:
    """Parse 'HH:MM' string to (hour, minute) tuple."""
    parts = str(time_str).split(":")
    hour = int(parts[0])
    minute = int(parts[1]) if len(parts) > 1 else 0
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid time of day: {time_str}")
    return hour, minute


def day_index(day) -> int:
    """Convert a day name (or index) to 0=Sunday..6=Saturday."""
    if isinstance(day, int):
        if not 0 <= day <= 6:
            raise ValueError(f"Invalid day index: {day}")
        return day
    name = str(day).strip().lower()
    for i, full in enumerate(DAY_NAMES):
        if name == full or name == full[:3]:
            return i
    raise ValueError(f"Invalid day of week: {day}")


def _sunday_index(now: datetime) -> int:
    # datetime.weekday() is 0=Monday
    return (now.weekday() + 1) % 7


def next_daily_run(now: datetime, hour: int, minute: int) -> datetime:
    """Next occurrence of hour:minute; tomorrow if today's has already passed."""
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if now > target:
        target += timedelta(days=1)
    return target


def next_weekly_run(now: datetime, day: int, hour: int, minute: int) -> datetime:
    """Next occurrence of (day, hour:minute) with day 0=Sunday."""
    days_until = (day - _sunday_index(now) + 7) % 7
    target = (now + timedelta(days=days_until)).replace(
        hour=hour, minute=minute, second=0, microsecond=0
    )
    if days_until == 0 and now > target:
        target += timedelta(days=7)
    return target
