"""Clock-time helpers. Times of day are carried as minutes after midnight (floats)."""
from datetime import date, datetime, timedelta
from typing import Optional

from .errors import InputError

MINUTES_PER_DAY = 24 * 60


def parse_clock(value: str) -> int:
    """'07:45' -> 465. Raises InputError for anything that is not a valid HH:MM."""
    try:
        hours_text, minutes_text = value.strip().split(":")
        hours, minutes = int(hours_text), int(minutes_text)
    except (AttributeError, ValueError):
        raise InputError(f"Invalid clock time {value!r}, expected HH:MM") from None

    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise InputError(f"Invalid clock time {value!r}, expected HH:MM")
    return hours * 60 + minutes


def format_clock(minutes: float) -> str:
    """465.4 -> '07:45'. Rounds to the nearest minute and wraps around midnight."""
    total = int(round(minutes)) % MINUTES_PER_DAY
    return f"{total // 60:02d}:{total % 60:02d}"


def format_duration(minutes: float) -> str:
    """65 -> '1h 5m', 12.4 -> '12m'."""
    total = int(round(minutes))
    hours, mins = divmod(total, 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def clock_to_datetime(minutes: float, day: Optional[date] = None) -> datetime:
    """
    Instant for a clock time on `day` (today by default), used as the
    oracle's target departure instant. Seconds are truncated so identical
    clock readings map to identical instants.
    """
    day = day or date.today()
    whole_minutes = int(minutes // 1)
    return datetime.combine(day, datetime.min.time()) + timedelta(minutes=whole_minutes)
