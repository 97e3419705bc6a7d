"""Time-of-day arithmetic and do-not-disturb window helpers."""

from datetime import datetime, timedelta
from typing import Iterable, List, Tuple
from zoneinfo import ZoneInfo

from momentum.db.models import DNDWindow
from momentum.utils.constants import DAYS_OF_WEEK, MINUTES_PER_DAY


def now_in(tz: str) -> datetime:
    """Current wall-clock time in the given timezone."""
    return datetime.now(ZoneInfo(tz))


def time_to_minutes(value: str) -> int:
    """Convert an HH:MM string to minutes since midnight.

    Raises:
        ValueError: if the string is not a valid 24-hour time
    """
    try:
        hour_str, minute_str = value.strip().split(":")
        hours, minutes = int(hour_str), int(minute_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")

    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")

    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight to HH:MM, wrapping around 24 hours."""
    hours, mins = divmod(int(minutes) % MINUTES_PER_DAY, 60)
    return f"{hours:02d}:{mins:02d}"


def _as_minutes(value: str | int) -> int:
    if isinstance(value, str):
        return time_to_minutes(value)
    return value


def intervals_overlap(
    start_a: str | int, end_a: str | int, start_b: str | int, end_b: str | int
) -> bool:
    """Check whether two half-open intervals [start, end) overlap.

    Touching intervals such as 09:00-10:00 and 10:00-11:00 do not overlap.
    Accepts HH:MM strings or minute counts.
    """
    return _as_minutes(start_a) < _as_minutes(end_b) and _as_minutes(
        end_a
    ) > _as_minutes(start_b)


def is_in_dnd_window(minute: str | int, start: str | int, end: str | int) -> bool:
    """Check if a time of day falls within a DND window.

    Windows whose end is before their start span midnight (e.g. 23:00 to
    07:00), in which case the check becomes ``minute >= start or minute < end``.
    """
    minute, start, end = _as_minutes(minute), _as_minutes(start), _as_minutes(end)

    if start <= end:
        return start <= minute < end
    return minute >= start or minute < end


def window_segments(start: str | int, end: str | int) -> List[Tuple[int, int]]:
    """Split a window into same-day [start, end) minute ranges.

    An overnight window 23:00-07:00 becomes [(1380, 1440), (0, 420)].
    """
    start, end = _as_minutes(start), _as_minutes(end)

    if start <= end:
        return [(start, end)]
    return [(start, MINUTES_PER_DAY), (0, end)]


def weekday_name(dt: datetime) -> str:
    """Day name ("Monday".."Sunday") for a datetime."""
    return DAYS_OF_WEEK[dt.weekday()]


def at_time(dt: datetime, hhmm: str) -> datetime:
    """The same calendar day as ``dt`` at the given wall-clock time."""
    minutes = time_to_minutes(hhmm)
    return dt.replace(hour=minutes // 60, minute=minutes % 60, second=0, microsecond=0)


def dnd_window_for(windows: Iterable[DNDWindow], day: str) -> DNDWindow | None:
    """The DND window configured for a day, if any."""
    for window in windows:
        if window.day == day:
            return window
    return None


def dnd_bounds(window: DNDWindow, now: datetime) -> Tuple[datetime, datetime]:
    """Concrete start and end datetimes of a DND window around ``now``.

    For an overnight window the start moves to yesterday while ``now`` is
    still inside the morning tail, otherwise the end moves to tomorrow.
    """
    start = at_time(now, window.start_time)
    end = at_time(now, window.end_time)

    if end < start:
        if now < end:
            start -= timedelta(days=1)
        else:
            end += timedelta(days=1)

    return start, end


def format_duration(minutes: int) -> str:
    """Format minutes into a human-readable duration.

    Examples:
        15 -> "15 minutes"
        60 -> "1 hour"
        90 -> "1.5 hours"
        1440 -> "1 day"
    """
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    elif minutes < 1440:
        hours = minutes / 60
        if hours == int(hours):
            return f"{int(hours)} hour{'s' if hours != 1 else ''}"
        return f"{hours:.1f} hours"
    else:
        days = minutes / 1440
        if days == int(days):
            return f"{int(days)} day{'s' if days != 1 else ''}"
        return f"{days:.1f} days"


def format_offset(offset_minutes: int) -> str:
    """Describe a reminder offset relative to its anchor.

    Examples:
        0 -> "at the start of"
        -10 -> "10 minutes before"
        5 -> "5 minutes after"
    """
    if offset_minutes == 0:
        return "at the start of"

    minutes = abs(offset_minutes)
    before_or_after = "before" if offset_minutes < 0 else "after"
    return f"{minutes} minute{'s' if minutes != 1 else ''} {before_or_after}"


def format_relative_time(dt: datetime, now: datetime) -> str:
    """Format a datetime relative to now.

    Examples:
        "in 5 minutes"
        "in 2 hours"
        "tomorrow"
        "20 minutes ago"
    """
    total_seconds = (dt - now).total_seconds()

    if total_seconds < 0:
        abs_seconds = abs(total_seconds)
        if abs_seconds < 3600:
            minutes = int(abs_seconds / 60)
            return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
        hours = int(abs_seconds / 3600)
        return f"{hours} hour{'s' if hours != 1 else ''} ago"

    if total_seconds < 3600:
        minutes = int(total_seconds / 60)
        return f"in {minutes} minute{'s' if minutes != 1 else ''}"
    elif total_seconds < 86400:
        hours = int(total_seconds / 3600)
        return f"in {hours} hour{'s' if hours != 1 else ''}"
    elif total_seconds < 172800:  # 2 days
        return "tomorrow"
    else:
        days = int(total_seconds / 86400)
        return f"in {days} days"
