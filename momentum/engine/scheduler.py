"""Reminder trigger-time resolution and do-not-disturb shifting."""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List

from momentum.db.models import ActiveReminder, AnchorEvent, DNDWindow, Schedule, SmartReminder
from momentum.utils.constants import (
    DEFAULT_TIMEZONE,
    DND_SHIFTED,
    LATER_TODAY_DND_MARGIN_MINUTES,
    LATER_TODAY_FALLBACK_HOURS,
    LATER_TODAY_HOURS,
)
from momentum.utils.time_utils import (
    at_time,
    dnd_bounds,
    dnd_window_for,
    is_in_dnd_window,
    now_in,
    weekday_name,
)

logger = logging.getLogger(__name__)

SCHEDULABLE_STATUSES = ("active", "snoozed", "paused")


def is_paused(pause_until: datetime | None, now: datetime) -> bool:
    """Check if all reminders are globally paused."""
    return pause_until is not None and now < pause_until


def base_trigger_time(
    reminder: SmartReminder, anchor: AnchorEvent, now: datetime
) -> datetime:
    """Today's anchor start plus the reminder offset."""
    return at_time(now, anchor.start_time) + timedelta(minutes=reminder.offset_minutes)


def resolve_trigger_time(
    reminder: SmartReminder, anchor: AnchorEvent, now: datetime
) -> datetime:
    """Trigger time before DND shifting. A snooze/pause target wins."""
    if reminder.status in ("snoozed", "paused") and reminder.snoozed_until:
        return reminder.snoozed_until
    return base_trigger_time(reminder, anchor, now)


def shift_out_of_dnd(
    trigger_time: datetime, dnd_windows: Iterable[DNDWindow], now: datetime
) -> tuple[datetime, str | None]:
    """Move a trigger that lands in today's DND window to the window end.

    The window end is taken relative to the trigger, so a 06:50 trigger in a
    23:00-07:00 window moves to 07:00 the same morning.

    Returns:
        Tuple of (trigger time, shifted reason or None)
    """
    window = dnd_window_for(dnd_windows, weekday_name(now))
    if window is None or not window.start_time or not window.end_time:
        return trigger_time, None

    minute = trigger_time.hour * 60 + trigger_time.minute
    if not is_in_dnd_window(minute, window.start_time, window.end_time):
        return trigger_time, None

    _, end = dnd_bounds(window, trigger_time)
    return end, DND_SHIFTED


def active_reminders(
    schedule: Schedule, now: datetime | None = None, include_stale: bool = False
) -> List[ActiveReminder]:
    """Reminders that still have to fire, ordered by trigger time.

    Takes into account:
    - Global pause (nothing fires while it lasts)
    - Status (only active, snoozed and paused reminders)
    - Deleted anchors (their reminders are skipped)
    - Snooze/pause targets
    - Stale active reminders (trigger already passed today)
    - Today's DND window

    Args:
        schedule: Anchors, DND windows, reminders and the pause timestamp
        now: Current time, defaults to now in UTC
        include_stale: Keep active reminders whose trigger already passed

    Returns:
        New ActiveReminder values; the schedule is not modified
    """
    if now is None:
        now = now_in(DEFAULT_TIMEZONE)

    if is_paused(schedule.pause_until, now):
        return []

    anchors = {anchor.id: anchor for anchor in schedule.anchors}
    resolved = []

    for reminder in schedule.reminders:
        if reminder.status not in SCHEDULABLE_STATUSES:
            continue

        anchor = anchors.get(reminder.anchor_id)
        if anchor is None:
            logger.debug(f"Reminder {reminder.id} points at missing anchor {reminder.anchor_id}")
            continue

        trigger_time = resolve_trigger_time(reminder, anchor, now)

        if not include_stale and reminder.status == "active" and trigger_time < now:
            continue

        trigger_time, shifted_reason = shift_out_of_dnd(trigger_time, schedule.dnd_windows, now)

        resolved.append(
            ActiveReminder(
                reminder=reminder,
                anchor=anchor,
                trigger_time=trigger_time,
                shifted_reason=shifted_reason,
            )
        )

    resolved.sort(key=lambda r: r.trigger_time)
    return resolved


def due_reminders(
    schedule: Schedule, now: datetime, lookback: timedelta
) -> List[ActiveReminder]:
    """Reminders whose trigger time arrived within ``lookback`` and were not sent yet.

    The window applies to the trigger after any DND shift, so a reminder
    pushed to the end of a DND window is due when that window ends.
    """
    since = now - lookback
    return [
        active
        for active in active_reminders(schedule, now, include_stale=True)
        if since <= active.trigger_time <= now
        and (
            active.reminder.last_notified_at is None
            or active.reminder.last_notified_at < active.trigger_time
        )
    ]


def later_today_time(dnd_windows: Iterable[DNDWindow], now: datetime | None = None) -> datetime:
    """Target time for "later today".

    Three hours from now, but no later than 15 minutes before today's DND
    window starts. If that cap leaves nothing in the future, one hour from now.
    """
    if now is None:
        now = now_in(DEFAULT_TIMEZONE)

    later = now + timedelta(hours=LATER_TODAY_HOURS)

    window = dnd_window_for(dnd_windows, weekday_name(now))
    if window is not None and window.start_time:
        dnd_start = at_time(now, window.start_time)
        if dnd_start < now:
            dnd_start += timedelta(days=1)
        cap = dnd_start - timedelta(minutes=LATER_TODAY_DND_MARGIN_MINUTES)
        if later > cap:
            later = cap

    if later <= now:
        later = now + timedelta(hours=LATER_TODAY_FALLBACK_HOURS)

    return later
