"""Reminder status transitions and the undo log.

Every transition returns a new reminder list; the list passed in is never
modified. Unknown reminder ids are a no-op with an empty message.
"""

import copy
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Iterable, List

from dateutil.relativedelta import relativedelta

from momentum.db.models import ChangeEvent, DNDWindow, Schedule, SmartReminder
from momentum.engine.scheduler import later_today_time
from momentum.utils.constants import CHANGE_LOG_LIMIT, PAUSE_RESUME_HOUR
from momentum.utils.time_utils import format_duration

logger = logging.getLogger(__name__)

ACTIONS = ("done", "snooze", "ignore", "later", "pause", "toggle_lock", "revert_exploration")


@dataclass
class TransitionResult:
    """Reminders after a transition plus a message for the undo log."""

    reminders: List[SmartReminder]
    message: str = ""
    found: bool = True

    @property
    def changed(self) -> bool:
        return bool(self.message)


def _apply(
    reminders: List[SmartReminder],
    reminder_id: str,
    change: Callable[[SmartReminder], SmartReminder | None],
    describe: Callable[[SmartReminder], str],
) -> TransitionResult:
    target = next((r for r in reminders if r.id == reminder_id), None)
    if target is None:
        logger.debug(f"No reminder {reminder_id}, transition skipped")
        return TransitionResult(list(reminders), found=False)

    updated = change(target)
    if updated is None:
        return TransitionResult(list(reminders))

    return TransitionResult(
        [updated if r.id == reminder_id else r for r in reminders],
        describe(target),
    )


def snooze(
    reminders: List[SmartReminder], reminder_id: str, minutes: int, now: datetime
) -> TransitionResult:
    """Snooze for ``minutes``, remembering the duration."""
    return _apply(
        reminders,
        reminder_id,
        lambda r: replace(
            r,
            status="snoozed",
            snoozed_until=now + timedelta(minutes=minutes),
            snooze_history=r.snooze_history + [minutes],
            success_history=r.success_history + ["snoozed"],
            last_interaction=now,
        ),
        lambda r: f'Snoozed "{r.message}" for {format_duration(minutes)}.',
    )


def mark_done(
    reminders: List[SmartReminder], reminder_id: str, now: datetime
) -> TransitionResult:
    return _apply(
        reminders,
        reminder_id,
        lambda r: replace(
            r,
            status="done",
            success_history=r.success_history + ["success"],
            last_interaction=now,
        ),
        lambda r: f'Completed "{r.message}".',
    )


def ignore(
    reminders: List[SmartReminder], reminder_id: str, now: datetime
) -> TransitionResult:
    return _apply(
        reminders,
        reminder_id,
        lambda r: replace(
            r,
            status="ignored",
            success_history=r.success_history + ["ignored"],
            last_interaction=now,
        ),
        lambda r: f'Ignored "{r.message}".',
    )


def pause_until_tomorrow(
    reminders: List[SmartReminder], reminder_id: str, now: datetime
) -> TransitionResult:
    """Pause until 09:00 tomorrow."""
    tomorrow_morning = now + relativedelta(
        days=+1, hour=PAUSE_RESUME_HOUR, minute=0, second=0, microsecond=0
    )
    return _apply(
        reminders,
        reminder_id,
        lambda r: replace(r, status="paused", snoozed_until=tomorrow_morning),
        lambda r: f'Paused "{r.message}" until tomorrow.',
    )


def later_today(
    reminders: List[SmartReminder],
    reminder_id: str,
    dnd_windows: Iterable[DNDWindow],
    now: datetime,
) -> TransitionResult:
    """Push to later today, staying clear of tonight's DND window."""
    target_time = later_today_time(dnd_windows, now)
    return _apply(
        reminders,
        reminder_id,
        lambda r: replace(
            r,
            status="snoozed",
            snoozed_until=target_time,
            success_history=r.success_history + ["snoozed"],
            last_interaction=now,
        ),
        lambda r: f'Rescheduled "{r.message}" for later.',
    )


def toggle_lock(reminders: List[SmartReminder], reminder_id: str) -> TransitionResult:
    """Lock or unlock. Locked reminders never get experimental offsets."""
    return _apply(
        reminders,
        reminder_id,
        lambda r: replace(r, is_locked=not r.is_locked, allow_exploration=r.is_locked),
        lambda r: f'{"Unlocked" if r.is_locked else "Locked"} "{r.message}".',
    )


def revert_exploration(
    reminders: List[SmartReminder], reminder_id: str
) -> TransitionResult:
    """Restore the offset an exploratory reminder had before the experiment."""

    def revert(r: SmartReminder) -> SmartReminder | None:
        if not r.is_exploratory or r.original_offset_minutes is None:
            return None
        return replace(
            r,
            offset_minutes=r.original_offset_minutes,
            original_offset_minutes=None,
            is_exploratory=False,
            status="active",
            snoozed_until=None,
        )

    return _apply(
        reminders,
        reminder_id,
        revert,
        lambda r: f'Reverted experiment for "{r.message}".',
    )


def apply_action(
    schedule: Schedule,
    reminder_id: str,
    action: str,
    now: datetime,
    minutes: int | None = None,
) -> TransitionResult:
    """Dispatch a reminder action by name (as used by the chat buttons)."""
    if action not in ACTIONS:
        raise ValueError(f"Unknown reminder action: {action}")

    reminders = schedule.reminders

    if action == "snooze":
        if minutes is None or minutes <= 0:
            raise ValueError("Snooze needs a positive number of minutes")
        return snooze(reminders, reminder_id, minutes, now)
    elif action == "done":
        return mark_done(reminders, reminder_id, now)
    elif action == "ignore":
        return ignore(reminders, reminder_id, now)
    elif action == "later":
        return later_today(reminders, reminder_id, schedule.dnd_windows, now)
    elif action == "pause":
        return pause_until_tomorrow(reminders, reminder_id, now)
    elif action == "toggle_lock":
        return toggle_lock(reminders, reminder_id)
    else:
        return revert_exploration(reminders, reminder_id)


class ChangeLog:
    """The last few undoable schedule changes, newest first."""

    def __init__(self, limit: int = CHANGE_LOG_LIMIT):
        self.limit = limit
        self._events: List[ChangeEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    @property
    def latest(self) -> ChangeEvent | None:
        return self._events[0] if self._events else None

    def record(self, message: str, before: Schedule, now: datetime) -> ChangeEvent:
        """Remember the schedule as it was before a change."""
        event = ChangeEvent(message=message, created_at=now, before=copy.deepcopy(before))
        self._events = [event] + self._events[: self.limit - 1]
        return event

    def undo(self) -> ChangeEvent | None:
        """Pop the newest change. Its ``before`` schedule is the one to restore."""
        if not self._events:
            return None
        event, self._events = self._events[0], self._events[1:]
        return event
