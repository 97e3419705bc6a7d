"""Tests for reminder scheduling."""

from dataclasses import replace
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from momentum.db.models import AnchorEvent, DNDWindow, Schedule, SmartReminder
from momentum.engine.scheduler import (
    active_reminders,
    due_reminders,
    later_today_time,
    shift_out_of_dnd,
)

UTC = ZoneInfo("UTC")

# Monday morning
NOW = datetime(2026, 3, 16, 7, 30, tzinfo=UTC)


def make_anchor(anchor_id="a1", start="09:00", end="10:00", day="Monday"):
    return AnchorEvent(id=anchor_id, day=day, title="Standup", start_time=start, end_time=end)


def make_reminder(reminder_id="r1", anchor_id="a1", offset=-10, **kwargs):
    return SmartReminder(
        id=reminder_id, anchor_id=anchor_id, offset_minutes=offset, message="Get ready", **kwargs
    )


def test_offset_before_anchor():
    """-10 on a 09:00 anchor fires at 08:50, unshifted."""
    schedule = Schedule(anchors=[make_anchor()], reminders=[make_reminder()])

    active = active_reminders(schedule, NOW)

    assert len(active) == 1
    assert active[0].trigger_time == datetime(2026, 3, 16, 8, 50, tzinfo=UTC)
    assert active[0].shifted_reason is None


def test_dnd_shifts_to_window_end():
    """A trigger inside [08:00, 09:00) moves to 09:00."""
    schedule = Schedule(
        anchors=[make_anchor()],
        reminders=[make_reminder()],
        dnd_windows=[DNDWindow(day="Monday", start_time="08:00", end_time="09:00")],
    )

    active = active_reminders(schedule, NOW)

    assert active[0].trigger_time == datetime(2026, 3, 16, 9, 0, tzinfo=UTC)
    assert active[0].shifted_reason == "DND-shifted"


def test_dnd_end_is_exclusive():
    """A trigger exactly at the window end is left alone."""
    schedule = Schedule(
        anchors=[make_anchor()],
        reminders=[make_reminder(offset=0)],
        dnd_windows=[DNDWindow(day="Monday", start_time="08:00", end_time="09:00")],
    )

    active = active_reminders(schedule, NOW)

    assert active[0].shifted_reason is None


def test_overnight_dnd_shift():
    """A 06:50 trigger inside a 23:00-07:00 window moves to 07:00."""
    schedule = Schedule(
        anchors=[make_anchor(start="07:00", end="08:00")],
        reminders=[make_reminder()],
        dnd_windows=[DNDWindow(day="Monday", start_time="23:00", end_time="07:00")],
    )
    early = NOW.replace(hour=6, minute=0)

    active = active_reminders(schedule, early)

    assert active[0].trigger_time == datetime(2026, 3, 16, 7, 0, tzinfo=UTC)
    assert active[0].shifted_reason == "DND-shifted"


def test_pause_hides_everything():
    """With a pause until tomorrow nothing is active."""
    schedule = Schedule(
        anchors=[make_anchor()],
        reminders=[make_reminder(), make_reminder("r2", status="snoozed", snoozed_until=NOW)],
        pause_until=NOW + timedelta(days=1),
    )

    assert active_reminders(schedule, NOW) == []


def test_expired_pause_is_ignored():
    schedule = Schedule(
        anchors=[make_anchor()],
        reminders=[make_reminder()],
        pause_until=NOW - timedelta(minutes=1),
    )

    assert len(active_reminders(schedule, NOW)) == 1


def test_finished_reminders_are_excluded():
    schedule = Schedule(
        anchors=[make_anchor()],
        reminders=[make_reminder("r1", status="done"), make_reminder("r2", status="ignored")],
    )

    assert active_reminders(schedule, NOW) == []


def test_missing_anchor_is_skipped():
    """Reminders of a deleted anchor are not an error."""
    schedule = Schedule(anchors=[make_anchor()], reminders=[make_reminder(anchor_id="gone")])

    assert active_reminders(schedule, NOW) == []


def test_stale_active_reminder_is_dropped():
    """An active reminder whose time passed today is not listed."""
    schedule = Schedule(anchors=[make_anchor()], reminders=[make_reminder()])

    assert active_reminders(schedule, NOW.replace(hour=9, minute=30)) == []


def test_snoozed_reminder_uses_snooze_target():
    """Snoozed reminders fire at their snooze target, even in the past."""
    target = NOW - timedelta(minutes=5)
    schedule = Schedule(
        anchors=[make_anchor()],
        reminders=[make_reminder(status="snoozed", snoozed_until=target)],
    )

    active = active_reminders(schedule, NOW)

    assert active[0].trigger_time == target


def test_sorted_by_trigger_time():
    schedule = Schedule(
        anchors=[make_anchor("a1", start="11:00", end="12:00"), make_anchor("a2")],
        reminders=[make_reminder("late", "a1"), make_reminder("early", "a2")],
    )

    active = active_reminders(schedule, NOW)

    assert [a.reminder.id for a in active] == ["early", "late"]


def test_active_reminders_does_not_modify_schedule():
    schedule = Schedule(anchors=[make_anchor()], reminders=[make_reminder()])
    before = replace(schedule, reminders=list(schedule.reminders))

    active_reminders(schedule, NOW)

    assert schedule == before


def test_shift_out_of_dnd_without_window():
    trigger = NOW + timedelta(hours=1)

    assert shift_out_of_dnd(trigger, [], NOW) == (trigger, None)


def test_due_reminders():
    """Due once the trigger arrives, and only until it was sent."""
    schedule = Schedule(anchors=[make_anchor()], reminders=[make_reminder()])
    trigger = datetime(2026, 3, 16, 8, 50, tzinfo=UTC)
    lookback = timedelta(minutes=2)

    assert due_reminders(schedule, trigger - timedelta(minutes=1), lookback) == []

    due = due_reminders(schedule, trigger + timedelta(seconds=30), lookback)
    assert [d.reminder.id for d in due] == ["r1"]

    sent = replace(schedule, reminders=[make_reminder(last_notified_at=trigger)])
    assert due_reminders(sent, trigger + timedelta(seconds=30), lookback) == []


def test_later_today_is_three_hours_out():
    assert later_today_time([], NOW) == NOW + timedelta(hours=3)


def test_later_today_stops_before_dnd():
    """Capped at 15 minutes before tonight's DND starts."""
    evening = NOW.replace(hour=20, minute=0)
    windows = [DNDWindow(day="Monday", start_time="22:00", end_time="07:00")]

    assert later_today_time(windows, evening) == evening.replace(hour=21, minute=45)


def test_later_today_falls_back_to_one_hour():
    """Too close to DND: one hour from now."""
    late = NOW.replace(hour=21, minute=50)
    windows = [DNDWindow(day="Monday", start_time="22:00", end_time="07:00")]

    assert later_today_time(windows, late) == late + timedelta(hours=1)


def test_dnd_shifted_reminder_comes_due_at_window_end():
    """A 06:50 trigger inside a 23:00-07:00 window is delivered at 07:00."""
    schedule = Schedule(
        anchors=[make_anchor(start="07:00", end="08:00")],
        reminders=[make_reminder()],
        dnd_windows=[DNDWindow(day="Monday", start_time="23:00", end_time="07:00")],
    )
    lookback = timedelta(minutes=2)
    due_at = []

    for minute in range(0, 121):
        now = NOW.replace(hour=6, minute=0) + timedelta(minutes=minute)
        due = due_reminders(schedule, now, lookback)
        if due:
            due_at.append(now)
            assert due[0].trigger_time == datetime(2026, 3, 16, 7, 0, tzinfo=UTC)
            assert due[0].shifted_reason == "DND-shifted"

    assert due_at[0] == datetime(2026, 3, 16, 7, 0, tzinfo=UTC)


def test_late_evening_trigger_shifts_to_next_morning():
    """A 23:30 trigger in an overnight window moves to 07:00 the next day."""
    windows = [DNDWindow(day="Monday", start_time="23:00", end_time="07:00")]
    trigger = NOW.replace(hour=23, minute=30)

    assert shift_out_of_dnd(trigger, windows, NOW) == (
        datetime(2026, 3, 17, 7, 0, tzinfo=UTC),
        "DND-shifted",
    )
