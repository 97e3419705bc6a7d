"""Tests for anchor moves and conflict resolution."""

import pytest

from momentum.db.models import AnchorEvent, DNDWindow, Schedule
from momentum.engine.conflicts import (
    add_anchor,
    delete_anchor,
    detect_conflict,
    duplicate_anchor,
    duration_minutes,
    find_conflicts,
    plan_move,
    resolve_conflict,
    set_dnd_window,
)


def make_anchor(anchor_id, day, start, end, title="Block"):
    return AnchorEvent(id=anchor_id, day=day, title=title, start_time=start, end_time=end)


def week():
    return Schedule(
        anchors=[
            make_anchor("gym", "Monday", "18:00", "19:00", "Gym"),
            make_anchor("dinner", "Tuesday", "17:30", "18:30", "Dinner"),
            make_anchor("class", "Tuesday", "20:00", "21:00", "Class"),
        ],
        dnd_windows=[DNDWindow(day="Wednesday", start_time="22:00", end_time="07:00")],
    )


def test_overlap_conflict_names_other_anchor():
    schedule = week()

    conflict = detect_conflict(schedule, "gym", "Tuesday")

    assert conflict.kind == "overlap"
    assert conflict.overlapping_anchor_id == "dinner"
    assert (conflict.start_time, conflict.end_time) == ("18:00", "19:00")


def test_shift_to_avoid_overlap():
    """Shifting starts at the other anchor's end and keeps the duration."""
    schedule = week()
    conflict = detect_conflict(schedule, "gym", "Tuesday")

    anchors = resolve_conflict(schedule, conflict, "shift_overlap")
    gym = next(a for a in anchors if a.id == "gym")

    assert gym.day == "Tuesday"
    assert gym.start_time == "18:30"
    assert duration_minutes(gym) == 60


def test_keep_overlap():
    schedule = week()
    conflict = detect_conflict(schedule, "gym", "Tuesday")

    anchors = resolve_conflict(schedule, conflict, "keep_overlap")
    gym = next(a for a in anchors if a.id == "gym")

    assert (gym.day, gym.start_time, gym.end_time) == ("Tuesday", "18:00", "19:00")


def test_cancel_changes_nothing():
    schedule = week()
    conflict = detect_conflict(schedule, "gym", "Tuesday")

    assert resolve_conflict(schedule, conflict, "cancel") == schedule.anchors


def test_decision_must_fit_conflict():
    schedule = week()
    conflict = detect_conflict(schedule, "gym", "Tuesday")

    assert resolve_conflict(schedule, conflict, "shift_dnd") == schedule.anchors


def test_dnd_conflict_comes_first():
    """DND is reported before any overlap, and shift_dnd starts at its end."""
    schedule = week()
    schedule.anchors.append(make_anchor("late", "Wednesday", "22:30", "23:00"))

    conflicts = find_conflicts(schedule, "class", "Wednesday", "22:15")

    assert [c.kind for c in conflicts] == ["dnd", "overlap"]
    assert conflicts[1].overlapping_anchor_id == "late"

    anchors = resolve_conflict(schedule, conflicts[0], "shift_dnd")
    moved = next(a for a in anchors if a.id == "class")
    assert (moved.start_time, moved.end_time) == ("07:00", "08:00")


def test_overnight_dnd_morning_part():
    """The early-morning part of an overnight window also conflicts."""
    conflict = detect_conflict(week(), "gym", "Wednesday", "06:00")

    assert conflict.kind == "dnd"


def test_no_conflict_moves_directly():
    plan = plan_move(week(), "gym", "Thursday")

    assert plan.conflict is None
    assert next(a for a in plan.anchors if a.id == "gym").day == "Thursday"


def test_touching_anchors_do_not_conflict():
    assert detect_conflict(week(), "gym", "Tuesday", "21:00") is None


def test_unknown_or_noop_move_has_no_conflict():
    schedule = week()

    assert find_conflicts(schedule, "missing", "Tuesday") == []
    assert find_conflicts(schedule, "gym", "Monday") == []


def test_resolve_after_anchor_deleted():
    schedule = week()
    conflict = detect_conflict(schedule, "gym", "Tuesday")
    schedule.anchors = delete_anchor(schedule.anchors, "gym")

    assert resolve_conflict(schedule, conflict, "shift_overlap") == schedule.anchors


def test_add_and_duplicate_anchor():
    anchors = add_anchor([], "Work", "09:00", "17:00", ["Monday", "Tuesday"])

    assert [a.day for a in anchors] == ["Monday", "Tuesday"]
    assert anchors[0].id != anchors[1].id

    copied = duplicate_anchor(anchors, anchors[0].id)
    assert len(copied) == 3
    assert copied[2].title == "Work" and copied[2].id != anchors[0].id


def test_add_anchor_rejects_bad_time():
    with pytest.raises(ValueError):
        add_anchor([], "Work", "9am", "17:00", ["Monday"])


def test_set_dnd_window_replaces_days():
    windows = set_dnd_window(week().dnd_windows, ["Wednesday", "Thursday"], "23:00", "06:30")

    assert sorted(w.day for w in windows) == ["Thursday", "Wednesday"]
    assert all(w.start_time == "23:00" for w in windows)
