"""Anchor moves and the conflicts they can cause."""

import logging
from dataclasses import dataclass, replace
from typing import Iterable, List, Literal

from momentum.db.models import AnchorEvent, Conflict, DNDWindow, Schedule
from momentum.db.repository import new_id
from momentum.utils.constants import DAYS_OF_WEEK, MINUTES_PER_DAY, ContextTag
from momentum.utils.time_utils import (
    dnd_window_for,
    intervals_overlap,
    minutes_to_time,
    time_to_minutes,
    window_segments,
)

logger = logging.getLogger(__name__)

Decision = Literal["shift_dnd", "shift_overlap", "keep_overlap", "cancel"]

# Which answers each kind of conflict offers
DECISIONS = {
    "dnd": ("shift_dnd", "cancel"),
    "overlap": ("shift_overlap", "keep_overlap", "cancel"),
}


@dataclass
class MovePlan:
    """Outcome of a move request: new anchors, or a conflict to ask about."""

    anchors: List[AnchorEvent]
    conflict: Conflict | None = None


def duration_minutes(anchor: AnchorEvent) -> int:
    """Length of an anchor, counting past midnight if it wraps."""
    return (time_to_minutes(anchor.end_time) - time_to_minutes(anchor.start_time)) % MINUTES_PER_DAY


def ranges_overlap(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    """Overlap check that splits ranges crossing midnight into two pieces."""
    return any(
        intervals_overlap(sa, ea, sb, eb)
        for sa, ea in window_segments(start_a, end_a)
        for sb, eb in window_segments(start_b, end_b)
    )


def _find(anchors: Iterable[AnchorEvent], anchor_id: str | None) -> AnchorEvent | None:
    return next((a for a in anchors if a.id == anchor_id), None)


def find_conflicts(
    schedule: Schedule,
    anchor_id: str,
    target_day: str,
    new_start_time: str | None = None,
) -> List[Conflict]:
    """Every conflict a move would cause, DND first, then overlaps.

    Returns an empty list when the anchor does not exist or the move changes
    nothing.
    """
    anchor = _find(schedule.anchors, anchor_id)
    if anchor is None:
        return []

    start_time = new_start_time or anchor.start_time
    if anchor.day == target_day and start_time == anchor.start_time:
        return []

    end_time = minutes_to_time(time_to_minutes(start_time) + duration_minutes(anchor))
    conflicts = []

    dnd = dnd_window_for(schedule.dnd_windows, target_day)
    if dnd and ranges_overlap(start_time, end_time, dnd.start_time, dnd.end_time):
        conflicts.append(
            Conflict(
                kind="dnd",
                anchor_id=anchor_id,
                target_day=target_day,
                start_time=start_time,
                end_time=end_time,
            )
        )

    for other in schedule.anchors:
        if other.id == anchor_id or other.day != target_day:
            continue
        if ranges_overlap(start_time, end_time, other.start_time, other.end_time):
            conflicts.append(
                Conflict(
                    kind="overlap",
                    anchor_id=anchor_id,
                    target_day=target_day,
                    start_time=start_time,
                    end_time=end_time,
                    overlapping_anchor_id=other.id,
                )
            )

    return conflicts


def detect_conflict(
    schedule: Schedule,
    anchor_id: str,
    target_day: str,
    new_start_time: str | None = None,
) -> Conflict | None:
    """The one conflict to surface for a move, if any."""
    conflicts = find_conflicts(schedule, anchor_id, target_day, new_start_time)
    return conflicts[0] if conflicts else None


def move_anchor(
    anchors: List[AnchorEvent],
    anchor_id: str,
    day: str,
    new_start_time: str | None = None,
) -> List[AnchorEvent]:
    """Move an anchor to a day and optional new start, keeping its duration."""
    anchor = _find(anchors, anchor_id)
    if anchor is None:
        logger.debug(f"Anchor {anchor_id} not found, move skipped")
        return list(anchors)

    start_time = new_start_time or anchor.start_time
    end_time = minutes_to_time(time_to_minutes(start_time) + duration_minutes(anchor))
    moved = replace(anchor, day=day, start_time=start_time, end_time=end_time)

    return [moved if a.id == anchor_id else a for a in anchors]


def plan_move(
    schedule: Schedule,
    anchor_id: str,
    target_day: str,
    new_start_time: str | None = None,
) -> MovePlan:
    """Move right away when nothing clashes, otherwise hand back the conflict."""
    conflict = detect_conflict(schedule, anchor_id, target_day, new_start_time)
    if conflict is not None:
        return MovePlan(anchors=list(schedule.anchors), conflict=conflict)
    return MovePlan(anchors=move_anchor(schedule.anchors, anchor_id, target_day, new_start_time))


def resolve_conflict(
    schedule: Schedule, conflict: Conflict, decision: Decision
) -> List[AnchorEvent]:
    """Apply the user's answer to a conflict.

    - shift_dnd: start when the target day's DND window ends
    - shift_overlap: start when the overlapping anchor ends
    - keep_overlap: move as proposed
    - cancel: leave everything as it is

    Answers that do not fit the conflict, or anchors that have disappeared in
    the meantime, leave the anchors unchanged.
    """
    anchors = list(schedule.anchors)

    if decision == "cancel":
        return anchors

    if decision not in DECISIONS.get(conflict.kind, ()):
        logger.warning(f"Decision {decision!r} does not apply to a {conflict.kind} conflict")
        return anchors

    if _find(anchors, conflict.anchor_id) is None:
        logger.info(f"Anchor {conflict.anchor_id} vanished before its conflict was resolved")
        return anchors

    if decision == "keep_overlap":
        new_start = conflict.start_time
    elif decision == "shift_overlap":
        other = _find(anchors, conflict.overlapping_anchor_id)
        if other is None:
            return anchors
        new_start = other.end_time
    else:
        dnd = dnd_window_for(schedule.dnd_windows, conflict.target_day)
        if dnd is None:
            return anchors
        new_start = dnd.end_time

    return move_anchor(anchors, conflict.anchor_id, conflict.target_day, new_start)


def add_anchor(
    anchors: List[AnchorEvent],
    title: str,
    start_time: str,
    end_time: str,
    days: Iterable[str],
    context_tags: List[str] | None = None,
) -> List[AnchorEvent]:
    """Create one anchor per day."""
    time_to_minutes(start_time)
    time_to_minutes(end_time)

    created = []
    for day in days:
        if day not in DAYS_OF_WEEK:
            raise ValueError(f"Unknown day: {day}")
        created.append(
            AnchorEvent(
                id=new_id("anchor"),
                day=day,
                title=title,
                start_time=start_time,
                end_time=end_time,
                context_tags=list(context_tags or [ContextTag.PERSONAL.value]),
            )
        )
    return list(anchors) + created


def duplicate_anchor(anchors: List[AnchorEvent], anchor_id: str) -> List[AnchorEvent]:
    anchor = _find(anchors, anchor_id)
    if anchor is None:
        return list(anchors)
    copy = replace(anchor, id=new_id("anchor"), context_tags=list(anchor.context_tags))
    return list(anchors) + [copy]


def delete_anchor(anchors: List[AnchorEvent], anchor_id: str) -> List[AnchorEvent]:
    """Remove an anchor. Reminders that point at it are simply skipped later."""
    return [a for a in anchors if a.id != anchor_id]


def set_dnd_window(
    windows: List[DNDWindow], days: Iterable[str], start_time: str, end_time: str
) -> List[DNDWindow]:
    """Set (or replace) the DND window for each of ``days``."""
    time_to_minutes(start_time)
    time_to_minutes(end_time)

    days = list(days)
    kept = [w for w in windows if w.day not in days]
    return kept + [DNDWindow(day=day, start_time=start_time, end_time=end_time) for day in days]
