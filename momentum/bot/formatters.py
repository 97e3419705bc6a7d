"""Message text formatters."""

from datetime import datetime
from html import escape
from typing import Dict, List

from momentum.db.models import (
    ActiveReminder,
    AnchorEvent,
    CompletionRecord,
    Conflict,
    DNDWindow,
    EstimateResult,
    LearningSettings,
)
from momentum.engine.estimation import AccuracyStats
from momentum.utils.constants import DAYS_OF_WEEK
from momentum.utils.time_utils import format_offset, format_relative_time

CONFIDENCE_BADGE = {
    "low": "⚪ low confidence",
    "medium": "🟡 medium confidence",
    "high": "🟢 high confidence",
}

SUCCESS_DOTS = {"success": "🟢", "snoozed": "🟡", "ignored": "🔴"}


def format_active_reminder(active: ActiveReminder, now: datetime) -> str:
    """Format one resolved reminder."""
    reminder = active.reminder
    lines = [f"🔔 <b>{escape(reminder.message)}</b>"]

    relative = format_relative_time(active.trigger_time, now)
    lines.append(
        f"⏰ {active.trigger_time.strftime('%H:%M')} ({relative}), "
        f"{format_offset(reminder.offset_minutes)} {escape(active.anchor.title)}"
    )

    tags = []
    if active.shifted_reason:
        tags.append(f"🌙 {active.shifted_reason}")
    if reminder.is_locked:
        tags.append("🔒 Locked")
    if reminder.is_exploratory:
        tags.append("🧪 Experiment")
    if reminder.status == "snoozed":
        tags.append("⏸ Snoozed")
    elif reminder.status == "paused":
        tags.append("⏸ Paused")
    if tags:
        lines.append(" · ".join(tags))

    if reminder.success_history:
        dots = "".join(SUCCESS_DOTS[s] for s in reminder.success_history[-10:])
        lines.append(f"History: {dots}")

    if reminder.why:
        lines.append(f"<i>{escape(reminder.why)}</i>")

    return "\n".join(lines)


def format_reminder_list(
    reminders: List[ActiveReminder], now: datetime, pause_until: datetime | None = None
) -> str:
    """Format the active reminder list."""
    if pause_until is not None and now < pause_until:
        return (
            "<b>Reminders paused.</b>\n"
            f"Things will resume on {pause_until.strftime('%a %b %d, %H:%M')}. Enjoy the quiet."
        )

    if not reminders:
        return "All clear for now! No upcoming reminders on your schedule."

    return f"<b>Upcoming reminders ({len(reminders)})</b>"


def format_anchor_list(anchors: List[AnchorEvent], dnd_windows: List[DNDWindow]) -> str:
    """Weekly overview of anchors and DND windows."""
    if not anchors and not dnd_windows:
        return (
            "Let's set up your routine!\n\n"
            "Add an anchor: <code>/anchor Work 09:00 17:00 mon-fri</code>"
        )

    lines = ["<b>Your week</b>"]
    for day in DAYS_OF_WEEK:
        day_anchors = sorted((a for a in anchors if a.day == day), key=lambda a: a.start_time)
        dnd = next((w for w in dnd_windows if w.day == day), None)
        if not day_anchors and dnd is None:
            continue

        lines.append(f"\n<b>{day}</b>")
        for anchor in day_anchors:
            lines.append(
                f"• {anchor.start_time}–{anchor.end_time} {escape(anchor.title)} "
                f"<code>{anchor.id}</code>"
            )
        if dnd is not None:
            lines.append(f"🌙 DND {dnd.start_time}–{dnd.end_time}")

    return "\n".join(lines)


def format_conflict(conflict: Conflict, anchors: List[AnchorEvent]) -> str:
    """Explain a move conflict and what the buttons will do."""
    moving = next((a for a in anchors if a.id == conflict.anchor_id), None)
    title = escape(moving.title) if moving else "This anchor"

    if conflict.kind == "dnd":
        return (
            "<b>Do Not Disturb conflict</b>\n\n"
            f"{title} ({conflict.start_time}–{conflict.end_time}) falls inside your "
            f"DND window on {conflict.target_day}. Shift it to start when DND ends?"
        )

    other = next((a for a in anchors if a.id == conflict.overlapping_anchor_id), None)
    other_title = escape(other.title) if other else "another anchor"
    return (
        "<b>Scheduling conflict</b>\n\n"
        f"{title} ({conflict.start_time}–{conflict.end_time}) overlaps with "
        f'"{other_title}" on {conflict.target_day}. What would you like to do?'
    )


def format_estimate(category: str, sub_steps: int, result: EstimateResult | None) -> str:
    if result is None:
        return (
            f"Not enough {category} history yet for a personal estimate "
            f"(need at least 5 completed tasks with sub-steps). Using the generic estimate."
        )

    return (
        f"<b>{category}</b> task, {sub_steps} sub-step{'s' if sub_steps != 1 else ''}\n"
        f"⏱ Likely: {result.p50_minutes} min\n"
        f"⏱ Could take up to: {result.p90_minutes} min\n"
        f"{CONFIDENCE_BADGE[result.confidence]}"
    )


def format_learning_stats(
    history: Dict[str, List[CompletionRecord]],
    stats: AccuracyStats | None,
    settings: LearningSettings,
) -> str:
    """Format the time learning overview."""
    lines = ["<b>📊 Time Learning</b>\n"]
    lines.append(f"Learning: {'on' if settings.is_enabled else 'off'}")
    lines.append(f"Sensitivity: {settings.sensitivity:.1f}")
    lines.append(f"Timezone: {settings.timezone}\n")

    lines.append("<b>Records per category</b>")
    for category, records in history.items():
        lines.append(f"• {category}: {len(records)}")

    if stats is None:
        lines.append("\nComplete a few more tasks to see how accurate your estimates are.")
    else:
        lines.append(f"\nTotal records: {stats.total_records}")
        lines.append(f"Average estimate error: {stats.avg_deviation_minutes:.1f} min")

    return "\n".join(lines)


def format_welcome_message() -> str:
    """Format the welcome message for /start."""
    return """
<b>Welcome to Momentum!</b> 🌱

I learn how long your tasks really take and remind you around the fixed anchors of your week, never during your do-not-disturb hours.

<b>Quick Start:</b>
• /anchor Work 09:00 17:00 mon-fri
• /dnd all 23:00 07:00
• /remind &lt;anchor_id&gt; -10 Pack laptop
• /reminders - what's coming up
• /help - Full command list
""".strip()


def format_help_message() -> str:
    """Format the help message."""
    return """
<b>Momentum Commands 🌱</b>

<b>Schedule:</b>
/anchor &lt;title&gt; &lt;start&gt; &lt;end&gt; &lt;days&gt; - Add anchors (days: mon,wed or mon-fri or all)
/anchors - Your week
/move &lt;anchor_id&gt; &lt;day&gt; [HH:MM] - Move an anchor
/duplicate &lt;anchor_id&gt; - Copy an anchor
/delete &lt;anchor_id&gt; - Remove an anchor
/dnd &lt;days&gt; &lt;start&gt; &lt;end&gt; - Do-not-disturb window

<b>Reminders:</b>
/remind &lt;anchor_id&gt; &lt;offset&gt; &lt;message&gt; - e.g. <code>/remind anchor-1a2b -10 Pack bag</code>
/reminders - Upcoming reminders with actions
/pause [days] - Pause everything (default: until tomorrow)
/resume - Resume reminders
/undo - Undo the last change

<b>Time learning:</b>
/log &lt;category&gt; &lt;actual&gt; &lt;estimated&gt; &lt;sub_steps&gt; [easier|typical|harder]
/estimate &lt;category&gt; &lt;sub_steps&gt;
/learning [on|off|sensitivity &lt;0.1-0.9&gt;|reset|timezone &lt;tz&gt;]
/stats - How well estimates match reality

Categories: Creative, Tedious, Admin, Social, Errand
""".strip()
