"""Callback query handlers for inline buttons."""

import logging
from dataclasses import replace

from telegram import Update
from telegram.ext import ContextTypes

from momentum.bot.formatters import format_active_reminder
from momentum.bot.handlers import commit_schedule, get_repo
from momentum.db.models import Conflict
from momentum.engine.conflicts import resolve_conflict
from momentum.engine.scheduler import active_reminders
from momentum.engine.transitions import apply_action
from momentum.utils.time_utils import now_in

logger = logging.getLogger(__name__)


async def handle_reminder_callback(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    action: str,
    reminder_id: str,
    minutes: int | None = None,
) -> None:
    """Handle a reminder action button (done, snooze, later, ...)."""
    if not update.effective_user or not update.callback_query:
        return

    query = update.callback_query
    repo = get_repo(context, update.effective_user.id)
    settings = await repo.settings.load()
    schedule = await repo.schedule.load()
    now = now_in(settings.timezone)

    try:
        result = apply_action(schedule, reminder_id, action, now, minutes)
    except ValueError as e:
        logger.warning(f"Rejected reminder action {action} for {reminder_id}: {e}")
        await query.answer("Unknown action")
        return

    if not result.found:
        await query.answer("Reminder not found.")
        return

    if not result.changed:
        await query.answer("Nothing to change for this reminder.")
        return

    after = replace(schedule, reminders=result.reminders)
    await commit_schedule(context, repo, schedule, after, result.message)

    if query.message:
        current = next(
            (a for a in active_reminders(after, now) if a.reminder.id == reminder_id), None
        )
        if current is not None:
            text = format_active_reminder(current, now) + f"\n\n✓ {result.message}"
        else:
            text = f"✓ {result.message}"
        await query.message.edit_text(text, parse_mode="HTML")

    await query.answer(result.message[:200])


async def handle_conflict_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, decision: str
) -> None:
    """Handle the answer to a pending move conflict."""
    if not update.effective_user or not update.callback_query:
        return

    query = update.callback_query
    conflict: Conflict | None = context.user_data.pop("pending_conflict", None)

    if conflict is None:
        await query.answer("This conflict has expired.")
        return

    if decision == "cancel":
        if query.message:
            await query.message.edit_text("Move cancelled. Nothing changed.")
        await query.answer("Cancelled")
        return

    repo = get_repo(context, update.effective_user.id)
    schedule = await repo.schedule.load()
    anchors = resolve_conflict(schedule, conflict, decision)  # type: ignore[arg-type]

    if anchors == schedule.anchors:
        await query.answer("Nothing to change.")
        return

    after = replace(schedule, anchors=anchors)
    moved = next(a for a in anchors if a.id == conflict.anchor_id)
    summary = f'Moved "{moved.title}" to {moved.day}, {moved.start_time}–{moved.end_time}.'
    await commit_schedule(context, repo, schedule, after, summary)

    if query.message:
        await query.message.edit_text(f"✓ {summary}")
    await query.answer("✓ Done")


async def handle_reset_history(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Delete all learning data after confirmation."""
    if not update.effective_user or not update.callback_query:
        return

    repo = get_repo(context, update.effective_user.id)
    await repo.history.reset()

    if update.callback_query.message:
        await update.callback_query.message.edit_text("🗑 Time learning history cleared.")
    await update.callback_query.answer("History cleared")


async def callback_router(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Route callback queries to appropriate handlers."""
    if not update.callback_query:
        return

    query = update.callback_query
    data = query.data

    if not data:
        return

    parts = data.split(":")

    if parts[0] == "r" and len(parts) in (3, 4):
        minutes = int(parts[3]) if len(parts) == 4 else None
        await handle_reminder_callback(update, context, parts[1], parts[2], minutes)

    elif parts[0] == "c" and len(parts) == 2:
        await handle_conflict_callback(update, context, parts[1])

    elif parts[0] == "confirm" and parts[1:] == ["reset_history"]:
        await handle_reset_history(update, context)

    elif parts[0] == "cancel":
        if query.message:
            await query.message.delete()
        await query.answer("Cancelled")

    else:
        await query.answer("Unknown action")
