"""Command handlers."""

import logging
from html import escape
from dataclasses import replace
from zoneinfo import ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta
from telegram import Update
from telegram.ext import ContextTypes

from momentum.bot.formatters import (
    format_active_reminder,
    format_anchor_list,
    format_conflict,
    format_estimate,
    format_help_message,
    format_learning_stats,
    format_reminder_list,
    format_welcome_message,
)
from momentum.bot.keyboards import (
    confirm_cancel_keyboard,
    conflict_keyboard,
    reminder_actions_keyboard,
)
from momentum.config import Config, clamp_sensitivity
from momentum.db.models import CompletionRecord, Schedule, SmartReminder
from momentum.db.repository import SessionRegistry, UserRepository, new_id
from momentum.engine.conflicts import (
    add_anchor,
    delete_anchor,
    duplicate_anchor,
    plan_move,
    set_dnd_window,
)
from momentum.engine.estimation import accuracy_stats, estimate_for_settings
from momentum.engine.scheduler import active_reminders
from momentum.engine.transitions import ChangeLog
from momentum.parser.arguments import (
    parse_category,
    parse_day,
    parse_days,
    parse_difficulty,
    parse_offset,
)
from momentum.utils.constants import (
    DAYS_OF_WEEK,
    DEFAULT_DND_END,
    DEFAULT_DND_START,
    PAUSE_RESUME_HOUR,
)
from momentum.utils.time_utils import format_offset, now_in, time_to_minutes

logger = logging.getLogger(__name__)

MAX_LISTED_REMINDERS = 5


def get_repo(context: ContextTypes.DEFAULT_TYPE, chat_id: int) -> UserRepository:
    """Stores for one user on the shared storage backend."""
    return UserRepository(context.bot_data["storage"], chat_id, Config.default_settings())


def get_change_log(context: ContextTypes.DEFAULT_TYPE) -> ChangeLog:
    return context.user_data.setdefault("change_log", ChangeLog())


async def commit_schedule(
    context: ContextTypes.DEFAULT_TYPE,
    repo: UserRepository,
    before: Schedule,
    after: Schedule,
    message: str,
) -> None:
    """Save a schedule change and make it undoable."""
    settings = await repo.settings.load()
    await repo.schedule.save(after)
    if message:
        get_change_log(context).record(message, before, now_in(settings.timezone))
        logger.info(f"User {repo.chat_id}: {message}")


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command."""
    if not update.effective_user or not update.message:
        return

    registry = SessionRegistry(context.bot_data["storage"])
    if await registry.add(update.effective_user.id):
        logger.info(f"New user registered: {update.effective_user.id}")

        # New users start with a quiet night every day
        repo = get_repo(context, update.effective_user.id)
        schedule = await repo.schedule.load()
        if not schedule.dnd_windows:
            windows = set_dnd_window([], DAYS_OF_WEEK, DEFAULT_DND_START, DEFAULT_DND_END)
            await repo.schedule.save(replace(schedule, dnd_windows=windows))

    await update.message.reply_html(format_welcome_message())


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command."""
    if not update.message:
        return

    await update.message.reply_html(format_help_message())


async def reminders_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /reminders - upcoming reminders, each with action buttons."""
    if not update.effective_user or not update.message:
        return

    repo = get_repo(context, update.effective_user.id)
    settings = await repo.settings.load()
    schedule = await repo.schedule.load()
    now = now_in(settings.timezone)

    active = active_reminders(schedule, now)
    await update.message.reply_html(format_reminder_list(active, now, schedule.pause_until))

    for item in active[:MAX_LISTED_REMINDERS]:
        await update.message.reply_html(
            format_active_reminder(item, now),
            reply_markup=reminder_actions_keyboard(item.reminder),
        )

    if len(active) > MAX_LISTED_REMINDERS:
        await update.message.reply_text(f"…and {len(active) - MAX_LISTED_REMINDERS} more later.")


async def remind_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /remind <anchor_id> <offset> <message>."""
    if not update.effective_user or not update.message:
        return

    if not context.args or len(context.args) < 3:
        await update.message.reply_text("Usage: /remind <anchor_id> <offset_minutes> <message>")
        return

    anchor_id = context.args[0]
    try:
        offset = parse_offset(context.args[1])
    except ValueError as e:
        await update.message.reply_text(str(e))
        return
    message = " ".join(context.args[2:])

    repo = get_repo(context, update.effective_user.id)
    schedule = await repo.schedule.load()
    anchor = next((a for a in schedule.anchors if a.id == anchor_id), None)

    if anchor is None:
        await update.message.reply_text("Anchor not found. Use /anchors to see ids.")
        return

    reminder = SmartReminder(
        id=new_id("sr"),
        anchor_id=anchor_id,
        offset_minutes=offset,
        message=message,
        why="Because you asked to be reminded.",
    )
    after = replace(schedule, reminders=schedule.reminders + [reminder])
    summary = f"Reminder added: {message} {format_offset(offset)} {anchor.title}."
    await commit_schedule(context, repo, schedule, after, summary)

    await update.message.reply_text(f"✓ {summary}")


async def anchor_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /anchor <title> <start> <end> <days>."""
    if not update.effective_user or not update.message:
        return

    if not context.args or len(context.args) < 4:
        await update.message.reply_html(
            "Usage: /anchor &lt;title&gt; &lt;start&gt; &lt;end&gt; &lt;days&gt;\n"
            "Example: <code>/anchor Gym 18:00 19:00 mon,wed,fri</code>"
        )
        return

    *title_words, start, end, days_text = context.args
    title = " ".join(title_words)

    try:
        days = parse_days(days_text)
        if time_to_minutes(end) <= time_to_minutes(start):
            raise ValueError("End time must be after start time")
    except ValueError as e:
        await update.message.reply_text(str(e))
        return

    repo = get_repo(context, update.effective_user.id)
    schedule = await repo.schedule.load()
    after = replace(schedule, anchors=add_anchor(schedule.anchors, title, start, end, days))
    summary = f"{title} anchor added for {', '.join(d[:3] for d in days)}, {start}–{end}."
    await commit_schedule(context, repo, schedule, after, summary)

    await update.message.reply_html(
        f"✓ {escape(summary)}\n\n" + format_anchor_list(after.anchors, after.dnd_windows)
    )


async def anchors_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /anchors - weekly overview."""
    if not update.effective_user or not update.message:
        return

    repo = get_repo(context, update.effective_user.id)
    schedule = await repo.schedule.load()
    await update.message.reply_html(format_anchor_list(schedule.anchors, schedule.dnd_windows))


async def move_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /move <anchor_id> <day> [HH:MM]."""
    if not update.effective_user or not update.message:
        return

    if not context.args or len(context.args) not in (2, 3):
        await update.message.reply_text("Usage: /move <anchor_id> <day> [HH:MM]")
        return

    anchor_id = context.args[0]
    try:
        day = parse_day(context.args[1])
        new_start = context.args[2] if len(context.args) == 3 else None
        if new_start is not None:
            time_to_minutes(new_start)
    except ValueError as e:
        await update.message.reply_text(str(e))
        return

    repo = get_repo(context, update.effective_user.id)
    schedule = await repo.schedule.load()
    anchor = next((a for a in schedule.anchors if a.id == anchor_id), None)

    if anchor is None:
        await update.message.reply_text("Anchor not found. Use /anchors to see ids.")
        return

    plan = plan_move(schedule, anchor_id, day, new_start)

    if plan.conflict is not None:
        context.user_data["pending_conflict"] = plan.conflict
        await update.message.reply_html(
            format_conflict(plan.conflict, schedule.anchors),
            reply_markup=conflict_keyboard(plan.conflict),
        )
        return

    after = replace(schedule, anchors=plan.anchors)
    moved = next(a for a in after.anchors if a.id == anchor_id)
    summary = f'Moved "{moved.title}" to {moved.day}, {moved.start_time}–{moved.end_time}.'
    await commit_schedule(context, repo, schedule, after, summary)

    await update.message.reply_text(f"✓ {summary}")


async def duplicate_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /duplicate <anchor_id>."""
    if not update.effective_user or not update.message:
        return

    if not context.args or len(context.args) != 1:
        await update.message.reply_text("Usage: /duplicate <anchor_id>")
        return

    repo = get_repo(context, update.effective_user.id)
    schedule = await repo.schedule.load()
    anchor = next((a for a in schedule.anchors if a.id == context.args[0]), None)

    if anchor is None:
        await update.message.reply_text("Anchor not found. Use /anchors to see ids.")
        return

    after = replace(schedule, anchors=duplicate_anchor(schedule.anchors, anchor.id))
    await commit_schedule(context, repo, schedule, after, f'Duplicated "{anchor.title}".')

    await update.message.reply_html(
        f"✓ Duplicated <b>{escape(anchor.title)}</b>. Use /move to place the copy.\n\n"
        + format_anchor_list(after.anchors, after.dnd_windows)
    )


async def delete_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete <anchor_id>."""
    if not update.effective_user or not update.message:
        return

    if not context.args or len(context.args) != 1:
        await update.message.reply_text("Usage: /delete <anchor_id>")
        return

    repo = get_repo(context, update.effective_user.id)
    schedule = await repo.schedule.load()
    anchor = next((a for a in schedule.anchors if a.id == context.args[0]), None)

    if anchor is None:
        await update.message.reply_text("Anchor not found. Use /anchors to see ids.")
        return

    after = replace(schedule, anchors=delete_anchor(schedule.anchors, anchor.id))
    await commit_schedule(context, repo, schedule, after, f'Deleted "{anchor.title}".')

    await update.message.reply_html(f"🗑 Deleted: <b>{escape(anchor.title)}</b> (/undo to restore)")


async def dnd_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /dnd <days> <start> <end>."""
    if not update.effective_user or not update.message:
        return

    if not context.args or len(context.args) != 3:
        await update.message.reply_html(
            "Usage: /dnd &lt;days&gt; &lt;start&gt; &lt;end&gt;\n"
            "Example: <code>/dnd all 23:00 07:00</code>"
        )
        return

    days_text, start, end = context.args
    repo = get_repo(context, update.effective_user.id)
    schedule = await repo.schedule.load()

    try:
        days = parse_days(days_text)
        windows = set_dnd_window(schedule.dnd_windows, days, start, end)
    except ValueError as e:
        await update.message.reply_text(str(e))
        return

    after = replace(schedule, dnd_windows=windows)
    summary = f"DND set to {start}–{end} for {', '.join(d[:3] for d in days)}."
    await commit_schedule(context, repo, schedule, after, summary)

    await update.message.reply_text(f"🌙 {summary}")


async def pause_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /pause [days] - silence everything until a morning."""
    if not update.effective_user or not update.message:
        return

    try:
        days = int(context.args[0]) if context.args else 1
        if days < 1:
            raise ValueError
    except ValueError:
        await update.message.reply_text("Usage: /pause [days]")
        return

    repo = get_repo(context, update.effective_user.id)
    settings = await repo.settings.load()
    schedule = await repo.schedule.load()
    now = now_in(settings.timezone)

    pause_until = now + relativedelta(
        days=+days, hour=PAUSE_RESUME_HOUR, minute=0, second=0, microsecond=0
    )
    after = replace(schedule, pause_until=pause_until)
    summary = f"Paused all reminders until {pause_until.strftime('%a %b %d, %H:%M')}."
    await commit_schedule(context, repo, schedule, after, summary)

    await update.message.reply_text(f"⏸ {summary}")


async def resume_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /resume."""
    if not update.effective_user or not update.message:
        return

    repo = get_repo(context, update.effective_user.id)
    schedule = await repo.schedule.load()

    if schedule.pause_until is None:
        await update.message.reply_text("Reminders are not paused.")
        return

    after = replace(schedule, pause_until=None)
    await commit_schedule(context, repo, schedule, after, "Resumed reminders.")

    await update.message.reply_text("▶️ Reminders resumed.")


async def undo_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /undo - restore the schedule from before the last change."""
    if not update.effective_user or not update.message:
        return

    event = get_change_log(context).undo()
    if event is None:
        await update.message.reply_text("Nothing to undo.")
        return

    repo = get_repo(context, update.effective_user.id)
    await repo.schedule.save(event.before)

    await update.message.reply_text(f"↩ Undone: {event.message}")


async def log_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /log <category> <actual> <estimated> <sub_steps> [difficulty]."""
    if not update.effective_user or not update.message:
        return

    if not context.args or len(context.args) not in (4, 5):
        await update.message.reply_text(
            "Usage: /log <category> <actual_min> <estimated_min> <sub_steps> [easier|typical|harder]"
        )
        return

    try:
        category = parse_category(context.args[0])
        actual = float(context.args[1])
        estimated = float(context.args[2])
        sub_steps = int(context.args[3])
        difficulty = parse_difficulty(context.args[4] if len(context.args) == 5 else None)
        if actual <= 0 or estimated < 0 or sub_steps < 0:
            raise ValueError("Durations and sub-steps must be positive")
    except ValueError as e:
        await update.message.reply_text(str(e) or "Invalid number")
        return

    repo = get_repo(context, update.effective_user.id)
    settings = await repo.settings.load()
    now = now_in(settings.timezone)

    history = await repo.history.record_completion(
        settings,
        CompletionRecord(
            id="",
            actual_duration_minutes=actual,
            estimated_duration_minutes=estimated,
            energy_category=category,
            completed_at=now,
            sub_step_count=sub_steps,
            day_of_week=now.weekday(),
            difficulty=difficulty,
        )
    )

    if history is None:
        await update.message.reply_text("Time learning is off. Turn it on with /learning on")
        return

    await update.message.reply_html(
        f"✓ Logged {actual:g} min of <b>{category}</b> work "
        f"({len(history[category])} {category} records)."
    )


async def estimate_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /estimate <category> <sub_steps>."""
    if not update.effective_user or not update.message:
        return

    if not context.args or len(context.args) != 2:
        await update.message.reply_text("Usage: /estimate <category> <sub_steps>")
        return

    try:
        category = parse_category(context.args[0])
        sub_steps = int(context.args[1])
    except ValueError as e:
        await update.message.reply_text(str(e))
        return

    repo = get_repo(context, update.effective_user.id)
    settings = await repo.settings.load()

    if not settings.is_enabled:
        await update.message.reply_text("Time learning is off. Turn it on with /learning on")
        return

    history = await repo.history.all_records()
    result = estimate_for_settings(history, category, sub_steps, settings)

    await update.message.reply_html(format_estimate(category, sub_steps, result))


async def learning_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /learning [on|off|sensitivity <x>|timezone <tz>|reset]."""
    if not update.effective_user or not update.message:
        return

    repo = get_repo(context, update.effective_user.id)
    settings = await repo.settings.load()
    args = [a.lower() for a in context.args or []]

    if not args:
        history = await repo.history.all_records()
        await update.message.reply_html(
            format_learning_stats(history, accuracy_stats(history), settings)
        )
        return

    if args[0] in ("on", "off"):
        settings = replace(settings, is_enabled=args[0] == "on")
        await repo.settings.save(settings)
        await update.message.reply_text(f"✓ Time learning turned {args[0]}.")

    elif args[0] == "sensitivity" and len(args) == 2:
        try:
            value = float(args[1])
        except ValueError:
            await update.message.reply_text("Sensitivity must be a number between 0.1 and 0.9")
            return
        settings = replace(settings, sensitivity=clamp_sensitivity(value))
        await repo.settings.save(settings)
        await update.message.reply_text(f"✓ Sensitivity set to {settings.sensitivity:.1f}.")

    elif args[0] == "timezone" and len(args) == 2:
        tz = context.args[1]
        try:
            now_in(tz)
        except (ZoneInfoNotFoundError, ValueError):
            await update.message.reply_text(
                f"Invalid timezone: {tz}\n\nUse format like: America/Toronto, Europe/London, etc."
            )
            return
        settings = replace(settings, timezone=tz)
        await repo.settings.save(settings)
        await update.message.reply_text(f"✓ Timezone updated to {tz}.")

    elif args[0] == "reset":
        await update.message.reply_text(
            "Are you sure? This will delete all your time estimation learning data.",
            reply_markup=confirm_cancel_keyboard("reset_history"),
        )

    else:
        await update.message.reply_text(
            "Usage: /learning [on|off|sensitivity <0.1-0.9>|timezone <tz>|reset]"
        )


async def stats_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /stats."""
    if not update.effective_user or not update.message:
        return

    repo = get_repo(context, update.effective_user.id)
    settings = await repo.settings.load()
    history = await repo.history.all_records()

    await update.message.reply_html(
        format_learning_stats(history, accuracy_stats(history), settings)
    )
