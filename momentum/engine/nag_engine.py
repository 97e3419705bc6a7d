"""Nag engine - the heartbeat that delivers due reminders."""

import logging
from dataclasses import replace
from datetime import datetime, timedelta

from telegram import Bot
from telegram.error import TelegramError

from momentum.bot.formatters import format_active_reminder
from momentum.bot.keyboards import reminder_actions_keyboard
from momentum.config import Config
from momentum.db.models import Schedule
from momentum.db.repository import SessionRegistry, UserRepository
from momentum.db.storage import KeyValueStorage
from momentum.engine.scheduler import due_reminders
from momentum.utils.time_utils import now_in

logger = logging.getLogger(__name__)


def mark_notified(schedule: Schedule, reminder_ids: set[str], now: datetime) -> Schedule:
    """Stamp ``last_notified_at`` on the reminders that were just sent."""
    return replace(
        schedule,
        reminders=[
            replace(r, last_notified_at=now) if r.id in reminder_ids else r
            for r in schedule.reminders
        ],
    )


async def notify_user(bot: Bot, repo: UserRepository, lookback: timedelta) -> int:
    """Send one user's due reminders. Returns how many were sent."""
    settings = await repo.settings.load()
    schedule = await repo.schedule.load()
    now = now_in(settings.timezone)

    due = due_reminders(schedule, now, lookback)
    if not due:
        return 0

    sent: set[str] = set()
    for active in due:
        try:
            await bot.send_message(
                chat_id=repo.chat_id,
                text=format_active_reminder(active, now),
                parse_mode="HTML",
                reply_markup=reminder_actions_keyboard(active.reminder),
            )
            sent.add(active.reminder.id)
            logger.info(f"Sent reminder {active.reminder.id} to {repo.chat_id}")
        except TelegramError as e:
            # Not marked as notified, the next heartbeat retries while in lookback
            logger.error(f"Failed to send reminder {active.reminder.id}: {e}")

    if sent:
        await repo.schedule.save(mark_notified(schedule, sent, now))

    return len(sent)


async def heartbeat(bot: Bot, storage: KeyValueStorage) -> None:
    """Heartbeat job that checks every user for due reminders.

    This runs every HEARTBEAT_INTERVAL seconds and:
    1. Loads each registered user's schedule
    2. Sends reminders whose trigger time has arrived
    3. Records the send so the same trigger is not sent twice
    """
    lookback = timedelta(seconds=2 * Config.HEARTBEAT_INTERVAL)

    try:
        chat_ids = await SessionRegistry(storage).all()
    except Exception as e:
        logger.error(f"Heartbeat error: {e}")
        return

    total = 0
    for chat_id in chat_ids:
        repo = UserRepository(storage, chat_id, Config.default_settings())
        try:
            total += await notify_user(bot, repo, lookback)
        except Exception as e:
            logger.error(f"Error processing reminders for {chat_id}: {e}")
            continue

    if total:
        logger.info(f"Heartbeat: sent {total} reminders")
