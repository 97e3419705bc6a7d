"""Main entry point for the Momentum bot."""

import logging
import sys

from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes

from momentum.bot.callbacks import callback_router
from momentum.bot.handlers import (
    anchor_command,
    anchors_command,
    delete_command,
    duplicate_command,
    dnd_command,
    estimate_command,
    help_command,
    learning_command,
    log_command,
    move_command,
    pause_command,
    remind_command,
    reminders_command,
    resume_command,
    start_command,
    stats_command,
    undo_command,
)
from momentum.config import Config
from momentum.db.storage import SqliteStorage
from momentum.engine.nag_engine import heartbeat
from momentum.utils.error_handler import error_handler

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)

COMMANDS = {
    "start": start_command,
    "help": help_command,
    "reminders": reminders_command,
    "remind": remind_command,
    "anchor": anchor_command,
    "anchors": anchors_command,
    "move": move_command,
    "duplicate": duplicate_command,
    "delete": delete_command,
    "dnd": dnd_command,
    "pause": pause_command,
    "resume": resume_command,
    "undo": undo_command,
    "log": log_command,
    "estimate": estimate_command,
    "learning": learning_command,
    "stats": stats_command,
}


async def heartbeat_job(context: "ContextTypes.DEFAULT_TYPE") -> None:
    """Job callback for the heartbeat."""
    await heartbeat(context.bot, context.bot_data["storage"])


async def post_init(application: Application) -> None:
    """Initialize bot resources after application is created."""
    storage = SqliteStorage(Config.DATABASE_PATH)
    await storage.connect()
    application.bot_data["storage"] = storage

    job_queue = application.job_queue
    if job_queue:
        job_queue.run_repeating(
            heartbeat_job,
            interval=Config.HEARTBEAT_INTERVAL,
            first=10,
            name="heartbeat",
        )
        logger.info(f"Heartbeat job scheduled (interval: {Config.HEARTBEAT_INTERVAL}s)")
    else:
        logger.warning("No job queue available, reminders will not be delivered")

    logger.info("Momentum initialized successfully")


async def post_shutdown(application: Application) -> None:
    """Cleanup resources on shutdown."""
    storage: SqliteStorage | None = application.bot_data.get("storage")
    if storage:
        await storage.close()

    logger.info("Momentum shut down")


def main() -> None:
    """Start the bot."""
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    application = (
        Application.builder()
        .token(Config.TELEGRAM_BOT_TOKEN)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    for name, callback in COMMANDS.items():
        application.add_handler(CommandHandler(name, callback))

    # Callback queries (buttons)
    application.add_handler(CallbackQueryHandler(callback_router))

    application.add_error_handler(error_handler)

    logger.info("Starting Momentum bot...")
    application.run_polling(allowed_updates=["message", "callback_query"])


if __name__ == "__main__":
    main()
