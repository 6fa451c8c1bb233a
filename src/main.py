"""Kan reminder scheduler entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal

from config import settings
from logging_config import configure_logging
from reminders.ledger import ReminderLedger, SqlAlchemyReminderStore
from reminders.scheduler import ReminderScheduler
from reminders.vagueness import VaguenessClassifier
from services.database import get_session_factory, init_db
from services.kan import KanClient
from services.link_store import SqlAlchemyLinkRepository
from services.telegram import TelegramClient

logger = logging.getLogger(__name__)


def _ensure_llm_env() -> None:
    """Bridge config secrets into env for SDKs that only read env vars."""
    if settings.anthropic_api_key and not os.environ.get("ANTHROPIC_API_KEY"):
        os.environ["ANTHROPIC_API_KEY"] = settings.anthropic_api_key


def build_scheduler() -> ReminderScheduler:
    """Wire the scheduler to its production collaborators."""
    session_factory = get_session_factory()
    return ReminderScheduler(
        source=KanClient(),
        links=SqlAlchemyLinkRepository(session_factory),
        ledger=ReminderLedger(SqlAlchemyReminderStore(session_factory)),
        classifier=VaguenessClassifier(),
        sink=TelegramClient(),
    )


async def _wait_for_shutdown() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop.set)
        except NotImplementedError:
            # Platforms without signal handler support fall back to KeyboardInterrupt.
            pass
    await stop.wait()


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Kan task reminder scheduler")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single reminder tick and exit",
    )
    parser.add_argument(
        "--prune",
        action="store_true",
        help="Prune old reminder records and exit",
    )
    args = parser.parse_args()

    configure_logging(level=settings.log_level, json_output=settings.log_json)

    missing = settings.missing_credentials()
    if missing:
        logger.error("FATAL: missing required configuration: %s", ", ".join(missing))
        raise SystemExit(1)

    _ensure_llm_env()

    logger.info("Kan reminder scheduler starting...")
    logger.info("Kan URL: %s", settings.kan.base_url)
    logger.info("Database: %s", settings.database.url.split("@")[-1])

    await init_db()
    scheduler = build_scheduler()

    if args.prune:
        removed = await scheduler.prune()
        logger.info("Prune complete: %s records removed", removed)
        return

    if args.once:
        summary = await scheduler.run_tick()
        logger.info("Single tick complete: %s reminders sent", summary.sent)
        return

    scheduler.start()
    try:
        await _wait_for_shutdown()
        logger.info("Shutting down...")
    finally:
        await scheduler.close()


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
