from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from telegram.ext import Application, CallbackContext

from birthday_boi.announcements import TelegramAnnouncementSink
from birthday_boi.bot_handlers import HandlerDependencies, build_handlers, error_handler
from birthday_boi.ledger import AnnouncementLedger
from birthday_boi.scheduler import BirthdayScheduler
from birthday_boi.settings import load_settings
from birthday_boi.store import BirthdayStore

LOGGER = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # python-telegram-bot logs every long-polling request through httpx.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def seconds_until_next_tick(now: datetime, interval_seconds: int) -> float:
    """Delay until the next multiple of ``interval_seconds`` since the epoch.

    With the default hourly interval this lands on the top of the next hour.
    """
    elapsed = now.timestamp() % interval_seconds
    return interval_seconds - elapsed


async def scheduled_scan_callback(context: CallbackContext) -> None:
    scheduler: BirthdayScheduler = context.application.bot_data["scheduler"]
    await scheduler.run_scan(datetime.now(timezone.utc))


async def startup(application: Application) -> None:
    store: BirthdayStore = application.bot_data["store"]
    await store.initialize()

    if application.bot_data["settings"].scan_on_startup:
        scheduler: BirthdayScheduler = application.bot_data["scheduler"]
        await scheduler.run_scan(datetime.now(timezone.utc))


def main() -> None:
    configure_logging()

    settings = load_settings()
    _ensure_parent(settings.database_path)

    application = Application.builder().token(settings.telegram_bot_token).post_init(startup).build()

    store = BirthdayStore(settings.database_path)
    sink = TelegramAnnouncementSink(application.bot)
    scheduler = BirthdayScheduler(
        store=store,
        ledger=AnnouncementLedger(started_at=datetime.now(timezone.utc)),
        sink=sink,
    )

    application.bot_data["settings"] = settings
    application.bot_data["store"] = store
    application.bot_data["scheduler"] = scheduler
    application.bot_data["handler_deps"] = HandlerDependencies(
        store=store,
        scheduler=scheduler,
        sink=sink,
    )

    for handler in build_handlers():
        application.add_handler(handler)
    application.add_error_handler(error_handler)

    first = seconds_until_next_tick(datetime.now(timezone.utc), settings.scan_interval_seconds)
    application.job_queue.run_repeating(
        scheduled_scan_callback,
        interval=settings.scan_interval_seconds,
        first=first,
        name="birthday-scan",
    )
    LOGGER.info(
        "Birthday scans scheduled every %s seconds, first in %.0f seconds",
        settings.scan_interval_seconds,
        first,
    )

    application.run_polling()


if __name__ == "__main__":
    main()
