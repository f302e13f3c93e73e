from __future__ import annotations

import logging
import sqlite3

from telegram.ext import Application

from reminder_bot.bot.dispatch_loop import DispatchLoop
from reminder_bot.bot.handlers import register_handlers
from reminder_bot.bot.service import BotService
from reminder_bot.core.app_scheduler import AppScheduler, schedule_core_jobs
from reminder_bot.core.delivery import DeliveryLoop
from reminder_bot.core.flow_engine import FlowContext, FlowSettings
from reminder_bot.core.flows.registry import build_flow_engine
from reminder_bot.core.message_lifecycle import MessageLifecycleManager
from reminder_bot.core.renewal_monitor import RenewalMonitor
from reminder_bot.core.session_manager import SessionManager
from reminder_bot.core.session_repository import InMemorySessionRepository
from reminder_bot.infra.config import Settings, load_settings, validate_startup_env
from reminder_bot.infra.logging_config import configure_logging
from reminder_bot.infra.messaging import TelegramChannel
from reminder_bot.infra.reminder_store import ReminderStore
from reminder_bot.infra.user_store import UserStore

LOGGER = logging.getLogger(__name__)


def build_application(settings: Settings) -> Application:
    try:
        store = ReminderStore(settings.db_path)
        users = UserStore(settings.db_path, default_timezone=settings.default_timezone)
    except sqlite3.Error as exc:
        LOGGER.exception("Startup failed: cannot open database path=%s", settings.db_path)
        raise SystemExit(f"Cannot open database: {exc}") from exc

    application = Application.builder().token(settings.bot_token).build()
    scheduler = AppScheduler()
    lifecycle = MessageLifecycleManager(
        TelegramChannel(application.bot),
        scheduler,
        delete_after_seconds=settings.ephemeral_delete_seconds,
    )
    engine = build_flow_engine(
        FlowContext(
            store=store,
            users=users,
            settings=FlowSettings(recurrence_weeks=settings.recurrence_weeks),
        )
    )
    sessions = SessionManager(
        InMemorySessionRepository(),
        engine,
        timeout_seconds=settings.session_timeout_seconds,
    )
    service = BotService(store, users, sessions)
    dispatch_loop = DispatchLoop(service, lifecycle, maxsize=settings.inbound_queue_size)
    delivery = DeliveryLoop(store, users, lifecycle, retention_days=settings.retention_days)
    monitor = RenewalMonitor(
        store,
        users,
        sessions,
        lifecycle,
        low_threshold=settings.renewal_low_threshold,
        critical_threshold=settings.renewal_critical_threshold,
        weeks=settings.recurrence_weeks,
    )

    application.bot_data["settings"] = settings
    application.bot_data["store"] = store
    application.bot_data["users"] = users
    application.bot_data["sessions"] = sessions
    application.bot_data["lifecycle"] = lifecycle
    application.bot_data["app_scheduler"] = scheduler
    application.bot_data["dispatch_loop"] = dispatch_loop

    async def _post_init(app: Application) -> None:
        dispatch_loop.start()
        scheduler.start()
        schedule_core_jobs(
            scheduler,
            delivery=delivery,
            monitor=monitor,
            lifecycle=lifecycle,
            settings=settings,
        )

    async def _post_shutdown(app: Application) -> None:
        await dispatch_loop.stop()
        scheduler.shutdown(wait=False)
        store.close()
        users.close()

    application.post_init = _post_init
    application.post_shutdown = _post_shutdown
    register_handlers(application)
    return application


def main() -> None:
    configure_logging()
    try:
        settings = load_settings()
    except (RuntimeError, ValueError) as exc:
        LOGGER.exception("Startup failed: %s", exc)
        raise SystemExit(str(exc)) from exc
    validate_startup_env(settings, logger=LOGGER)
    application = build_application(settings)
    LOGGER.info(
        "Reminder bot starting: db_path=%s default_timezone=%s dry_run=%s",
        settings.db_path,
        settings.default_timezone,
        settings.dry_run,
    )
    if settings.dry_run:
        LOGGER.info("DRY_RUN enabled: not polling Telegram")
        return
    application.run_polling()


if __name__ == "__main__":
    main()
