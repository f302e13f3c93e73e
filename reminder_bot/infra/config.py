from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

LOGGER = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("data/reminders.db")
DEFAULT_TIMEZONE = "Asia/Kolkata"
DRY_RUN_TOKEN = "000000:DRY_RUN_TOKEN"


@dataclass(frozen=True)
class Settings:
    bot_token: str
    db_path: Path
    default_timezone: str
    session_timeout_seconds: int
    delivery_tick_seconds: int
    renewal_check_hours: int
    renewal_low_threshold: int
    renewal_critical_threshold: int
    recurrence_weeks: int
    ephemeral_delete_seconds: int
    lifecycle_sweep_seconds: int
    retention_days: int
    inbound_queue_size: int
    dry_run: bool


def validate_startup_env(
    settings: Settings,
    *,
    logger: logging.Logger | None = None,
) -> None:
    log = logger or LOGGER
    if not settings.dry_run and (not settings.bot_token or settings.bot_token == DRY_RUN_TOKEN):
        log.error("startup.env invalid: BOT_TOKEN missing")
        raise SystemExit("BOT_TOKEN is not set")
    try:
        ZoneInfo(settings.default_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        log.error("startup.env invalid: DEFAULT_TIMEZONE=%s", settings.default_timezone)
        raise SystemExit("DEFAULT_TIMEZONE is not a known IANA zone")
    if settings.renewal_critical_threshold > settings.renewal_low_threshold:
        log.warning(
            "startup.env renewal thresholds inverted: low=%s critical=%s",
            settings.renewal_low_threshold,
            settings.renewal_critical_threshold,
        )


def load_settings() -> Settings:
    load_dotenv()

    env = os.environ
    dry_run = _parse_optional_bool(env.get("DRY_RUN")) is True

    token = env.get("BOT_TOKEN")
    if not token:
        if dry_run:
            # Placeholder keeps Application.builder() happy without real credentials.
            token = DRY_RUN_TOKEN
        else:
            raise RuntimeError("BOT_TOKEN is not set")

    db_path = Path(env.get("BOT_DB_PATH", DEFAULT_DB_PATH))
    db_path.parent.mkdir(parents=True, exist_ok=True)
    default_timezone = (env.get("DEFAULT_TIMEZONE") or DEFAULT_TIMEZONE).strip()
    return Settings(
        bot_token=token,
        db_path=db_path,
        default_timezone=default_timezone,
        session_timeout_seconds=_parse_int_with_default(env.get("SESSION_TIMEOUT_SECONDS"), 900),
        delivery_tick_seconds=max(1, _parse_int_with_default(env.get("DELIVERY_TICK_SECONDS"), 60)),
        renewal_check_hours=max(1, _parse_int_with_default(env.get("RENEWAL_CHECK_HOURS"), 6)),
        renewal_low_threshold=_parse_int_with_default(env.get("RENEWAL_LOW_THRESHOLD"), 5),
        renewal_critical_threshold=_parse_int_with_default(env.get("RENEWAL_CRITICAL_THRESHOLD"), 2),
        recurrence_weeks=max(1, _parse_int_with_default(env.get("RECURRENCE_WEEKS"), 4)),
        ephemeral_delete_seconds=_parse_int_with_default(env.get("EPHEMERAL_DELETE_SECONDS"), 600),
        lifecycle_sweep_seconds=max(
            1, _parse_int_with_default(env.get("LIFECYCLE_SWEEP_SECONDS"), 300)
        ),
        retention_days=_parse_int_with_default(env.get("RETENTION_DAYS"), 7),
        inbound_queue_size=max(1, _parse_int_with_default(env.get("INBOUND_QUEUE_SIZE"), 100)),
        dry_run=dry_run,
    )


def _parse_optional_bool(value: str | None) -> bool | None:
    if value is None:
        return None
    trimmed = value.strip().lower()
    if not trimmed:
        return None
    return trimmed in {"1", "true", "yes", "on"}


def _parse_int_with_default(value: str | None, default: int) -> int:
    if value is None:
        return default
    trimmed = value.strip()
    if not trimmed:
        return default
    return int(trimmed)
