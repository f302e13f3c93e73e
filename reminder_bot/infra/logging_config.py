"""Process logging for the reminder bot.

Records go to stderr and, when ``LOG_FILE`` is set, to a size-rotated file.
Polling, HTTP and scheduler internals are held at WARNING so the delivery
and dialog lines stay readable.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3

LIBRARY_LOGGERS = ("httpx", "httpcore", "telegram", "telegram.ext", "apscheduler")

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogOptions:
    level: int = logging.INFO
    file_path: Path | None = None

    @classmethod
    def from_env(cls) -> "LogOptions":
        name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
        level = logging.getLevelName(name)
        raw_path = os.getenv("LOG_FILE", "").strip()
        return cls(
            level=level if isinstance(level, int) else logging.INFO,
            file_path=Path(raw_path) if raw_path else None,
        )


def _file_handler(path: Path) -> logging.Handler | None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(
            path,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
    except OSError as exc:
        LOGGER.warning("Log file unavailable, using stderr only: path=%s error=%s", path, exc)
        return None


def configure_logging(*, level: int | None = None, log_file: str | None = None) -> LogOptions:
    """Install the bot's handlers on the root logger, replacing any already there.

    Explicit arguments win over ``LOG_LEVEL``/``LOG_FILE``; an empty ``log_file``
    disables file output even when the variable is set.
    """
    options = LogOptions.from_env()
    if level is not None:
        options = LogOptions(level=level, file_path=options.file_path)
    if log_file is not None:
        options = LogOptions(level=options.level, file_path=Path(log_file) if log_file else None)

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(options.level)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if options.file_path is not None:
        file_handler = _file_handler(options.file_path)
        if file_handler is not None:
            handlers.append(file_handler)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(options.level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return options
