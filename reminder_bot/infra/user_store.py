from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from reminder_bot.core.models import UserAccount
from reminder_bot.infra.config import DEFAULT_TIMEZONE
from reminder_bot.infra.reminder_store import StoreError

LOGGER = logging.getLogger(__name__)


def is_valid_timezone(name: str | None) -> bool:
    if not name:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


class UserStore:
    """User accounts and the per-user timezone resolver."""

    def __init__(self, db_path: Path | str, *, default_timezone: str = DEFAULT_TIMEZONE) -> None:
        self._db_path = db_path
        self._default_timezone = default_timezone
        self._connection = sqlite3.connect(db_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = asyncio.Lock()
        self._ensure_schema()

    @property
    def default_timezone(self) -> str:
        return self._default_timezone

    def _ensure_schema(self) -> None:
        self._connection.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                owner_id TEXT PRIMARY KEY,
                display_name TEXT NOT NULL,
                timezone TEXT,
                last_activity_at TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        self._connection.commit()

    async def touch(
        self,
        owner_id: str,
        display_name: str,
        now: datetime | None = None,
    ) -> UserAccount:
        """Create the account on first contact, refresh activity afterwards."""
        current = (now or datetime.now(timezone.utc)).isoformat()
        async with self._lock:
            try:
                with self._connection:
                    self._connection.execute(
                        """
                        INSERT INTO users (owner_id, display_name, timezone, last_activity_at, created_at)
                        VALUES (?, ?, NULL, ?, ?)
                        ON CONFLICT(owner_id) DO UPDATE SET
                            display_name = excluded.display_name,
                            last_activity_at = excluded.last_activity_at
                        """,
                        (owner_id, display_name, current, current),
                    )
                row = self._fetch_row(owner_id)
            except sqlite3.Error as exc:
                LOGGER.exception("User touch failed: owner_id=%s", owner_id)
                raise StoreError("touch failed") from exc
        return _row_to_account(row)

    async def get(self, owner_id: str) -> UserAccount | None:
        async with self._lock:
            try:
                row = self._fetch_row(owner_id)
            except sqlite3.Error as exc:
                raise StoreError("get user failed") from exc
        return _row_to_account(row) if row is not None else None

    async def set_timezone(self, owner_id: str, timezone_name: str) -> bool:
        if not is_valid_timezone(timezone_name):
            return False
        async with self._lock:
            try:
                with self._connection:
                    cursor = self._connection.execute(
                        "UPDATE users SET timezone = ? WHERE owner_id = ?",
                        (timezone_name, owner_id),
                    )
            except sqlite3.Error as exc:
                raise StoreError("set timezone failed") from exc
        if cursor.rowcount:
            LOGGER.info("User timezone set: owner_id=%s timezone=%s", owner_id, timezone_name)
        return cursor.rowcount > 0

    async def resolve_timezone(self, owner_id: str) -> str:
        """IANA zone for the owner; falls back to the configured default."""
        account = await self.get(owner_id)
        if account is not None and is_valid_timezone(account.timezone):
            return account.timezone
        return self._default_timezone

    async def resolve_zone(self, owner_id: str) -> ZoneInfo:
        return ZoneInfo(await self.resolve_timezone(owner_id))

    def close(self) -> None:
        try:
            self._connection.close()
        except sqlite3.Error:
            LOGGER.exception("Failed to close database connection")

    def _fetch_row(self, owner_id: str) -> sqlite3.Row | None:
        return self._connection.execute(
            "SELECT * FROM users WHERE owner_id = ?", (owner_id,)
        ).fetchone()


def _row_to_account(row: sqlite3.Row) -> UserAccount:
    return UserAccount(
        owner_id=row["owner_id"],
        display_name=row["display_name"],
        timezone=row["timezone"],
        last_activity_at=datetime.fromisoformat(row["last_activity_at"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )
