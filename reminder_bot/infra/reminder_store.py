from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator

from reminder_bot.core.models import Frequency, Reminder, SeriesRecord

LOGGER = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Persistence failure surfaced to callers; wraps sqlite3.Error."""


@contextmanager
def _guard(operation: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        LOGGER.exception("Store operation failed: operation=%s", operation)
        raise StoreError(f"{operation} failed") from exc


def _to_db(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


def _from_db(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class ReminderStore:
    """SQLite persistence for reminders and medicine series.

    All public methods are coroutines serialized by one asyncio.Lock, so the
    delivery loop, the renewal monitor and dialog steps never interleave
    inside a write.
    """

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = db_path
        self._connection = sqlite3.connect(db_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = asyncio.Lock()
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with self._connection:
            self._connection.execute(
                """
                CREATE TABLE IF NOT EXISTS reminders (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    chat_id TEXT NOT NULL,
                    display_name TEXT NOT NULL,
                    message TEXT NOT NULL,
                    scheduled_at TEXT NOT NULL,
                    sent INTEGER NOT NULL DEFAULT 0,
                    is_recurring INTEGER NOT NULL DEFAULT 0,
                    series_key TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            self._connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_reminders_pending ON reminders (sent, scheduled_at)"
            )
            self._connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_reminders_owner ON reminders (owner_id, scheduled_at)"
            )
            self._connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_reminders_series ON reminders (series_key, sent)"
            )
            self._connection.execute(
                """
                CREATE TABLE IF NOT EXISTS series (
                    series_key TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    chat_id TEXT NOT NULL,
                    display_name TEXT NOT NULL,
                    name TEXT NOT NULL,
                    frequency TEXT NOT NULL,
                    weekdays TEXT NOT NULL,
                    times TEXT NOT NULL,
                    window_end TEXT NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1,
                    snoozed_until TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )

    # reminders

    async def create_reminder(self, reminder: Reminder) -> Reminder:
        async with self._lock:
            with _guard("create_reminder"), self._connection:
                return self._insert_reminder(reminder)

    async def get_reminder(self, reminder_id: int) -> Reminder | None:
        async with self._lock:
            with _guard("get_reminder"):
                row = self._connection.execute(
                    "SELECT * FROM reminders WHERE id = ?", (reminder_id,)
                ).fetchone()
        return _row_to_reminder(row) if row is not None else None

    async def get_pending(self, now: datetime) -> list[Reminder]:
        """Unsent reminders due at or before ``now``, oldest first."""
        async with self._lock:
            with _guard("get_pending"):
                rows = self._connection.execute(
                    """
                    SELECT * FROM reminders
                    WHERE sent = 0 AND scheduled_at <= ?
                    ORDER BY scheduled_at ASC, id ASC
                    """,
                    (_to_db(now),),
                ).fetchall()
        return [_row_to_reminder(row) for row in rows]

    async def get_by_owner(self, owner_id: str, limit: int | None = None) -> list[Reminder]:
        """Owner's reminders, latest scheduled first."""
        query = "SELECT * FROM reminders WHERE owner_id = ? ORDER BY scheduled_at DESC, id DESC"
        params: tuple = (owner_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (owner_id, limit)
        async with self._lock:
            with _guard("get_by_owner"):
                rows = self._connection.execute(query, params).fetchall()
        return [_row_to_reminder(row) for row in rows]

    async def get_last_sent(self, owner_id: str) -> Reminder | None:
        async with self._lock:
            with _guard("get_last_sent"):
                row = self._connection.execute(
                    """
                    SELECT * FROM reminders
                    WHERE owner_id = ? AND sent = 1
                    ORDER BY scheduled_at DESC, id DESC
                    LIMIT 1
                    """,
                    (owner_id,),
                ).fetchone()
        return _row_to_reminder(row) if row is not None else None

    async def count_for_owner(self, owner_id: str) -> int:
        async with self._lock:
            with _guard("count_for_owner"):
                row = self._connection.execute(
                    "SELECT COUNT(*) FROM reminders WHERE owner_id = ?", (owner_id,)
                ).fetchone()
        return int(row[0])

    async def mark_sent(self, reminder_id: int) -> bool:
        async with self._lock:
            with _guard("mark_sent"), self._connection:
                cursor = self._connection.execute(
                    "UPDATE reminders SET sent = 1 WHERE id = ? AND sent = 0", (reminder_id,)
                )
        return cursor.rowcount > 0

    async def update_time(self, reminder_id: int, scheduled_at: datetime) -> bool:
        """Move a reminder and make it deliverable again."""
        async with self._lock:
            with _guard("update_time"), self._connection:
                cursor = self._connection.execute(
                    "UPDATE reminders SET scheduled_at = ?, sent = 0 WHERE id = ?",
                    (_to_db(scheduled_at), reminder_id),
                )
        return cursor.rowcount > 0

    async def delete_by_id(self, reminder_id: int, owner_id: str) -> bool:
        async with self._lock:
            with _guard("delete_by_id"), self._connection:
                cursor = self._connection.execute(
                    "DELETE FROM reminders WHERE id = ? AND owner_id = ?",
                    (reminder_id, owner_id),
                )
        return cursor.rowcount > 0

    async def delete_all_for_owner(self, owner_id: str) -> int:
        async with self._lock:
            with _guard("delete_all_for_owner"), self._connection:
                cursor = self._connection.execute(
                    "DELETE FROM reminders WHERE owner_id = ?", (owner_id,)
                )
                self._connection.execute(
                    "UPDATE series SET active = 0 WHERE owner_id = ?", (owner_id,)
                )
        return cursor.rowcount

    async def count_by_series_key(self, series_key: str) -> int:
        """Number of unsent instances left in a series."""
        async with self._lock:
            with _guard("count_by_series_key"):
                row = self._connection.execute(
                    "SELECT COUNT(*) FROM reminders WHERE series_key = ? AND sent = 0",
                    (series_key,),
                ).fetchone()
        return int(row[0])

    async def delete_sent_before(self, cutoff: datetime) -> int:
        async with self._lock:
            with _guard("delete_sent_before"), self._connection:
                cursor = self._connection.execute(
                    "DELETE FROM reminders WHERE sent = 1 AND scheduled_at < ?",
                    (_to_db(cutoff),),
                )
        return cursor.rowcount

    # series

    async def create_series(
        self,
        series: SeriesRecord,
        reminders: Iterable[Reminder],
    ) -> list[Reminder]:
        """Persist a series row and its expanded instances in one transaction."""
        created_at = series.created_at or datetime.now(timezone.utc)
        async with self._lock:
            with _guard("create_series"), self._connection:
                self._connection.execute(
                    """
                    INSERT INTO series (
                        series_key, owner_id, chat_id, display_name, name, frequency,
                        weekdays, times, window_end, active, snoozed_until, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        series.series_key,
                        series.owner_id,
                        series.chat_id,
                        series.display_name,
                        series.name,
                        series.frequency.value,
                        json.dumps(list(series.weekdays)),
                        json.dumps(list(series.times)),
                        series.window_end.isoformat(),
                        1 if series.active else 0,
                        _to_db(series.snoozed_until) if series.snoozed_until else None,
                        _to_db(created_at),
                    ),
                )
                return [self._insert_reminder(item) for item in reminders]

    async def extend_series(
        self,
        series_key: str,
        reminders: Iterable[Reminder],
        window_end: date,
    ) -> list[Reminder]:
        async with self._lock:
            with _guard("extend_series"), self._connection:
                created = [self._insert_reminder(item) for item in reminders]
                self._connection.execute(
                    "UPDATE series SET window_end = ? WHERE series_key = ?",
                    (window_end.isoformat(), series_key),
                )
        return created

    async def get_series(self, series_key: str) -> SeriesRecord | None:
        async with self._lock:
            with _guard("get_series"):
                row = self._connection.execute(
                    "SELECT * FROM series WHERE series_key = ?", (series_key,)
                ).fetchone()
        return _row_to_series(row) if row is not None else None

    async def list_series_remaining(self) -> list[tuple[SeriesRecord, int]]:
        """Active recurring series paired with their count of unsent instances."""
        async with self._lock:
            with _guard("list_series_remaining"):
                rows = self._connection.execute(
                    """
                    SELECT s.*, COUNT(r.id) AS remaining
                    FROM series s
                    JOIN reminders r ON r.series_key = s.series_key AND r.sent = 0
                    WHERE s.active = 1 AND s.frequency != ?
                    GROUP BY s.series_key
                    ORDER BY s.created_at ASC
                    """,
                    (Frequency.ONCE.value,),
                ).fetchall()
        return [(_row_to_series(row), int(row["remaining"])) for row in rows]

    async def stop_series(self, series_key: str) -> int:
        """Delete the unsent instances of one series and deactivate it."""
        async with self._lock:
            with _guard("stop_series"), self._connection:
                cursor = self._connection.execute(
                    "DELETE FROM reminders WHERE series_key = ? AND sent = 0", (series_key,)
                )
                self._connection.execute(
                    "UPDATE series SET active = 0 WHERE series_key = ?", (series_key,)
                )
        return cursor.rowcount

    async def snooze_series(self, series_key: str, until: datetime) -> None:
        async with self._lock:
            with _guard("snooze_series"), self._connection:
                self._connection.execute(
                    "UPDATE series SET snoozed_until = ? WHERE series_key = ?",
                    (_to_db(until), series_key),
                )

    def close(self) -> None:
        try:
            self._connection.close()
        except sqlite3.Error:
            LOGGER.exception("Failed to close database connection")

    def _insert_reminder(self, reminder: Reminder) -> Reminder:
        created_at = reminder.created_at or datetime.now(timezone.utc)
        cursor = self._connection.execute(
            """
            INSERT INTO reminders (
                owner_id, chat_id, display_name, message, scheduled_at,
                sent, is_recurring, series_key, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                reminder.owner_id,
                reminder.chat_id,
                reminder.display_name,
                reminder.message,
                _to_db(reminder.scheduled_at),
                1 if reminder.sent else 0,
                1 if reminder.is_recurring else 0,
                reminder.series_key,
                _to_db(created_at),
            ),
        )
        return replace(reminder, id=cursor.lastrowid, created_at=created_at)


def _row_to_reminder(row: sqlite3.Row) -> Reminder:
    return Reminder(
        id=int(row["id"]),
        owner_id=row["owner_id"],
        chat_id=row["chat_id"],
        display_name=row["display_name"],
        message=row["message"],
        scheduled_at=_from_db(row["scheduled_at"]),
        sent=bool(row["sent"]),
        is_recurring=bool(row["is_recurring"]),
        series_key=row["series_key"],
        created_at=_from_db(row["created_at"]),
    )


def _row_to_series(row: sqlite3.Row) -> SeriesRecord:
    return SeriesRecord(
        series_key=row["series_key"],
        owner_id=row["owner_id"],
        chat_id=row["chat_id"],
        display_name=row["display_name"],
        name=row["name"],
        frequency=Frequency(row["frequency"]),
        weekdays=tuple(int(item) for item in json.loads(row["weekdays"])),
        times=tuple(str(item) for item in json.loads(row["times"])),
        window_end=date.fromisoformat(row["window_end"]),
        active=bool(row["active"]),
        snoozed_until=_from_db(row["snoozed_until"]),
        created_at=_from_db(row["created_at"]),
    )
