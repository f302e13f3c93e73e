from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKDAYS = "weekdays"
    SPECIFIC = "specific"
    ONCE = "once"


@dataclass(frozen=True)
class Reminder:
    """One scheduled notification. ``scheduled_at`` is always timezone-aware UTC."""

    id: int | None
    owner_id: str
    chat_id: str
    display_name: str
    message: str
    scheduled_at: datetime
    sent: bool = False
    is_recurring: bool = False
    series_key: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class SeriesRecord:
    """Persisted description of a recurring medicine series.

    ``series_key`` is an opaque generated id; the readable fields live next to
    it so that two series can never collide on a textual key.
    ``window_end`` is the local Sunday on which the next expansion window
    starts.
    """

    series_key: str
    owner_id: str
    chat_id: str
    display_name: str
    name: str
    frequency: Frequency
    weekdays: tuple[int, ...]
    times: tuple[str, ...]
    window_end: date
    active: bool = True
    snoozed_until: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_recurring(self) -> bool:
        return self.frequency != Frequency.ONCE


@dataclass(frozen=True)
class UserAccount:
    owner_id: str
    display_name: str
    timezone: str | None
    last_activity_at: datetime
    created_at: datetime
