"""Medicine schedule expansion: RecurrenceSpec -> concrete Reminder rows.

A series is expanded over whole calendar weeks that start on Sunday. The
first window starts at the Sunday of the current week; renewals continue from the
series' ``window_end``. Candidates already in the past are dropped.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable

from reminder_bot.core.models import Frequency, Reminder, SeriesRecord
from reminder_bot.core.time_parse import format_clock

DEFAULT_WINDOW_WEEKS = 4
ALL_WEEKDAYS: tuple[int, ...] = (0, 1, 2, 3, 4, 5, 6)
WORK_WEEKDAYS: tuple[int, ...] = (0, 1, 2, 3, 4)
WEEKDAY_NAMES: tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


@dataclass(frozen=True)
class RecurrenceSpec:
    series_key: str
    name: str
    frequency: Frequency
    times: tuple[time, ...]
    weekdays: tuple[int, ...]


@dataclass(frozen=True)
class Expansion:
    reminders: tuple[Reminder, ...]
    window_start: date
    window_end: date


def new_series_key() -> str:
    return uuid.uuid4().hex


def medicine_message(name: str) -> str:
    return f"💊 Take {name}"


def day_in_week(weekday: int) -> int:
    """Offset of a Python weekday (Monday=0) from the Sunday that opens its week."""
    return (weekday + 1) % 7


def start_of_week(day: date) -> date:
    return day - timedelta(days=day_in_week(day.weekday()))


def window_weeks(frequency: Frequency, weeks: int = DEFAULT_WINDOW_WEEKS) -> int:
    return 1 if frequency == Frequency.ONCE else weeks


def derive_weekdays(
    frequency: Frequency,
    chosen: Iterable[int] = (),
    today: date | None = None,
) -> tuple[int, ...]:
    if frequency == Frequency.DAILY:
        return ALL_WEEKDAYS
    if frequency == Frequency.WEEKDAYS:
        return WORK_WEEKDAYS
    if frequency == Frequency.SPECIFIC:
        return tuple(sorted(set(chosen)))
    if today is None:
        raise ValueError("today is required for a one-time schedule")
    return (today.weekday(),)


def build_spec(
    name: str,
    frequency: Frequency,
    times: Iterable[time],
    chosen_weekdays: Iterable[int] = (),
    *,
    now: datetime,
    series_key: str | None = None,
) -> RecurrenceSpec:
    unique_times = tuple(sorted({value.replace(second=0, microsecond=0) for value in times}))
    if not unique_times:
        raise ValueError("at least one time of day is required")
    weekdays = derive_weekdays(frequency, chosen_weekdays, now.date())
    if not weekdays:
        raise ValueError("at least one weekday is required")
    return RecurrenceSpec(
        series_key=series_key or new_series_key(),
        name=name,
        frequency=frequency,
        times=unique_times,
        weekdays=weekdays,
    )


def spec_from_series(series: SeriesRecord) -> RecurrenceSpec:
    return RecurrenceSpec(
        series_key=series.series_key,
        name=series.name,
        frequency=series.frequency,
        times=tuple(time.fromisoformat(value) for value in series.times),
        weekdays=tuple(series.weekdays),
    )


def series_record(
    spec: RecurrenceSpec,
    expansion: Expansion,
    *,
    owner_id: str,
    chat_id: str,
    display_name: str,
) -> SeriesRecord:
    return SeriesRecord(
        series_key=spec.series_key,
        owner_id=owner_id,
        chat_id=chat_id,
        display_name=display_name,
        name=spec.name,
        frequency=spec.frequency,
        weekdays=spec.weekdays,
        times=tuple(format_clock(value) for value in spec.times),
        window_end=expansion.window_end,
    )


def expand(
    spec: RecurrenceSpec,
    *,
    now: datetime,
    owner_id: str,
    chat_id: str,
    display_name: str,
    window_start: date | None = None,
    weeks: int = DEFAULT_WINDOW_WEEKS,
) -> Expansion:
    """Expand ``spec`` into reminders for every (week, weekday, time) in the window.

    ``now`` must be timezone-aware in the owner's zone; candidates are built in
    that zone and stored as UTC. Anything strictly before ``now`` is skipped.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    tz = now.tzinfo
    start = window_start or start_of_week(now.date())
    span = window_weeks(spec.frequency, weeks)
    is_recurring = spec.frequency != Frequency.ONCE
    instants: set[datetime] = set()
    for week in range(span):
        week_start = start + timedelta(weeks=week)
        for weekday in spec.weekdays:
            day = week_start + timedelta(days=day_in_week(weekday))
            for value in spec.times:
                candidate = datetime.combine(day, value, tzinfo=tz)
                if candidate < now:
                    continue
                instants.add(candidate.astimezone(timezone.utc))
    reminders = tuple(
        Reminder(
            id=None,
            owner_id=owner_id,
            chat_id=chat_id,
            display_name=display_name,
            message=medicine_message(spec.name),
            scheduled_at=instant,
            is_recurring=is_recurring,
            series_key=spec.series_key,
        )
        for instant in sorted(instants)
    )
    return Expansion(
        reminders=reminders,
        window_start=start,
        window_end=start + timedelta(weeks=span),
    )


def next_window_start(series: SeriesRecord, now: datetime) -> date:
    """Where a renewal continues: the series' window end, never a week already past."""
    return max(series.window_end, start_of_week(now.date()))


def describe_weekdays(weekdays: Iterable[int]) -> str:
    days = tuple(weekdays)
    if days == ALL_WEEKDAYS:
        return "every day"
    if days == WORK_WEEKDAYS:
        return "weekdays"
    return ", ".join(WEEKDAY_NAMES[day] for day in days)
