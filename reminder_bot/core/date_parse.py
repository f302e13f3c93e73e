"""Free-text date parsing for dialog steps.

parse_date() never raises: it returns None when nothing matches so that the
calling step can re-prompt with examples.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Callable

from reminder_bot.core.recurrence import day_in_week, start_of_week

_RELATIVE_KEYWORDS: dict[str, int] = {
    "today": 0,
    "tomorrow": 1,
    "day after tomorrow": 2,
}

WEEKDAY_ALIASES: dict[str, int] = {
    "monday": 0,
    "mon": 0,
    "tuesday": 1,
    "tue": 1,
    "tues": 1,
    "wednesday": 2,
    "wed": 2,
    "thursday": 3,
    "thu": 3,
    "thur": 3,
    "thurs": 3,
    "friday": 4,
    "fri": 4,
    "saturday": 5,
    "sat": 5,
    "sunday": 6,
    "sun": 6,
}

_MONTH_NAMES: dict[str, int] = {
    "january": 1,
    "february": 2,
    "march": 3,
    "april": 4,
    "may": 5,
    "june": 6,
    "july": 7,
    "august": 8,
    "september": 9,
    "october": 10,
    "november": 11,
    "december": 12,
}
_MONTH_ABBREVIATIONS: dict[str, int] = {name[:3]: number for name, number in _MONTH_NAMES.items()}
_MONTH_ABBREVIATIONS["sept"] = 9

_NEXT_WEEKDAY_RE = re.compile(r"^next\s+(?P<weekday>[a-z]+)$")
_ISO_RE = re.compile(r"^(?P<year>\d{4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})$")
_DASH_RE = re.compile(r"^(?P<a>\d{1,2})-(?P<b>\d{1,2})-(?P<year>\d{4})$")
_SLASH_RE = re.compile(r"^(?P<a>\d{1,2})/(?P<b>\d{1,2})/(?P<year>\d{4})$")
_MONTH_NAME_RE = re.compile(
    r"^(?P<month>[a-z]+)\.?\s+(?P<day>\d{1,2})(?:st|nd|rd|th)?(?:,?\s+(?P<year>\d{4}))?$"
)

DATE_EXAMPLES = "today, tomorrow, next monday, friday, 2026-12-25, 25/12/2026, December 25"


def _normalize(text: str) -> str:
    return " ".join((text or "").strip().lower().split())


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _parse_iso(raw: str, today: date) -> date | None:
    match = _ISO_RE.match(raw)
    if not match:
        return None
    return _safe_date(int(match.group("year")), int(match.group("month")), int(match.group("day")))


def _parse_month_first_dash(raw: str, today: date) -> date | None:
    match = _DASH_RE.match(raw)
    if not match:
        return None
    return _safe_date(int(match.group("year")), int(match.group("a")), int(match.group("b")))


def _parse_day_first_dash(raw: str, today: date) -> date | None:
    match = _DASH_RE.match(raw)
    if not match:
        return None
    return _safe_date(int(match.group("year")), int(match.group("b")), int(match.group("a")))


def _parse_day_first_slash(raw: str, today: date) -> date | None:
    match = _SLASH_RE.match(raw)
    if not match:
        return None
    return _safe_date(int(match.group("year")), int(match.group("b")), int(match.group("a")))


def _parse_month_first_slash(raw: str, today: date) -> date | None:
    match = _SLASH_RE.match(raw)
    if not match:
        return None
    return _safe_date(int(match.group("year")), int(match.group("a")), int(match.group("b")))


def _parse_month_name(raw: str, today: date) -> date | None:
    match = _MONTH_NAME_RE.match(raw)
    if not match:
        return None
    token = match.group("month")
    month = _MONTH_NAMES.get(token) or _MONTH_ABBREVIATIONS.get(token)
    if month is None:
        return None
    day = int(match.group("day"))
    if match.group("year"):
        return _safe_date(int(match.group("year")), month, day)
    return _roll_yearless(today, month, day)


def _roll_yearless(today: date, month: int, day: int) -> date | None:
    """Current year first; next year when that is already behind us."""
    candidate = _safe_date(today.year, month, day)
    if candidate is not None and candidate >= today:
        return candidate
    # Feb 29 can skip several years before it exists again.
    for offset in range(1, 5):
        candidate = _safe_date(today.year + offset, month, day)
        if candidate is not None:
            return candidate
    return None


# Tried in order; the first format that matches wins.
_EXPLICIT_FORMATS: tuple[Callable[[str, date], date | None], ...] = (
    _parse_iso,
    _parse_month_first_dash,
    _parse_day_first_dash,
    _parse_day_first_slash,
    _parse_month_first_slash,
    _parse_month_name,
)


def parse_date(text: str, now: datetime) -> date | None:
    """Resolve user text to a calendar date relative to ``now`` (user-local)."""
    raw = _normalize(text)
    if not raw:
        return None
    today = now.date()

    offset = _RELATIVE_KEYWORDS.get(raw)
    if offset is not None:
        return today + timedelta(days=offset)

    next_match = _NEXT_WEEKDAY_RE.match(raw)
    if next_match:
        weekday = WEEKDAY_ALIASES.get(next_match.group("weekday"))
        if weekday is None:
            return None
        next_week_start = start_of_week(today) + timedelta(weeks=1)
        return next_week_start + timedelta(days=day_in_week(weekday))

    weekday = WEEKDAY_ALIASES.get(raw)
    if weekday is not None:
        return today + timedelta(days=(weekday - today.weekday()) % 7)

    for parser in _EXPLICIT_FORMATS:
        parsed = parser(raw, today)
        if parsed is not None:
            return parsed
    return None
