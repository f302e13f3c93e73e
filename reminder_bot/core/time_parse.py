from __future__ import annotations

import re
from datetime import date, datetime, time, tzinfo

NAMED_TIMES: dict[str, time] = {
    "morning": time(9, 0),
    "noon": time(12, 0),
    "afternoon": time(14, 0),
    "evening": time(18, 0),
    "night": time(21, 0),
    "midnight": time(0, 0),
}

TIME_EXAMPLES = "9:30 AM, 2pm, 14:30, 18, morning, evening"

_MERIDIEM_RE = re.compile(r"^(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?\s*(?P<ampm>[ap])\.?\s*m\.?$")
_CLOCK_RE = re.compile(r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})$")
_BARE_HOUR_RE = re.compile(r"^(?P<hour>\d{1,2})$")


def parse_time_of_day(text: str) -> time | None:
    """Named time, 12-hour with meridiem, 24-hour clock or bare hour; None otherwise."""
    raw = " ".join((text or "").strip().lower().split())
    if not raw:
        return None
    named = NAMED_TIMES.get(raw)
    if named is not None:
        return named

    match = _MERIDIEM_RE.match(raw)
    if match:
        hour = int(match.group("hour"))
        minute = int(match.group("minute") or 0)
        if not 1 <= hour <= 12 or minute > 59:
            return None
        hour = hour % 12
        if match.group("ampm") == "p":
            hour += 12
        return time(hour, minute)

    match = _CLOCK_RE.match(raw)
    if match:
        hour = int(match.group("hour"))
        minute = int(match.group("minute"))
        if hour > 23 or minute > 59:
            return None
        return time(hour, minute)

    match = _BARE_HOUR_RE.match(raw)
    if match:
        hour = int(match.group("hour"))
        if hour > 23:
            return None
        return time(hour, 0)
    return None


def parse_time(text: str, on_date: date, tz: tzinfo) -> datetime | None:
    """Combine a parsed time of day with ``on_date`` in ``tz``; seconds are always zero."""
    parsed = parse_time_of_day(text)
    if parsed is None:
        return None
    return datetime.combine(on_date, parsed.replace(second=0, microsecond=0), tzinfo=tz)


def parse_time_list(text: str) -> list[time]:
    """Comma separated times; unparseable entries are dropped, duplicates removed, sorted."""
    parsed: set[time] = set()
    for item in (text or "").split(","):
        value = parse_time_of_day(item)
        if value is not None:
            parsed.add(value)
    return sorted(parsed)


def format_clock(value: time) -> str:
    return value.strftime("%H:%M")
