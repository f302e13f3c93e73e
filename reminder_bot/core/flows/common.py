from __future__ import annotations

from datetime import date, datetime

from reminder_bot.core.date_parse import DATE_EXAMPLES, parse_date
from reminder_bot.core.time_parse import TIME_EXAMPLES, parse_time

CONFIRM_YES = frozenset({"yes", "y"})
CONFIRM_NO = frozenset({"no", "n"})

CONFIRM_HINT = "Please reply yes to confirm or no to cancel."


def parse_confirm(text: str) -> bool | None:
    value = (text or "").strip().lower()
    if value in CONFIRM_YES:
        return True
    if value in CONFIRM_NO:
        return False
    return None


def date_prompt() -> str:
    return f"📅 Which date?\nExamples: {DATE_EXAMPLES}"


def time_prompt(day: date) -> str:
    return f"🕐 What time on {day.isoformat()}?\nExamples: {TIME_EXAMPLES}"


def check_future_date(text: str, local_now: datetime) -> tuple[date | None, str | None]:
    """Parsed date or an error message; dates before today are rejected."""
    parsed = parse_date(text, local_now)
    if parsed is None:
        return None, f"❌ I couldn't understand that date.\nTry: {DATE_EXAMPLES}"
    if parsed < local_now.date():
        return None, "❌ That date is in the past. Please choose today or a later date."
    return parsed, None


def check_future_time(text: str, day: date, local_now: datetime) -> tuple[datetime | None, str | None]:
    """Parsed local instant or an error message; instants not after now are rejected."""
    parsed = parse_time(text, day, local_now.tzinfo)
    if parsed is None:
        return None, f"❌ I couldn't understand that time.\nTry: {TIME_EXAMPLES}"
    if parsed <= local_now:
        return None, "❌ That time has already passed. Please choose a later time."
    return parsed, None


def owner_display_name(data: dict) -> str:
    return str(data.get("display_name") or "User")
