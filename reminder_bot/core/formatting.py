from __future__ import annotations

from datetime import date, datetime, tzinfo
from typing import Sequence

from reminder_bot.core.models import Reminder

LIST_COMPLETED_PREVIEW = 5


def format_day(value: date) -> str:
    return f"{value.strftime('%A, %B')} {value.day}, {value.year}"


def format_clock_12h(value: datetime) -> str:
    return value.strftime("%I:%M %p").lstrip("0")


def format_when(value: datetime, tz: tzinfo) -> str:
    local = value.astimezone(tz)
    return f"{local.strftime('%a, %b')} {local.day} at {format_clock_12h(local)}"


def reminder_delivery_text(reminder: Reminder, tz: tzinfo) -> str:
    local = reminder.scheduled_at.astimezone(tz)
    return (
        "🔔 REMINDER\n\n"
        f"📝 {reminder.message}\n"
        f"🆔 ID: #{reminder.id}\n"
        f"🕐 Scheduled: {format_clock_12h(local)}\n\n"
        "Reply with:\n"
        "• done - mark as completed\n"
        "• reschedule - pick a new time\n"
        "• delete - remove this reminder"
    )


def reminder_line(reminder: Reminder, tz: tzinfo) -> str:
    status = "✅" if reminder.sent else "⏳"
    return f"{status} #{reminder.id} {reminder.message} ({format_when(reminder.scheduled_at, tz)})"


def render_reminder_list(reminders: Sequence[Reminder], tz: tzinfo) -> str:
    if not reminders:
        return "📭 You have no reminders yet.\n\nUse /reminder or /medicine to create one."
    pending = sorted((item for item in reminders if not item.sent), key=lambda item: item.scheduled_at)
    completed = [item for item in reminders if item.sent]
    lines = ["📋 Your reminders", ""]
    if pending:
        lines.append(f"⏳ Pending ({len(pending)}):")
        lines.extend(reminder_line(item, tz) for item in pending)
        lines.append("")
    if completed:
        lines.append(f"✅ Completed ({len(completed)}):")
        lines.extend(reminder_line(item, tz) for item in completed[:LIST_COMPLETED_PREVIEW])
        hidden = len(completed) - LIST_COMPLETED_PREVIEW
        if hidden > 0:
            lines.append(f"... and {hidden} more")
    return "\n".join(lines).rstrip()


HELP_TEXT = (
    "🤖 Reminder bot\n\n"
    "/reminder or /new - create a one-time reminder\n"
    "/medicine - set up recurring medicine reminders\n"
    "/list or /view - show your reminders\n"
    "/delete - delete one reminder\n"
    "/clear or /erase - delete all reminders\n"
    "/timezone <Area/City> - set your timezone\n"
    "/cancel - stop the current dialog\n"
    "/help - show this message\n\n"
    "After a reminder arrives, reply done, reschedule or delete."
)

WELCOME_TEXT = (
    "👋 Welcome! I keep track of your reminders and medicine schedule.\n\n"
    "Start with /reminder for a one-time reminder or /medicine for a recurring one.\n"
    "Type /help for all commands."
)
