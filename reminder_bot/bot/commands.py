from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CommandKind(Enum):
    START = "start"
    NEW_REMINDER = "reminder"
    MEDICINE = "medicine"
    LIST = "list"
    DELETE = "delete"
    CLEAR = "clear"
    HELP = "help"
    CANCEL = "cancel"
    TIMEZONE = "timezone"
    UNKNOWN = "unknown"


_ALIASES: dict[str, CommandKind] = {
    "start": CommandKind.START,
    "reminder": CommandKind.NEW_REMINDER,
    "new": CommandKind.NEW_REMINDER,
    "medicine": CommandKind.MEDICINE,
    "list": CommandKind.LIST,
    "view": CommandKind.LIST,
    "delete": CommandKind.DELETE,
    "clear": CommandKind.CLEAR,
    "erase": CommandKind.CLEAR,
    "help": CommandKind.HELP,
    "cancel": CommandKind.CANCEL,
    "timezone": CommandKind.TIMEZONE,
}


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    name: str
    args: str = ""


def parse_command(text: str | None) -> Command | None:
    """Slash command or None for plain text. Unrecognised names map to UNKNOWN."""
    raw = (text or "").strip()
    if not raw.startswith("/") or len(raw) == 1:
        return None
    head, _, rest = raw[1:].partition(" ")
    # Telegram group syntax: /list@my_bot
    name = head.split("@", 1)[0].lower()
    return Command(kind=_ALIASES.get(name, CommandKind.UNKNOWN), name=name, args=rest.strip())
