from __future__ import annotations

from typing import Final

SESSION_EXPIRED_TEXT: Final[str] = "⏰ Session expired. Please start over with /reminder or /medicine."
SESSION_FAILED_TEXT: Final[str] = "❌ Something went wrong. Please start over."
STORE_FAILED_TEXT: Final[str] = "❌ Could not save your changes. Please try again."
CANCELLED_TEXT: Final[str] = "❌ Operation cancelled."
NOTHING_TO_CANCEL_TEXT: Final[str] = "Nothing to cancel."
UNKNOWN_COMMAND_TEXT: Final[str] = "❓ Unknown command: {command}\nType /help to see available commands."
