from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from reminder_bot.bot.commands import Command, CommandKind, parse_command
from reminder_bot.core import error_messages
from reminder_bot.core.formatting import HELP_TEXT, WELCOME_TEXT, render_reminder_list
from reminder_bot.core.session_repository import FlowKind
from reminder_bot.infra.reminder_store import StoreError
from reminder_bot.infra.user_store import is_valid_timezone

LOGGER = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 20
FALLBACK_WORDS = frozenset({"done", "reschedule", "delete"})


@dataclass(frozen=True)
class InboundEvent:
    owner_id: str
    chat_id: str
    text: str
    display_name: str = "User"
    received_at: datetime | None = None


@dataclass(frozen=True)
class OutboundMessage:
    chat_id: str
    text: str
    preserve: bool = False


CommandCallback = Callable[[InboundEvent, Command], Awaitable[Optional[OutboundMessage]]]


class BotService:
    """Turns one inbound message into the replies to send back."""

    def __init__(self, store, users, sessions, *, list_limit: int = DEFAULT_LIST_LIMIT) -> None:
        self._store = store
        self._users = users
        self._sessions = sessions
        self._list_limit = list_limit
        self._commands: dict[CommandKind, CommandCallback] = {
            CommandKind.START: self._cmd_start,
            CommandKind.NEW_REMINDER: self._start_flow(FlowKind.NEW_REMINDER),
            CommandKind.MEDICINE: self._start_flow(FlowKind.MEDICINE),
            CommandKind.LIST: self._cmd_list,
            CommandKind.DELETE: self._start_flow(FlowKind.DELETE),
            CommandKind.CLEAR: self._start_flow(FlowKind.CLEAR),
            CommandKind.HELP: self._cmd_help,
            CommandKind.CANCEL: self._cmd_cancel,
            CommandKind.TIMEZONE: self._cmd_timezone,
            CommandKind.UNKNOWN: self._cmd_unknown,
        }
        missing = [kind.name for kind in CommandKind if kind not in self._commands]
        if missing:
            raise RuntimeError(f"Commands without a handler: {', '.join(missing)}")

    async def handle(self, event: InboundEvent) -> list[OutboundMessage]:
        try:
            await self._users.touch(event.owner_id, event.display_name)
        except StoreError:
            LOGGER.warning("User touch failed, continuing: owner_id=%s", event.owner_id)
        command = parse_command(event.text)
        if command is not None:
            LOGGER.info("Command received: owner_id=%s command=%s", event.owner_id, command.kind.value)
            reply = await self._commands[command.kind](event, command)
            return [reply] if reply is not None else []
        text = await self._sessions.dispatch(event.owner_id, event.text)
        if text is None:
            text = await self._fallback(event)
        if not text:
            return []
        return [OutboundMessage(chat_id=event.chat_id, text=text)]

    def _start_flow(self, flow: FlowKind) -> CommandCallback:
        async def handler(event: InboundEvent, command: Command) -> OutboundMessage:
            text = await self._sessions.start(
                event.owner_id,
                event.chat_id,
                flow,
                data={"display_name": event.display_name},
            )
            return OutboundMessage(chat_id=event.chat_id, text=text)

        return handler

    async def _cmd_start(self, event: InboundEvent, command: Command) -> OutboundMessage:
        return OutboundMessage(chat_id=event.chat_id, text=WELCOME_TEXT, preserve=True)

    async def _cmd_help(self, event: InboundEvent, command: Command) -> OutboundMessage:
        return OutboundMessage(chat_id=event.chat_id, text=HELP_TEXT)

    async def _cmd_cancel(self, event: InboundEvent, command: Command) -> OutboundMessage:
        return OutboundMessage(chat_id=event.chat_id, text=self._sessions.cancel(event.owner_id))

    async def _cmd_unknown(self, event: InboundEvent, command: Command) -> OutboundMessage:
        text = error_messages.UNKNOWN_COMMAND_TEXT.format(command=f"/{command.name}")
        return OutboundMessage(chat_id=event.chat_id, text=text)

    async def _cmd_list(self, event: InboundEvent, command: Command) -> OutboundMessage:
        try:
            reminders = await self._store.get_by_owner(event.owner_id, limit=self._list_limit)
            zone = await self._users.resolve_zone(event.owner_id)
        except StoreError:
            return OutboundMessage(chat_id=event.chat_id, text="❌ Could not load your reminders. Please try again.")
        return OutboundMessage(chat_id=event.chat_id, text=render_reminder_list(reminders, zone))

    async def _cmd_timezone(self, event: InboundEvent, command: Command) -> OutboundMessage:
        if not command.args:
            current = await self._users.resolve_timezone(event.owner_id)
            text = f"🌍 Your timezone: {current}\nChange it with /timezone Area/City, e.g. /timezone Europe/London"
            return OutboundMessage(chat_id=event.chat_id, text=text)
        if not is_valid_timezone(command.args):
            return OutboundMessage(
                chat_id=event.chat_id,
                text=f"❌ Unknown timezone: {command.args}\nUse an IANA name such as Asia/Kolkata.",
            )
        try:
            updated = await self._users.set_timezone(event.owner_id, command.args)
            if not updated:
                # The account row is missing when first-contact bookkeeping failed.
                await self._users.touch(event.owner_id, event.display_name)
                updated = await self._users.set_timezone(event.owner_id, command.args)
        except StoreError:
            LOGGER.warning("Timezone update failed: owner_id=%s", event.owner_id, exc_info=True)
            updated = False
        if not updated:
            return OutboundMessage(chat_id=event.chat_id, text=error_messages.STORE_FAILED_TEXT)
        return OutboundMessage(chat_id=event.chat_id, text=f"✅ Timezone set to {command.args}.")

    async def _fallback(self, event: InboundEvent) -> str | None:
        """Bare done/reschedule/delete replies refer to the latest delivered reminder."""
        word = (event.text or "").strip().lower()
        if word not in FALLBACK_WORDS:
            return None
        try:
            reminder = await self._store.get_last_sent(event.owner_id)
            if reminder is None:
                return None
            if word == "done":
                return f"👍 Great! Reminder #{reminder.id} marked as done."
            if word == "delete":
                await self._store.delete_by_id(reminder.id, event.owner_id)
                LOGGER.info("Reminder deleted: reminder_id=%s owner_id=%s", reminder.id, event.owner_id)
                return f"🗑 Reminder #{reminder.id} deleted."
        except StoreError:
            return error_messages.STORE_FAILED_TEXT
        return await self._sessions.start(
            event.owner_id,
            event.chat_id,
            FlowKind.RESCHEDULE,
            data={
                "reminder_id": reminder.id,
                "message": reminder.message,
                "display_name": event.display_name,
            },
        )
