from __future__ import annotations

import logging

from telegram import Update
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from reminder_bot.bot.service import InboundEvent

LOGGER = logging.getLogger(__name__)


def _display_name(user) -> str:
    return getattr(user, "full_name", None) or getattr(user, "username", None) or "User"


async def on_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    user = update.effective_user
    chat = update.effective_chat
    if message is None or user is None or chat is None or not message.text:
        return
    dispatch_loop = context.application.bot_data["dispatch_loop"]
    await dispatch_loop.submit(
        InboundEvent(
            owner_id=str(user.id),
            chat_id=str(chat.id),
            text=message.text,
            display_name=_display_name(user),
            received_at=message.date,
        )
    )


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    LOGGER.error("Unhandled update error: update=%r", update, exc_info=context.error)


def register_handlers(application: Application) -> None:
    # Commands are plain text here; routing happens in BotService.
    application.add_handler(MessageHandler(filters.TEXT, on_text))
    application.add_error_handler(error_handler)
