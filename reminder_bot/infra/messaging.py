from __future__ import annotations

import logging
from typing import Any, Protocol

from telegram.error import BadRequest, TelegramError

LOGGER = logging.getLogger(__name__)

MAX_CHUNK_SIZE = 3500
FALLBACK_CHUNK_SIZE = 2000
EMPTY_MESSAGE_PLACEHOLDER = "(empty message)"


class Channel(Protocol):
    """Outbound side of the chat transport."""

    async def send(self, chat_id: str, text: str) -> list[int]:
        """Send text; return ids of the delivered messages. Raises on failure."""

    async def delete(self, chat_id: str, message_id: int) -> bool:
        """Best-effort removal of a previously sent message."""


def chunk_text(text: str, max_len: int = MAX_CHUNK_SIZE) -> list[str]:
    chunks: list[str] = []
    remaining = text or ""
    while remaining:
        if len(remaining) <= max_len:
            chunks.append(remaining)
            break
        split_at = remaining.rfind("\n", 0, max_len + 1)
        if split_at == -1:
            split_at = remaining.rfind(" ", 0, max_len + 1)
        if split_at <= 0:
            split_at = max_len
        chunk = remaining[:split_at].rstrip()
        if not chunk:
            chunk = remaining[:max_len]
            split_at = max_len
        chunks.append(chunk)
        remaining = remaining[split_at:].lstrip("\n ")
    return chunks


def _telegram_chat_id(chat_id: str) -> int | str:
    try:
        return int(chat_id)
    except (TypeError, ValueError):
        return chat_id


class TelegramChannel:
    def __init__(self, bot: Any) -> None:
        self._bot = bot

    async def send(self, chat_id: str, text: str) -> list[int]:
        payload = text if text and text.strip() else EMPTY_MESSAGE_PLACEHOLDER
        target = _telegram_chat_id(chat_id)
        message_ids: list[int] = []
        for chunk in chunk_text(payload, max_len=MAX_CHUNK_SIZE):
            try:
                message = await self._bot.send_message(chat_id=target, text=chunk)
            except BadRequest as exc:
                if "Message is too long" not in str(exc):
                    raise
                LOGGER.warning("Telegram rejected message chunk as too long; splitting further.")
                for subchunk in chunk_text(chunk, max_len=FALLBACK_CHUNK_SIZE):
                    message = await self._bot.send_message(chat_id=target, text=subchunk)
                    message_ids.append(message.message_id)
                continue
            message_ids.append(message.message_id)
        return message_ids

    async def delete(self, chat_id: str, message_id: int) -> bool:
        try:
            return bool(
                await self._bot.delete_message(
                    chat_id=_telegram_chat_id(chat_id),
                    message_id=message_id,
                )
            )
        except TelegramError as exc:
            LOGGER.debug(
                "Message delete failed: chat_id=%s message_id=%s error=%s",
                chat_id,
                message_id,
                exc,
            )
            return False
