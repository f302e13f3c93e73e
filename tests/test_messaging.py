from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from telegram.error import BadRequest, Forbidden

from reminder_bot.infra.messaging import EMPTY_MESSAGE_PLACEHOLDER, TelegramChannel, chunk_text


class DummyBot:
    def __init__(self, *, too_long_over: int | None = None, error: Exception | None = None) -> None:
        self.sent: list[tuple[object, str]] = []
        self.deleted: list[tuple[object, int]] = []
        self._too_long_over = too_long_over
        self._error = error
        self._next_id = 500

    async def send_message(self, chat_id, text):
        if self._error is not None:
            raise self._error
        if self._too_long_over is not None and len(text) > self._too_long_over:
            raise BadRequest("Message is too long")
        self._next_id += 1
        self.sent.append((chat_id, text))
        return SimpleNamespace(message_id=self._next_id)

    async def delete_message(self, chat_id, message_id):
        if self._error is not None:
            raise self._error
        self.deleted.append((chat_id, message_id))
        return True


def test_chunk_text_prefers_line_breaks() -> None:
    text = "a" * 10 + "\n" + "b" * 10

    assert chunk_text(text, max_len=15) == ["a" * 10, "b" * 10]


def test_chunk_text_hard_splits_long_words() -> None:
    assert chunk_text("x" * 25, max_len=10) == ["x" * 10, "x" * 10, "x" * 5]


def test_chunk_text_empty() -> None:
    assert chunk_text("") == []


def test_send_returns_message_ids_and_numeric_chat() -> None:
    bot = DummyBot()
    channel = TelegramChannel(bot)

    ids = asyncio.run(channel.send("42", "hello"))

    assert ids == [501]
    assert bot.sent == [(42, "hello")]


def test_send_empty_text_uses_placeholder() -> None:
    bot = DummyBot()

    asyncio.run(TelegramChannel(bot).send("42", "   "))

    assert bot.sent == [(42, EMPTY_MESSAGE_PLACEHOLDER)]


def test_send_splits_when_telegram_rejects_length() -> None:
    bot = DummyBot(too_long_over=2000)
    text = "\n".join(["line " + "z" * 95] * 30)

    ids = asyncio.run(TelegramChannel(bot).send("42", text))

    assert len(ids) == len(bot.sent) > 1
    assert all(len(chunk) <= 2000 for _, chunk in bot.sent)


def test_send_propagates_other_errors() -> None:
    channel = TelegramChannel(DummyBot(error=BadRequest("Chat not found")))

    with pytest.raises(BadRequest):
        asyncio.run(channel.send("42", "hello"))


def test_delete_failure_returns_false() -> None:
    bot = DummyBot(error=Forbidden("bot was blocked by the user"))

    assert asyncio.run(TelegramChannel(bot).delete("42", 7)) is False


def test_delete_success() -> None:
    bot = DummyBot()

    assert asyncio.run(TelegramChannel(bot).delete("42", 7)) is True
    assert bot.deleted == [(42, 7)]
