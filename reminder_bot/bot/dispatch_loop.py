"""Inbound message queue with a single consumer.

Transport callbacks only enqueue; one task takes events off the queue in
arrival order and runs each to completion, so dialog state is never touched
by two messages at once. A bounded queue makes producers wait when the bot
falls behind.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from reminder_bot.bot.service import BotService, InboundEvent, OutboundMessage
from reminder_bot.core import error_messages

LOGGER = logging.getLogger(__name__)


class DispatchLoop:
    def __init__(self, service: BotService, lifecycle, *, maxsize: int = 100) -> None:
        self._service = service
        self._lifecycle = lifecycle
        self._queue: asyncio.Queue[InboundEvent] = asyncio.Queue(maxsize=maxsize)
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def submit(self, event: InboundEvent) -> None:
        await self._queue.put(event)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self.run(), name="dispatch-loop")
        LOGGER.info("Dispatch loop started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        LOGGER.info("Dispatch loop stopped: dropped=%s", self._queue.qsize())

    async def run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.process(event)
            finally:
                self._queue.task_done()

    async def wait_idle(self) -> None:
        await self._queue.join()

    async def drain(self) -> None:
        """Process everything currently queued, without a background task."""
        while not self._queue.empty():
            event = self._queue.get_nowait()
            try:
                await self.process(event)
            finally:
                self._queue.task_done()

    async def process(self, event: InboundEvent) -> list[OutboundMessage]:
        try:
            replies = await self._service.handle(event)
        except Exception:
            LOGGER.exception("Inbound event failed: owner_id=%s chat_id=%s", event.owner_id, event.chat_id)
            replies = [OutboundMessage(chat_id=event.chat_id, text=error_messages.SESSION_FAILED_TEXT)]
        for reply in replies:
            try:
                await self._lifecycle.send(reply.chat_id, reply.text, preserve=reply.preserve)
            except Exception:
                LOGGER.exception("Reply send failed: owner_id=%s chat_id=%s", event.owner_id, reply.chat_id)
        return replies
