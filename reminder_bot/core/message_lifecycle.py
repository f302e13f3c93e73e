from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from reminder_bot.core.flow_engine import utc_now

LOGGER = logging.getLogger(__name__)

DEFAULT_DELETE_AFTER_SECONDS = 600
DEFAULT_GRACE_SECONDS = 60


def _job_name_delete(chat_id: str, message_id: int) -> str:
    return f"delete:{chat_id}:{message_id}"


@dataclass(frozen=True)
class PendingDeletion:
    chat_id: str
    message_id: int
    delete_at: datetime


class MessageLifecycleManager:
    """Sends bot replies and removes ephemeral ones after a delay.

    Deletion jobs are one-shot scheduler jobs; once scheduled they fire no
    matter what happened since. The bookkeeping map only tracks what is still
    expected to be deleted and is swept periodically.
    """

    def __init__(
        self,
        channel,
        scheduler,
        *,
        delete_after_seconds: int = DEFAULT_DELETE_AFTER_SECONDS,
        grace_seconds: int = DEFAULT_GRACE_SECONDS,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> None:
        self._channel = channel
        self._scheduler = scheduler
        self._delete_after = timedelta(seconds=delete_after_seconds)
        self._grace = timedelta(seconds=grace_seconds)
        self._now_fn = now_fn
        self._pending: dict[str, PendingDeletion] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def send(self, chat_id: str, text: str, *, preserve: bool = False) -> list[int]:
        message_ids = await self._channel.send(chat_id, text)
        if not preserve and self._delete_after.total_seconds() > 0:
            for message_id in message_ids:
                self._schedule_deletion(chat_id, message_id)
        return message_ids

    async def delete_message(self, chat_id: str, message_id: int) -> bool:
        self._pending.pop(_job_name_delete(chat_id, message_id), None)
        try:
            return bool(await self._channel.delete(chat_id, message_id))
        except Exception as exc:
            LOGGER.debug(
                "Ephemeral delete failed: chat_id=%s message_id=%s error=%s",
                chat_id,
                message_id,
                exc,
            )
            return False

    def sweep(self, now: datetime | None = None) -> int:
        """Forget entries whose deletion time (plus grace) has long passed."""
        current = now or self._now_fn()
        stale = [
            key for key, entry in self._pending.items() if entry.delete_at + self._grace < current
        ]
        for key in stale:
            self._pending.pop(key, None)
        if stale:
            LOGGER.info("Lifecycle sweep: dropped=%s pending=%s", len(stale), len(self._pending))
        return len(stale)

    def _schedule_deletion(self, chat_id: str, message_id: int) -> None:
        job_id = _job_name_delete(chat_id, message_id)
        delete_at = self._now_fn() + self._delete_after
        self._pending[job_id] = PendingDeletion(
            chat_id=chat_id,
            message_id=message_id,
            delete_at=delete_at,
        )
        scheduled = self._scheduler.add_one_shot_job(
            job_id,
            delete_at,
            self.delete_message,
            kwargs={"chat_id": chat_id, "message_id": message_id},
        )
        if not scheduled:
            LOGGER.warning("Ephemeral delete not scheduled: chat_id=%s message_id=%s", chat_id, message_id)
