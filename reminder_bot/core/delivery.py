"""Polling delivery of due reminders.

Contract is at-least-once: a reminder is sent first and marked sent second.
A crash or a failed mark between the two steps makes the next tick deliver
it again; a failed send leaves it unsent so the next tick retries it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

from reminder_bot.core.flow_engine import utc_now
from reminder_bot.core.formatting import reminder_delivery_text
from reminder_bot.infra.reminder_store import StoreError

LOGGER = logging.getLogger(__name__)


class DeliveryLoop:
    def __init__(
        self,
        store,
        users,
        lifecycle,
        *,
        retention_days: int = 7,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._users = users
        self._lifecycle = lifecycle
        self._retention = timedelta(days=retention_days)
        self._now_fn = now_fn

    async def tick(self, now: datetime | None = None) -> int:
        """Deliver everything due; returns how many reminders were sent."""
        current = now or self._now_fn()
        try:
            due = await self._store.get_pending(current)
        except StoreError:
            LOGGER.warning("Delivery tick skipped: pending query failed")
            return 0
        delivered = 0
        for reminder in due:
            try:
                zone = await self._users.resolve_zone(reminder.owner_id)
                await self._lifecycle.send(
                    reminder.chat_id,
                    reminder_delivery_text(reminder, zone),
                    preserve=True,
                )
            except Exception:
                LOGGER.exception(
                    "Reminder send failed: reminder_id=%s owner_id=%s chat_id=%s scheduled_at=%s",
                    reminder.id,
                    reminder.owner_id,
                    reminder.chat_id,
                    reminder.scheduled_at.isoformat(),
                )
                continue
            try:
                await self._store.mark_sent(reminder.id)
            except StoreError:
                LOGGER.warning(
                    "Reminder sent but not marked, will repeat: reminder_id=%s",
                    reminder.id,
                )
                continue
            delivered += 1
            LOGGER.info(
                "Reminder sent: reminder_id=%s owner_id=%s chat_id=%s scheduled_at=%s",
                reminder.id,
                reminder.owner_id,
                reminder.chat_id,
                reminder.scheduled_at.isoformat(),
            )
        return delivered

    async def purge_old(self, now: datetime | None = None) -> int:
        """Drop delivered reminders older than the retention window."""
        cutoff = (now or self._now_fn()) - self._retention
        try:
            removed = await self._store.delete_sent_before(cutoff)
        except StoreError:
            return 0
        LOGGER.info("Retention sweep: removed=%s cutoff=%s", removed, cutoff.isoformat())
        return removed
