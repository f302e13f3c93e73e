from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from reminder_bot.core.flow_engine import utc_now
from reminder_bot.core.models import SeriesRecord
from reminder_bot.core.renewal import renew_series, renewal_prompt_text
from reminder_bot.core.session_repository import FlowKind

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonitorReport:
    prompted: int = 0
    renewed: int = 0


class RenewalMonitor:
    """Watches recurring series running low on unsent instances.

    At or below the critical threshold a series is extended without asking;
    otherwise, at or below the low threshold, the owner gets a renewal prompt
    unless one is already open or the series was snoozed with "later".
    """

    def __init__(
        self,
        store,
        users,
        sessions,
        lifecycle,
        *,
        low_threshold: int = 5,
        critical_threshold: int = 2,
        weeks: int = 4,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._users = users
        self._sessions = sessions
        self._lifecycle = lifecycle
        self._low = low_threshold
        self._critical = critical_threshold
        self._weeks = weeks
        self._now_fn = now_fn

    async def tick(self, now: datetime | None = None) -> MonitorReport:
        current = now or self._now_fn()
        prompted = renewed = 0
        for series, remaining in await self._store.list_series_remaining():
            try:
                if remaining <= self._critical:
                    await self._auto_renew(series, remaining, current)
                    renewed += 1
                elif remaining <= self._low and await self._prompt(series, remaining, current):
                    prompted += 1
            except Exception:
                LOGGER.exception(
                    "Renewal check failed: series_key=%s owner_id=%s",
                    series.series_key,
                    series.owner_id,
                )
        if prompted or renewed:
            LOGGER.info("Renewal monitor tick: prompted=%s renewed=%s", prompted, renewed)
        return MonitorReport(prompted=prompted, renewed=renewed)

    async def _auto_renew(self, series: SeriesRecord, remaining: int, now: datetime) -> None:
        zone = await self._users.resolve_zone(series.owner_id)
        created = await renew_series(self._store, series, now.astimezone(zone), weeks=self._weeks)
        session = self._sessions.get(series.owner_id)
        if (
            session is not None
            and session.flow == FlowKind.RENEWAL
            and session.data.get("series_key") == series.series_key
        ):
            self._sessions.discard(series.owner_id)
        LOGGER.info(
            "Series auto-renewed: series_key=%s remaining=%s added=%s",
            series.series_key,
            remaining,
            len(created),
        )
        await self._lifecycle.send(
            series.chat_id,
            f"🔄 Your {series.name} reminders were running out, so I scheduled "
            f"{len(created)} more.\nUse /delete or /clear if you want to stop them.",
            preserve=True,
        )

    async def _prompt(self, series: SeriesRecord, remaining: int, now: datetime) -> bool:
        if self._sessions.has_pending(series.owner_id, FlowKind.RENEWAL):
            return False
        if series.snoozed_until is not None and series.snoozed_until > now:
            return False
        text = renewal_prompt_text(series, remaining)
        reply = await self._sessions.start(
            series.owner_id,
            series.chat_id,
            FlowKind.RENEWAL,
            data={
                "series_key": series.series_key,
                "name": series.name,
                "display_name": series.display_name,
                "prompt": text,
            },
        )
        await self._lifecycle.send(series.chat_id, reply, preserve=True)
        LOGGER.info(
            "Renewal prompt sent: series_key=%s owner_id=%s remaining=%s",
            series.series_key,
            series.owner_id,
            remaining,
        )
        return True
