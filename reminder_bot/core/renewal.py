from __future__ import annotations

import logging
from datetime import datetime

from reminder_bot.core.models import Reminder, SeriesRecord
from reminder_bot.core.recurrence import expand, next_window_start, spec_from_series

LOGGER = logging.getLogger(__name__)

RENEWAL_CHOICES = ("renew", "modify", "stop", "later")


def renewal_prompt_text(series: SeriesRecord, remaining: int) -> str:
    return (
        f"⚠️ Only {remaining} reminder(s) left for {series.name}.\n\n"
        "What would you like to do?\n"
        "• renew - continue the same schedule\n"
        "• modify - change the schedule\n"
        "• stop - stop these reminders\n"
        "• later - ask me again tomorrow"
    )


def renewal_later_message(series_name: str) -> str:
    return f"Renewal reminder: check if you want to continue {series_name} reminders"


async def renew_series(
    store,
    series: SeriesRecord,
    local_now: datetime,
    *,
    weeks: int,
) -> list[Reminder]:
    """Expand the window that follows the series' current coverage and persist it."""
    expansion = expand(
        spec_from_series(series),
        now=local_now,
        owner_id=series.owner_id,
        chat_id=series.chat_id,
        display_name=series.display_name,
        window_start=next_window_start(series, local_now),
        weeks=weeks,
    )
    created = await store.extend_series(series.series_key, expansion.reminders, expansion.window_end)
    LOGGER.info(
        "Series renewed: series_key=%s owner_id=%s added=%s window_end=%s",
        series.series_key,
        series.owner_id,
        len(created),
        expansion.window_end.isoformat(),
    )
    return created
