from __future__ import annotations

import logging
from datetime import timedelta

from reminder_bot.core import error_messages
from reminder_bot.core.flow_engine import (
    FlowContext,
    FlowDefinition,
    FlowEngine,
    StepResult,
    complete,
    reprompt,
    switch,
)
from reminder_bot.core.flows.medicine import STEP_NAME, renewal_name_prompt
from reminder_bot.core.formatting import format_when
from reminder_bot.core.models import Reminder
from reminder_bot.core.renewal import renew_series, renewal_later_message
from reminder_bot.core.session_repository import FlowKind, Session
from reminder_bot.infra.reminder_store import StoreError

LOGGER = logging.getLogger(__name__)

STEP_CHOICE = "choice"
SYSTEM_DISPLAY_NAME = "System"

CHOICE_HINT = "Please reply renew, modify, stop or later."


async def _begin(ctx: FlowContext, session: Session) -> StepResult:
    if "series_key" not in session.data:
        raise ValueError("renewal flow needs a series_key")
    return reprompt(session.data.get("prompt") or CHOICE_HINT)


async def _handle_choice(ctx: FlowContext, session: Session, text: str) -> StepResult:
    choice = (text or "").strip().lower()
    series_key = session.data["series_key"]
    name = session.data.get("name", "")
    if choice == "modify":
        return switch(
            FlowKind.MEDICINE,
            STEP_NAME,
            renewal_name_prompt(name),
            renewal_of=series_key,
            previous_name=name,
            display_name=session.data.get("display_name"),
        )
    if choice not in ("renew", "stop", "later"):
        return reprompt(CHOICE_HINT)

    try:
        series = await ctx.store.get_series(series_key)
        if series is None or not series.active:
            return complete("This schedule is no longer active.")
        local_now = await ctx.local_now(session.owner_id)
        if choice == "renew":
            created = await renew_series(ctx.store, series, local_now, weeks=ctx.settings.recurrence_weeks)
            return complete(f"✅ Renewed {series.name}: {len(created)} more reminder(s) scheduled.")
        if choice == "stop":
            removed = await ctx.store.stop_series(series_key)
            LOGGER.info("Series stopped: series_key=%s removed=%s", series_key, removed)
            return complete(f"🛑 Stopped {series.name}. Removed {removed} upcoming reminder(s).")
        later = local_now + timedelta(hours=ctx.settings.renewal_snooze_hours)
        follow_up = await ctx.store.create_reminder(
            Reminder(
                id=None,
                owner_id=session.owner_id,
                chat_id=session.chat_id,
                display_name=SYSTEM_DISPLAY_NAME,
                message=renewal_later_message(series.name),
                scheduled_at=later,
            )
        )
        await ctx.store.snooze_series(series_key, later)
        LOGGER.info(
            "Renewal postponed: series_key=%s follow_up_id=%s until=%s",
            series_key,
            follow_up.id,
            later.isoformat(),
        )
        return complete(f"👍 OK, I'll ask you again {format_when(later, local_now.tzinfo)}.")
    except StoreError:
        return reprompt(f"{error_messages.STORE_FAILED_TEXT}\n{CHOICE_HINT}")


def register(engine: FlowEngine) -> None:
    engine.register(
        FlowDefinition(
            kind=FlowKind.RENEWAL,
            first_step=STEP_CHOICE,
            steps={STEP_CHOICE: _handle_choice},
            begin=_begin,
        )
    )
