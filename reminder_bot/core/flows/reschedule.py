from __future__ import annotations

import logging
from datetime import date

from reminder_bot.core import error_messages
from reminder_bot.core.flow_engine import (
    FlowContext,
    FlowDefinition,
    FlowEngine,
    StepResult,
    advance,
    complete,
    reprompt,
)
from reminder_bot.core.flows.common import check_future_date, check_future_time, date_prompt, time_prompt
from reminder_bot.core.formatting import format_clock_12h, format_day
from reminder_bot.core.session_repository import FlowKind, Session
from reminder_bot.infra.reminder_store import StoreError

LOGGER = logging.getLogger(__name__)

STEP_DATE = "date"
STEP_TIME = "time"


async def _begin(ctx: FlowContext, session: Session) -> StepResult:
    if "reminder_id" not in session.data:
        raise ValueError("reschedule flow needs a reminder_id")
    label = session.data.get("message") or f"#{session.data['reminder_id']}"
    return reprompt(f"🔄 Rescheduling: {label}\n\n{date_prompt()}")


async def _handle_date(ctx: FlowContext, session: Session, text: str) -> StepResult:
    local_now = await ctx.local_now(session.owner_id)
    day, error = check_future_date(text, local_now)
    if error:
        return reprompt(error)
    return advance(STEP_TIME, time_prompt(day), date=day.isoformat())


async def _handle_time(ctx: FlowContext, session: Session, text: str) -> StepResult:
    local_now = await ctx.local_now(session.owner_id)
    day = date.fromisoformat(session.data["date"])
    when, error = check_future_time(text, day, local_now)
    if error:
        return reprompt(error)
    reminder_id = int(session.data["reminder_id"])
    try:
        updated = await ctx.store.update_time(reminder_id, when)
    except StoreError:
        return reprompt(f"{error_messages.STORE_FAILED_TEXT}\nSend the time again to retry.")
    if not updated:
        return complete(f"❌ Reminder #{reminder_id} no longer exists.")
    LOGGER.info(
        "Reminder rescheduled: reminder_id=%s owner_id=%s scheduled_at=%s",
        reminder_id,
        session.owner_id,
        when.isoformat(),
    )
    return complete(
        f"✅ Reminder #{reminder_id} moved to {format_day(when.date())} at {format_clock_12h(when)}."
    )


def register(engine: FlowEngine) -> None:
    engine.register(
        FlowDefinition(
            kind=FlowKind.RESCHEDULE,
            first_step=STEP_DATE,
            steps={
                STEP_DATE: _handle_date,
                STEP_TIME: _handle_time,
            },
            begin=_begin,
        )
    )
