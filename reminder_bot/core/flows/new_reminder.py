from __future__ import annotations

import logging
from datetime import date, datetime

from reminder_bot.core import error_messages
from reminder_bot.core.flow_engine import (
    FlowContext,
    FlowDefinition,
    FlowEngine,
    StepResult,
    advance,
    cancel,
    complete,
    reprompt,
)
from reminder_bot.core.flows.common import (
    CONFIRM_HINT,
    check_future_date,
    check_future_time,
    date_prompt,
    owner_display_name,
    parse_confirm,
    time_prompt,
)
from reminder_bot.core.formatting import format_day, format_clock_12h
from reminder_bot.core.models import Reminder
from reminder_bot.core.session_repository import FlowKind, Session
from reminder_bot.infra.reminder_store import StoreError

LOGGER = logging.getLogger(__name__)

STEP_ACTIVITY = "activity"
STEP_DATE = "date"
STEP_TIME = "time"
STEP_CONFIRM = "confirm"

MIN_ACTIVITY_LENGTH = 5


async def _begin(ctx: FlowContext, session: Session) -> StepResult:
    return reprompt("📝 What should I remind you about?\n(at least 5 characters, /cancel to stop)")


async def _handle_activity(ctx: FlowContext, session: Session, text: str) -> StepResult:
    activity = (text or "").strip()
    if len(activity) < MIN_ACTIVITY_LENGTH:
        return reprompt("❌ Please describe the reminder in at least 5 characters.")
    return advance(STEP_DATE, f"Got it: {activity}\n\n{date_prompt()}", activity=activity)


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
    summary = (
        "📋 Please confirm:\n\n"
        f"📝 {session.data['activity']}\n"
        f"📅 {format_day(when.date())}\n"
        f"🕐 {format_clock_12h(when)}\n\n"
        "Reply yes or no."
    )
    return advance(STEP_CONFIRM, summary, scheduled_at=when.isoformat())


async def _handle_confirm(ctx: FlowContext, session: Session, text: str) -> StepResult:
    decision = parse_confirm(text)
    if decision is None:
        return reprompt(CONFIRM_HINT)
    if decision is False:
        return cancel(error_messages.CANCELLED_TEXT)
    scheduled_at = datetime.fromisoformat(session.data["scheduled_at"])
    local_now = await ctx.local_now(session.owner_id)
    if scheduled_at <= local_now:
        day = date.fromisoformat(session.data["date"])
        if day < local_now.date():
            return advance(STEP_DATE, f"❌ That date has passed while we were talking.\n\n{date_prompt()}")
        return advance(STEP_TIME, f"❌ That time has already passed.\n\n{time_prompt(day)}")
    reminder = Reminder(
        id=None,
        owner_id=session.owner_id,
        chat_id=session.chat_id,
        display_name=owner_display_name(session.data),
        message=session.data["activity"],
        scheduled_at=scheduled_at,
    )
    try:
        saved = await ctx.store.create_reminder(reminder)
    except StoreError:
        return reprompt(f"{error_messages.STORE_FAILED_TEXT}\nReply yes to retry.")
    LOGGER.info(
        "Reminder created: reminder_id=%s owner_id=%s scheduled_at=%s",
        saved.id,
        saved.owner_id,
        saved.scheduled_at.isoformat(),
    )
    return complete(
        f"✅ Reminder set! ID #{saved.id}\n"
        f"I'll remind you on {format_day(scheduled_at.date())} at {format_clock_12h(scheduled_at)}."
    )


def register(engine: FlowEngine) -> None:
    engine.register(
        FlowDefinition(
            kind=FlowKind.NEW_REMINDER,
            first_step=STEP_ACTIVITY,
            steps={
                STEP_ACTIVITY: _handle_activity,
                STEP_DATE: _handle_date,
                STEP_TIME: _handle_time,
                STEP_CONFIRM: _handle_confirm,
            },
            begin=_begin,
        )
    )
