from __future__ import annotations

import logging
from datetime import time

from reminder_bot.core import error_messages
from reminder_bot.core.date_parse import WEEKDAY_ALIASES
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
from reminder_bot.core.flows.common import CONFIRM_HINT, owner_display_name, parse_confirm
from reminder_bot.core.formatting import format_when
from reminder_bot.core.models import Frequency
from reminder_bot.core.recurrence import (
    build_spec,
    derive_weekdays,
    describe_weekdays,
    expand,
    series_record,
)
from reminder_bot.core.session_repository import FlowKind, Session
from reminder_bot.core.time_parse import TIME_EXAMPLES, format_clock, parse_time_list
from reminder_bot.infra.reminder_store import StoreError

LOGGER = logging.getLogger(__name__)

STEP_NAME = "medicine_name"
STEP_FREQUENCY = "frequency"
STEP_SPECIFIC_DAYS = "specific_days"
STEP_TIMES = "times"
STEP_CONFIRM = "confirm"

MIN_NAME_LENGTH = 3
KEEP_NAME_WORDS = frozenset({"same", "keep"})

_FREQUENCY_CHOICES: dict[str, Frequency] = {
    "daily": Frequency.DAILY,
    "1": Frequency.DAILY,
    "weekdays": Frequency.WEEKDAYS,
    "2": Frequency.WEEKDAYS,
    "specific": Frequency.SPECIFIC,
    "3": Frequency.SPECIFIC,
    "once": Frequency.ONCE,
    "4": Frequency.ONCE,
}

NAME_PROMPT = "💊 What is the name of the medicine?\n(at least 3 characters, /cancel to stop)"
FREQUENCY_PROMPT = (
    "📅 How often?\n"
    "1. daily - every day\n"
    "2. weekdays - Monday to Friday\n"
    "3. specific - choose the days\n"
    "4. once - today only"
)
DAYS_PROMPT = "📆 Which days? Comma separated, e.g. monday, wednesday, friday or mon, wed, fri"
TIMES_PROMPT = f"🕐 At what time(s)? Comma separated.\nExamples: {TIME_EXAMPLES}"


def renewal_name_prompt(previous_name: str) -> str:
    return f"💊 New medicine name? Reply same to keep {previous_name}."


def parse_weekday_list(text: str) -> tuple[int, ...]:
    chosen: set[int] = set()
    for item in (text or "").split(","):
        weekday = WEEKDAY_ALIASES.get(item.strip().lower().rstrip("."))
        if weekday is not None:
            chosen.add(weekday)
    return tuple(sorted(chosen))


async def _begin(ctx: FlowContext, session: Session) -> StepResult:
    return reprompt(NAME_PROMPT)


async def _handle_name(ctx: FlowContext, session: Session, text: str) -> StepResult:
    name = (text or "").strip()
    previous = session.data.get("previous_name")
    if previous and name.lower() in KEEP_NAME_WORDS:
        name = previous
    if len(name) < MIN_NAME_LENGTH:
        return reprompt("❌ Please enter a medicine name of at least 3 characters.")
    return advance(STEP_FREQUENCY, FREQUENCY_PROMPT, name=name)


async def _handle_frequency(ctx: FlowContext, session: Session, text: str) -> StepResult:
    frequency = _FREQUENCY_CHOICES.get((text or "").strip().lower())
    if frequency is None:
        return reprompt(f"❌ Please choose one of: daily, weekdays, specific, once.\n\n{FREQUENCY_PROMPT}")
    if frequency == Frequency.SPECIFIC:
        return advance(STEP_SPECIFIC_DAYS, DAYS_PROMPT, frequency=frequency.value)
    return advance(STEP_TIMES, TIMES_PROMPT, frequency=frequency.value, weekdays=[])


async def _handle_specific_days(ctx: FlowContext, session: Session, text: str) -> StepResult:
    weekdays = parse_weekday_list(text)
    if not weekdays:
        return reprompt(f"❌ I couldn't recognise any day.\n{DAYS_PROMPT}")
    return advance(STEP_TIMES, TIMES_PROMPT, weekdays=list(weekdays))


async def _handle_times(ctx: FlowContext, session: Session, text: str) -> StepResult:
    times = parse_time_list(text)
    if not times:
        return reprompt(f"❌ I couldn't understand those times.\n{TIMES_PROMPT}")
    local_now = await ctx.local_now(session.owner_id)
    frequency = Frequency(session.data["frequency"])
    weekdays = derive_weekdays(frequency, session.data.get("weekdays", ()), local_now.date())
    summary = (
        "📋 Please confirm:\n\n"
        f"💊 {session.data['name']}\n"
        f"📅 {frequency.value} ({describe_weekdays(weekdays)})\n"
        f"🕐 {', '.join(format_clock(value) for value in times)}\n"
        f"🔢 {len(times)} time(s) × {len(weekdays)} day(s) per week\n\n"
        "Reply yes or no."
    )
    return advance(STEP_CONFIRM, summary, times=[format_clock(value) for value in times])


async def _handle_confirm(ctx: FlowContext, session: Session, text: str) -> StepResult:
    decision = parse_confirm(text)
    if decision is None:
        return reprompt(CONFIRM_HINT)
    if decision is False:
        return cancel(error_messages.CANCELLED_TEXT)

    local_now = await ctx.local_now(session.owner_id)
    spec = build_spec(
        session.data["name"],
        Frequency(session.data["frequency"]),
        [time.fromisoformat(value) for value in session.data["times"]],
        session.data.get("weekdays", ()),
        now=local_now,
    )
    display_name = owner_display_name(session.data)
    expansion = expand(
        spec,
        now=local_now,
        owner_id=session.owner_id,
        chat_id=session.chat_id,
        display_name=display_name,
        weeks=ctx.settings.recurrence_weeks,
    )
    if not expansion.reminders:
        return advance(
            STEP_TIMES,
            f"❌ All of those times have already passed. Please enter later times.\n{TIMES_PROMPT}",
        )
    record = series_record(
        spec,
        expansion,
        owner_id=session.owner_id,
        chat_id=session.chat_id,
        display_name=display_name,
    )
    try:
        replaced = session.data.get("renewal_of")
        if replaced:
            removed = await ctx.store.stop_series(replaced)
            LOGGER.info(
                "Series replaced: old_series=%s new_series=%s removed=%s",
                replaced,
                spec.series_key,
                removed,
            )
        created = await ctx.store.create_series(record, expansion.reminders)
    except StoreError:
        return reprompt(f"{error_messages.STORE_FAILED_TEXT}\nReply yes to retry.")
    LOGGER.info(
        "Series created: series_key=%s owner_id=%s frequency=%s instances=%s",
        spec.series_key,
        session.owner_id,
        spec.frequency.value,
        len(created),
    )
    first = created[0].scheduled_at
    return complete(
        f"✅ Medicine reminders set for {spec.name}!\n"
        f"📊 {len(created)} reminder(s) scheduled.\n"
        f"⏰ First one: {format_when(first, local_now.tzinfo)}"
    )


def register(engine: FlowEngine) -> None:
    engine.register(
        FlowDefinition(
            kind=FlowKind.MEDICINE,
            first_step=STEP_NAME,
            steps={
                STEP_NAME: _handle_name,
                STEP_FREQUENCY: _handle_frequency,
                STEP_SPECIFIC_DAYS: _handle_specific_days,
                STEP_TIMES: _handle_times,
                STEP_CONFIRM: _handle_confirm,
            },
            begin=_begin,
        )
    )
