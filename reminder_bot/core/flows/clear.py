from __future__ import annotations

import logging

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
from reminder_bot.core.session_repository import FlowKind, Session
from reminder_bot.infra.reminder_store import StoreError

LOGGER = logging.getLogger(__name__)

STEP_CONFIRM = "confirm"
CONFIRM_PHRASE = "DELETE ALL"


async def _begin(ctx: FlowContext, session: Session) -> StepResult:
    total = await ctx.store.count_for_owner(session.owner_id)
    if total == 0:
        return complete("📭 You have no reminders to clear.")
    return advance(
        STEP_CONFIRM,
        f"⚠️ This will delete all {total} of your reminders.\n"
        f"Type {CONFIRM_PHRASE} to confirm. Anything else cancels.",
    )


async def _handle_confirm(ctx: FlowContext, session: Session, text: str) -> StepResult:
    # Exact, case-sensitive phrase; "delete all" cancels.
    if (text or "").strip() != CONFIRM_PHRASE:
        return cancel(error_messages.CANCELLED_TEXT)
    try:
        removed = await ctx.store.delete_all_for_owner(session.owner_id)
    except StoreError:
        return reprompt(f"{error_messages.STORE_FAILED_TEXT}\nType {CONFIRM_PHRASE} to retry.")
    LOGGER.info("Reminders cleared: owner_id=%s removed=%s", session.owner_id, removed)
    return complete(f"🧹 Deleted {removed} reminder(s).")


def register(engine: FlowEngine) -> None:
    engine.register(
        FlowDefinition(
            kind=FlowKind.CLEAR,
            first_step=STEP_CONFIRM,
            steps={STEP_CONFIRM: _handle_confirm},
            begin=_begin,
        )
    )
