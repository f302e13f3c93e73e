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
from reminder_bot.core.formatting import reminder_line
from reminder_bot.core.session_repository import FlowKind, Session
from reminder_bot.infra.reminder_store import StoreError

LOGGER = logging.getLogger(__name__)

STEP_SELECT = "select"


async def _begin(ctx: FlowContext, session: Session) -> StepResult:
    reminders = await ctx.store.get_by_owner(session.owner_id, limit=ctx.settings.delete_list_size)
    if not reminders:
        return complete("📭 You have no reminders to delete.")
    zone = await ctx.users.resolve_zone(session.owner_id)
    lines = ["🗑 Which reminder should I delete? Reply with its ID, or cancel.", ""]
    lines.extend(reminder_line(item, zone) for item in reminders)
    return advance(STEP_SELECT, "\n".join(lines), candidates=[item.id for item in reminders])


async def _handle_select(ctx: FlowContext, session: Session, text: str) -> StepResult:
    value = (text or "").strip().lstrip("#")
    if value.lower() == "cancel":
        return cancel(error_messages.CANCELLED_TEXT)
    try:
        reminder_id = int(value)
    except ValueError:
        return reprompt("❌ Please reply with a reminder ID from the list, or cancel.")
    if reminder_id not in session.data.get("candidates", []):
        return reprompt(f"❌ Reminder #{reminder_id} is not in the list. Try again or reply cancel.")
    try:
        deleted = await ctx.store.delete_by_id(reminder_id, session.owner_id)
    except StoreError:
        return reprompt(error_messages.STORE_FAILED_TEXT)
    if not deleted:
        return reprompt(f"❌ Reminder #{reminder_id} no longer exists. Pick another one or reply cancel.")
    LOGGER.info("Reminder deleted: reminder_id=%s owner_id=%s", reminder_id, session.owner_id)
    return complete(f"🗑 Reminder #{reminder_id} deleted.")


def register(engine: FlowEngine) -> None:
    engine.register(
        FlowDefinition(
            kind=FlowKind.DELETE,
            first_step=STEP_SELECT,
            steps={STEP_SELECT: _handle_select},
            begin=_begin,
        )
    )
