from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from reminder_bot.bot.service import InboundEvent
from reminder_bot.core import error_messages
from reminder_bot.core.delivery import DeliveryLoop
from reminder_bot.core.formatting import HELP_TEXT, WELCOME_TEXT
from reminder_bot.core.models import Reminder
from reminder_bot.core.session_repository import FlowKind
from reminder_bot.infra.reminder_store import StoreError


def _send(env, text, owner="1"):
    return asyncio.run(
        env.service.handle(InboundEvent(owner_id=owner, chat_id="10", text=text, display_name="Alice"))
    )


def _add(env, minutes, message="Call mom", sent=False):
    return asyncio.run(
        env.store.create_reminder(
            Reminder(
                id=None,
                owner_id="1",
                chat_id="10",
                display_name="Alice",
                message=message,
                scheduled_at=env.clock() + timedelta(minutes=minutes),
                sent=sent,
            )
        )
    )


def test_help_and_start(bot_env) -> None:
    [help_reply] = _send(bot_env, "/help")
    [start_reply] = _send(bot_env, "/start")

    assert help_reply.text == HELP_TEXT
    assert help_reply.preserve is False
    assert start_reply.text == WELCOME_TEXT
    assert start_reply.preserve is True


def test_unknown_command(bot_env) -> None:
    [reply] = _send(bot_env, "/frobnicate now")

    assert reply.text.startswith("❓ Unknown command: /frobnicate")


def test_command_aliases_start_flows(bot_env) -> None:
    _send(bot_env, "/new")
    assert bot_env.sessions.get("1").flow == FlowKind.NEW_REMINDER

    _send(bot_env, "/medicine@reminder_bot")
    assert bot_env.sessions.get("1").flow == FlowKind.MEDICINE
    assert bot_env.sessions.get("1").data["display_name"] == "Alice"


def test_command_interrupts_running_dialog(bot_env) -> None:
    _send(bot_env, "/reminder")
    _send(bot_env, "Call mom")

    [reply] = _send(bot_env, "/list")

    assert "no reminders yet" in reply.text
    assert bot_env.sessions.get("1").step == "date"


def test_cancel_command(bot_env) -> None:
    [nothing] = _send(bot_env, "/cancel")
    _send(bot_env, "/reminder")
    [cancelled] = _send(bot_env, "/cancel")

    assert nothing.text == error_messages.NOTHING_TO_CANCEL_TEXT
    assert cancelled.text == error_messages.CANCELLED_TEXT
    assert bot_env.sessions.get("1") is None


def test_list_shows_pending_then_completed_preview(bot_env) -> None:
    _add(bot_env, 90, message="Pending later")
    _add(bot_env, 30, message="Pending soon")
    for index in range(7):
        _add(bot_env, -60 * (index + 1), message=f"Done {index}", sent=True)

    [reply] = _send(bot_env, "/view")

    assert "⏳ Pending (2):" in reply.text
    assert reply.text.index("Pending soon") < reply.text.index("Pending later")
    assert "✅ Completed (7):" in reply.text
    assert reply.text.count("✅ #") == 5
    assert reply.text.endswith("... and 2 more")


def test_timezone_command(bot_env) -> None:
    [current] = _send(bot_env, "/timezone")
    [updated] = _send(bot_env, "/timezone Europe/London")
    [rejected] = _send(bot_env, "/timezone Mars/Olympus")

    assert "Your timezone: UTC" in current.text
    assert updated.text == "✅ Timezone set to Europe/London."
    assert rejected.text.startswith("❌ Unknown timezone: Mars/Olympus")
    assert asyncio.run(bot_env.users.resolve_timezone("1")) == "Europe/London"


def test_timezone_save_failure_is_not_reported_as_unknown_zone(bot_env, monkeypatch) -> None:
    async def failing_touch(*args, **kwargs):
        raise StoreError("touch failed")

    monkeypatch.setattr(bot_env.users, "touch", failing_touch)

    [reply] = _send(bot_env, "/timezone Europe/London")

    assert reply.text == error_messages.STORE_FAILED_TEXT
    assert "Unknown timezone" not in reply.text


def test_timezone_creates_missing_account_before_saving(bot_env, monkeypatch) -> None:
    real_touch = bot_env.users.touch
    calls = []

    async def touch_failing_once(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            raise StoreError("touch failed")
        return await real_touch(*args, **kwargs)

    monkeypatch.setattr(bot_env.users, "touch", touch_failing_once)

    [reply] = _send(bot_env, "/timezone Europe/London")

    assert reply.text == "✅ Timezone set to Europe/London."
    assert len(calls) == 2
    assert asyncio.run(bot_env.users.resolve_timezone("1")) == "Europe/London"


def test_timezone_store_error_on_update(bot_env, monkeypatch) -> None:
    async def failing_set(*args, **kwargs):
        raise StoreError("set timezone failed")

    monkeypatch.setattr(bot_env.users, "set_timezone", failing_set)

    [reply] = _send(bot_env, "/timezone Asia/Kolkata")

    assert reply.text == error_messages.STORE_FAILED_TEXT


def test_free_text_without_dialog_gets_no_reply(bot_env) -> None:
    assert _send(bot_env, "hello there") == []
    assert _send(bot_env, "done") == []


def test_done_refers_to_last_delivered(bot_env) -> None:
    _add(bot_env, -120, sent=True)
    latest = _add(bot_env, -10, sent=True)

    [reply] = _send(bot_env, "Done")

    assert reply.text == f"👍 Great! Reminder #{latest.id} marked as done."


def test_delete_reply_removes_last_delivered(bot_env) -> None:
    older = _add(bot_env, -120, sent=True)
    latest = _add(bot_env, -10, sent=True)

    [reply] = _send(bot_env, "delete")

    assert reply.text == f"🗑 Reminder #{latest.id} deleted."
    remaining = asyncio.run(bot_env.store.get_by_owner("1"))
    assert [item.id for item in remaining] == [older.id]


def test_reschedule_reply_moves_reminder(bot_env) -> None:
    latest = _add(bot_env, -10, message="Water plants", sent=True)

    [prompt] = _send(bot_env, "reschedule")
    [time_prompt] = _send(bot_env, "tomorrow")
    [done] = _send(bot_env, "3pm")

    assert prompt.text.startswith("🔄 Rescheduling: Water plants")
    assert "What time on 2026-10-15" in time_prompt.text
    assert done.text.startswith(f"✅ Reminder #{latest.id} moved to Thursday, October 15, 2026")
    moved = asyncio.run(bot_env.store.get_reminder(latest.id))
    assert moved.sent is False
    assert moved.scheduled_at == datetime(2026, 10, 15, 15, 0, tzinfo=timezone.utc)
    assert bot_env.sessions.get("1") is None


def test_rescheduled_sent_reminder_is_delivered_again(bot_env) -> None:
    reminder = _add(bot_env, -10, message="Water plants")
    loop = DeliveryLoop(bot_env.store, bot_env.users, bot_env.lifecycle, now_fn=bot_env.clock)
    assert asyncio.run(loop.tick()) == 1

    _send(bot_env, "reschedule")
    _send(bot_env, "tomorrow")
    _send(bot_env, "3pm")

    assert asyncio.run(loop.tick()) == 0
    bot_env.clock.advance(hours=29)
    assert asyncio.run(loop.tick()) == 1

    delivered = [text for _, text in bot_env.channel.sent if text.startswith("🔔 REMINDER")]
    assert len(delivered) == 2
    assert all(f"🆔 ID: #{reminder.id}" in text for text in delivered)
    assert asyncio.run(bot_env.store.get_reminder(reminder.id)).sent is True
    assert asyncio.run(loop.tick()) == 0


def test_reschedule_of_deleted_reminder(bot_env) -> None:
    latest = _add(bot_env, -10, sent=True)
    _send(bot_env, "reschedule")
    _send(bot_env, "tomorrow")
    asyncio.run(bot_env.store.delete_by_id(latest.id, "1"))

    [reply] = _send(bot_env, "noon")

    assert reply.text == f"❌ Reminder #{latest.id} no longer exists."


def test_dialog_text_takes_priority_over_fallback_words(bot_env) -> None:
    _add(bot_env, -10, sent=True)
    _send(bot_env, "/reminder")

    [reply] = _send(bot_env, "done")

    assert "at least 5 characters" in reply.text
    assert bot_env.sessions.get("1").step == "activity"


def test_first_contact_creates_account(bot_env) -> None:
    _send(bot_env, "/help", owner="42")

    account = asyncio.run(bot_env.users.get("42"))
    assert account.display_name == "Alice"
    assert account.timezone is None
