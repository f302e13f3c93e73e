from __future__ import annotations

import asyncio

from reminder_bot.core import error_messages
from reminder_bot.core.flow_engine import FlowContext, FlowDefinition, FlowEngine, reprompt
from reminder_bot.core.session_manager import SessionManager
from reminder_bot.core.session_repository import FlowKind, InMemorySessionRepository


def test_dispatch_without_session_returns_none(bot_env) -> None:
    assert asyncio.run(bot_env.sessions.dispatch("1", "hello")) is None


def test_start_replaces_existing_session(bot_env) -> None:
    asyncio.run(bot_env.sessions.start("1", "10", FlowKind.NEW_REMINDER))
    asyncio.run(bot_env.sessions.dispatch("1", "Call mom"))

    reply = asyncio.run(bot_env.sessions.start("1", "10", FlowKind.MEDICINE))

    session = bot_env.sessions.get("1")
    assert "medicine" in reply
    assert session.flow == FlowKind.MEDICINE
    assert session.step == "medicine_name"
    assert "activity" not in session.data
    assert bot_env.sessions.active_count == 1


def test_sessions_are_per_owner(bot_env) -> None:
    asyncio.run(bot_env.sessions.start("1", "10", FlowKind.NEW_REMINDER))
    asyncio.run(bot_env.sessions.start("2", "20", FlowKind.MEDICINE))

    assert bot_env.sessions.get("1").flow == FlowKind.NEW_REMINDER
    assert bot_env.sessions.get("2").flow == FlowKind.MEDICINE
    assert bot_env.sessions.active_count == 2


def test_session_expires_after_timeout_from_start(bot_env) -> None:
    asyncio.run(bot_env.sessions.start("1", "10", FlowKind.NEW_REMINDER))
    bot_env.clock.advance(minutes=15)

    reply = asyncio.run(bot_env.sessions.dispatch("1", "Call mom"))
    assert reply.startswith("Got it: Call mom")

    bot_env.clock.advance(seconds=1)
    reply = asyncio.run(bot_env.sessions.dispatch("1", "tomorrow"))

    assert reply == error_messages.SESSION_EXPIRED_TEXT
    assert bot_env.sessions.get("1") is None
    assert asyncio.run(bot_env.sessions.dispatch("1", "tomorrow")) is None


def test_has_pending_ignores_expired_sessions(bot_env) -> None:
    asyncio.run(bot_env.sessions.start("1", "10", FlowKind.NEW_REMINDER))

    assert bot_env.sessions.has_pending("1", FlowKind.NEW_REMINDER) is True
    assert bot_env.sessions.has_pending("1", FlowKind.RENEWAL) is False

    bot_env.clock.advance(minutes=16)

    assert bot_env.sessions.has_pending("1", FlowKind.NEW_REMINDER) is False


def test_cancel(bot_env) -> None:
    assert bot_env.sessions.cancel("1") == error_messages.NOTHING_TO_CANCEL_TEXT

    asyncio.run(bot_env.sessions.start("1", "10", FlowKind.NEW_REMINDER))

    assert bot_env.sessions.cancel("1") == error_messages.CANCELLED_TEXT
    assert bot_env.sessions.get("1") is None


def test_begin_failure_leaves_no_session(bot_env) -> None:
    reply = asyncio.run(bot_env.sessions.start("1", "10", FlowKind.RESCHEDULE, data={}))

    assert reply == error_messages.SESSION_FAILED_TEXT
    assert bot_env.sessions.get("1") is None


def test_step_failure_drops_session(clock) -> None:
    async def _begin(ctx, session):
        return reprompt("go")

    async def _explode(ctx, session, text):
        raise KeyError("boom")

    engine = FlowEngine(FlowContext(store=None, users=None, now_fn=clock))
    engine.register(
        FlowDefinition(kind=FlowKind.CLEAR, first_step="only", steps={"only": _explode}, begin=_begin)
    )
    sessions = SessionManager(InMemorySessionRepository(), engine, now_fn=clock)

    assert asyncio.run(sessions.start("1", "10", FlowKind.CLEAR)) == "go"
    assert asyncio.run(sessions.dispatch("1", "anything")) == error_messages.SESSION_FAILED_TEXT
    assert sessions.get("1") is None


def test_reprompt_keeps_step_and_data(bot_env) -> None:
    asyncio.run(bot_env.sessions.start("1", "10", FlowKind.NEW_REMINDER))
    asyncio.run(bot_env.sessions.dispatch("1", "Call mom"))

    reply = asyncio.run(bot_env.sessions.dispatch("1", "someday"))

    session = bot_env.sessions.get("1")
    assert "couldn't understand" in reply
    assert session.step == "date"
    assert session.data["activity"] == "Call mom"
    assert "date" not in session.data
