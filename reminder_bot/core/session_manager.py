from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from reminder_bot.core import error_messages
from reminder_bot.core.flow_engine import FlowEngine, StepResult, utc_now
from reminder_bot.core.session_repository import FlowKind, Session, SessionRepository

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 900


class SessionManager:
    """Owns the one-dialog-per-owner lifecycle on top of an injected repository.

    Expiry is checked lazily: a session older than the timeout (measured from
    its start) is dropped when the owner's next message arrives.
    """

    def __init__(
        self,
        repository: SessionRepository,
        engine: FlowEngine,
        *,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repository = repository
        self._engine = engine
        self._timeout = timedelta(seconds=timeout_seconds)
        self._now_fn = now_fn

    @property
    def active_count(self) -> int:
        return self._repository.count()

    def get(self, owner_id: str) -> Session | None:
        return self._repository.get(owner_id)

    def has_pending(self, owner_id: str, flow: FlowKind) -> bool:
        session = self._repository.get(owner_id)
        return session is not None and session.flow == flow and not self.is_expired(session)

    def is_expired(self, session: Session, now: datetime | None = None) -> bool:
        current = now or self._now_fn()
        return current - session.started_at > self._timeout

    async def start(
        self,
        owner_id: str,
        chat_id: str,
        flow: FlowKind,
        data: dict[str, Any] | None = None,
    ) -> str:
        """Begin ``flow`` for the owner, silently replacing any existing dialog."""
        now = self._now_fn()
        session = Session(
            owner_id=owner_id,
            chat_id=chat_id,
            flow=flow,
            step="",
            started_at=now,
            updated_at=now,
            data=dict(data or {}),
        )
        previous = self._repository.delete(owner_id)
        if previous is not None:
            LOGGER.info(
                "Session replaced: owner_id=%s old_flow=%s new_flow=%s",
                owner_id,
                previous.flow.value,
                flow.value,
            )
        try:
            result = await self._engine.begin(session)
        except Exception:
            LOGGER.exception("Session start failed: owner_id=%s flow=%s", owner_id, flow.value)
            return error_messages.SESSION_FAILED_TEXT
        self._repository.save(session)
        LOGGER.info("Session started: owner_id=%s flow=%s step=%s", owner_id, flow.value, session.step)
        return self._apply(session, result)

    async def dispatch(self, owner_id: str, text: str) -> str | None:
        """Route free text to the owner's dialog; None when there is no dialog."""
        session = self._repository.get(owner_id)
        if session is None:
            return None
        now = self._now_fn()
        if self.is_expired(session, now):
            self._repository.delete(owner_id)
            LOGGER.info(
                "Session expired: owner_id=%s flow=%s step=%s",
                owner_id,
                session.flow.value,
                session.step,
            )
            return error_messages.SESSION_EXPIRED_TEXT
        session.touch(now)
        try:
            result = await self._engine.handle(session, text)
        except Exception:
            LOGGER.exception(
                "Session step failed: owner_id=%s flow=%s step=%s",
                owner_id,
                session.flow.value,
                session.step,
            )
            self._repository.delete(owner_id)
            return error_messages.SESSION_FAILED_TEXT
        return self._apply(session, result)

    def cancel(self, owner_id: str) -> str:
        session = self._repository.delete(owner_id)
        if session is None:
            return error_messages.NOTHING_TO_CANCEL_TEXT
        LOGGER.info("Session cancelled: owner_id=%s flow=%s", owner_id, session.flow.value)
        return error_messages.CANCELLED_TEXT

    def discard(self, owner_id: str) -> Session | None:
        return self._repository.delete(owner_id)

    def _apply(self, session: Session, result: StepResult) -> str:
        if result.action == "reprompt":
            return result.text
        if result.action == "advance":
            session.data.update(result.updates)
            session.step = result.next_step
            return result.text
        if result.action == "switch":
            now = self._now_fn()
            replacement = Session(
                owner_id=session.owner_id,
                chat_id=session.chat_id,
                flow=result.next_flow,
                step=result.next_step,
                started_at=now,
                updated_at=now,
                data=dict(result.updates),
            )
            self._repository.save(replacement)
            LOGGER.info(
                "Session switched: owner_id=%s from=%s to=%s",
                session.owner_id,
                session.flow.value,
                replacement.flow.value,
            )
            return result.text
        if result.action in ("complete", "cancel"):
            self._repository.delete(session.owner_id)
            LOGGER.info(
                "Session finished: owner_id=%s flow=%s outcome=%s",
                session.owner_id,
                session.flow.value,
                result.action,
            )
            return result.text
        raise RuntimeError(f"Unhandled step action: {result.action}")
