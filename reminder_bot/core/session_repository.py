from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol


class FlowKind(str, Enum):
    NEW_REMINDER = "reminder"
    MEDICINE = "medicine"
    DELETE = "delete"
    CLEAR = "clear"
    RESCHEDULE = "reschedule"
    RENEWAL = "renewal"


@dataclass
class Session:
    owner_id: str
    chat_id: str
    flow: FlowKind
    step: str
    started_at: datetime
    updated_at: datetime
    data: dict[str, Any] = field(default_factory=dict)

    def touch(self, now: datetime) -> None:
        self.updated_at = now


class SessionRepository(Protocol):
    """Storage for in-flight dialogs, at most one per owner."""

    def get(self, owner_id: str) -> Session | None: ...

    def save(self, session: Session) -> None: ...

    def delete(self, owner_id: str) -> Session | None: ...

    def count(self) -> int: ...


class InMemorySessionRepository:
    """Process-local sessions; a restart drops every in-flight dialog."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def get(self, owner_id: str) -> Session | None:
        return self._sessions.get(owner_id)

    def save(self, session: Session) -> None:
        self._sessions[session.owner_id] = session

    def delete(self, owner_id: str) -> Session | None:
        return self._sessions.pop(owner_id, None)

    def count(self) -> int:
        return len(self._sessions)
