"""Data-driven dialog flows.

Every flow is a FlowDefinition: an entry hook plus a table of named steps.
A step handler receives the user's text and returns a StepResult; it never
touches the session directly. The SessionManager applies the result, so a
re-prompt can never leave half-updated session data behind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Literal, Mapping

from reminder_bot.core.session_repository import FlowKind, Session

StepAction = Literal["reprompt", "advance", "complete", "cancel", "switch"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StepResult:
    action: StepAction
    text: str
    next_step: str | None = None
    next_flow: FlowKind | None = None
    updates: Mapping[str, Any] = field(default_factory=dict)


def reprompt(text: str) -> StepResult:
    return StepResult(action="reprompt", text=text)


def advance(next_step: str, text: str, **updates: Any) -> StepResult:
    return StepResult(action="advance", text=text, next_step=next_step, updates=updates)


def complete(text: str) -> StepResult:
    return StepResult(action="complete", text=text)


def cancel(text: str) -> StepResult:
    return StepResult(action="cancel", text=text)


def switch(flow: FlowKind, step: str, text: str, **data: Any) -> StepResult:
    """Replace the session with a fresh one in another flow, seeded with ``data``."""
    return StepResult(action="switch", text=text, next_step=step, next_flow=flow, updates=data)


@dataclass(frozen=True)
class FlowSettings:
    recurrence_weeks: int = 4
    delete_list_size: int = 10
    renewal_snooze_hours: int = 24


@dataclass
class FlowContext:
    """Collaborators shared by all step handlers."""

    store: Any
    users: Any
    settings: FlowSettings = field(default_factory=FlowSettings)
    now_fn: Callable[[], datetime] = field(default=utc_now)

    async def local_now(self, owner_id: str) -> datetime:
        zone = await self.users.resolve_zone(owner_id)
        return self.now_fn().astimezone(zone)


StepHandler = Callable[[FlowContext, Session, str], Awaitable[StepResult]]
EntryHandler = Callable[[FlowContext, Session], Awaitable[StepResult]]


@dataclass(frozen=True)
class FlowDefinition:
    kind: FlowKind
    first_step: str
    steps: Mapping[str, StepHandler]
    begin: EntryHandler


class FlowEngine:
    def __init__(self, context: FlowContext) -> None:
        self._context = context
        self._flows: dict[FlowKind, FlowDefinition] = {}

    @property
    def context(self) -> FlowContext:
        return self._context

    def register(self, flow: FlowDefinition) -> None:
        if flow.first_step not in flow.steps:
            raise ValueError(f"Unknown first step for flow {flow.kind.value}: {flow.first_step}")
        self._flows[flow.kind] = flow

    def has_flow(self, kind: FlowKind) -> bool:
        return kind in self._flows

    def steps_for(self, kind: FlowKind) -> tuple[str, ...]:
        return tuple(self._definition(kind).steps)

    async def begin(self, session: Session) -> StepResult:
        flow = self._definition(session.flow)
        session.step = flow.first_step
        result = await flow.begin(self._context, session)
        self._check(flow, result)
        return result

    async def handle(self, session: Session, text: str) -> StepResult:
        flow = self._definition(session.flow)
        handler = flow.steps.get(session.step)
        if handler is None:
            raise RuntimeError(f"Unknown step for flow {flow.kind.value}: {session.step}")
        result = await handler(self._context, session, text)
        self._check(flow, result)
        return result

    def _definition(self, kind: FlowKind) -> FlowDefinition:
        flow = self._flows.get(kind)
        if flow is None:
            raise ValueError(f"Unknown flow: {kind}")
        return flow

    def _check(self, flow: FlowDefinition, result: StepResult) -> None:
        if result.action == "advance" and result.next_step not in flow.steps:
            raise RuntimeError(f"Unknown next step for flow {flow.kind.value}: {result.next_step}")
        if result.action == "switch":
            target = self._definition(result.next_flow)
            if result.next_step not in target.steps:
                raise RuntimeError(
                    f"Unknown step for flow {target.kind.value}: {result.next_step}"
                )
