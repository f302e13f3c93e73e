from __future__ import annotations

from reminder_bot.core.flow_engine import FlowContext, FlowEngine
from reminder_bot.core.flows import clear, delete, medicine, new_reminder, renewal, reschedule
from reminder_bot.core.session_repository import FlowKind


def build_flow_engine(context: FlowContext) -> FlowEngine:
    engine = FlowEngine(context)
    for module in (new_reminder, medicine, delete, clear, reschedule, renewal):
        module.register(engine)
    missing = [kind.value for kind in FlowKind if not engine.has_flow(kind)]
    if missing:
        raise RuntimeError(f"Flows without a definition: {', '.join(missing)}")
    return engine
