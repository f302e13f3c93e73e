import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from reminder_bot.bot.service import BotService  # noqa: E402
from reminder_bot.core.flow_engine import FlowContext, FlowSettings  # noqa: E402
from reminder_bot.core.flows.registry import build_flow_engine  # noqa: E402
from reminder_bot.core.message_lifecycle import MessageLifecycleManager  # noqa: E402
from reminder_bot.core.session_manager import SessionManager  # noqa: E402
from reminder_bot.core.session_repository import InMemorySessionRepository  # noqa: E402
from reminder_bot.infra.reminder_store import ReminderStore  # noqa: E402
from reminder_bot.infra.user_store import UserStore  # noqa: E402

# Wednesday
REFERENCE_NOW = datetime(2026, 10, 14, 10, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class DummyAppScheduler:
    """Stand-in for AppScheduler: records jobs instead of running them."""

    def __init__(self) -> None:
        self.jobs: dict[str, dict] = {}

    def add_one_shot_job(self, job_id, run_at, func, *, kwargs=None) -> bool:
        self.jobs[job_id] = {"run_at": run_at, "func": func, "kwargs": kwargs or {}}
        return True

    def add_interval_job(self, job_id, func, *, seconds, kwargs=None) -> bool:
        self.jobs[job_id] = {"seconds": seconds, "func": func, "kwargs": kwargs or {}}
        return True

    def add_cron_job(self, job_id, func, *, hour, minute, timezone_str, kwargs=None) -> bool:
        self.jobs[job_id] = {
            "hour": hour,
            "minute": minute,
            "timezone": timezone_str,
            "func": func,
            "kwargs": kwargs or {},
        }
        return True

    def remove_job(self, job_id: str) -> bool:
        return self.jobs.pop(job_id, None) is not None

    def get_jobs_by_name(self, name: str) -> list:
        return [job_id for job_id in self.jobs if job_id == name or job_id.startswith(name + ":")]


class FakeChannel:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, int]] = []
        self.fail_send = False
        self.fail_delete = False
        self._next_id = 100

    async def send(self, chat_id: str, text: str) -> list[int]:
        if self.fail_send:
            raise RuntimeError("channel down")
        self._next_id += 1
        self.sent.append((chat_id, text))
        return [self._next_id]

    async def delete(self, chat_id: str, message_id: int) -> bool:
        if self.fail_delete:
            raise RuntimeError("already gone")
        self.deleted.append((chat_id, message_id))
        return True


@pytest.fixture
def clock() -> Clock:
    return Clock(REFERENCE_NOW)


@pytest.fixture
def bot_env(tmp_path, clock):
    """Real SQLite stores and flows wired to a fake channel and scheduler."""
    db_path = tmp_path / "reminders.db"
    store = ReminderStore(db_path)
    users = UserStore(db_path, default_timezone="UTC")
    engine = build_flow_engine(
        FlowContext(store=store, users=users, settings=FlowSettings(), now_fn=clock)
    )
    sessions = SessionManager(InMemorySessionRepository(), engine, timeout_seconds=900, now_fn=clock)
    channel = FakeChannel()
    scheduler = DummyAppScheduler()
    lifecycle = MessageLifecycleManager(channel, scheduler, now_fn=clock)
    service = BotService(store, users, sessions)
    env = SimpleNamespace(
        store=store,
        users=users,
        engine=engine,
        sessions=sessions,
        channel=channel,
        scheduler=scheduler,
        lifecycle=lifecycle,
        service=service,
        clock=clock,
    )
    yield env
    store.close()
    users.close()
