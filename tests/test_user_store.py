from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from reminder_bot.infra.user_store import UserStore, is_valid_timezone

NOW = datetime(2026, 10, 14, 10, 0, tzinfo=timezone.utc)


def test_touch_creates_then_refreshes_account(tmp_path) -> None:
    store = UserStore(tmp_path / "db.sqlite", default_timezone="Asia/Kolkata")

    created = asyncio.run(store.touch("1", "Alice", NOW))
    refreshed = asyncio.run(store.touch("1", "Alice B.", NOW + timedelta(hours=1)))

    assert created.created_at == NOW
    assert refreshed.created_at == NOW
    assert refreshed.last_activity_at == NOW + timedelta(hours=1)
    assert refreshed.display_name == "Alice B."
    assert refreshed.timezone is None
    store.close()


def test_resolve_timezone_falls_back_to_default(tmp_path) -> None:
    store = UserStore(tmp_path / "db.sqlite", default_timezone="Asia/Kolkata")

    assert asyncio.run(store.resolve_timezone("unknown")) == "Asia/Kolkata"
    asyncio.run(store.touch("1", "Alice", NOW))
    assert asyncio.run(store.resolve_timezone("1")) == "Asia/Kolkata"
    store.close()


def test_set_timezone(tmp_path) -> None:
    store = UserStore(tmp_path / "db.sqlite")
    asyncio.run(store.touch("1", "Alice", NOW))

    assert asyncio.run(store.set_timezone("1", "Mars/Olympus")) is False
    assert asyncio.run(store.set_timezone("1", "Europe/London")) is True
    assert asyncio.run(store.resolve_timezone("1")) == "Europe/London"
    assert asyncio.run(store.resolve_zone("1")) == ZoneInfo("Europe/London")
    assert asyncio.run(store.set_timezone("missing", "Europe/London")) is False
    store.close()


def test_is_valid_timezone() -> None:
    assert is_valid_timezone("UTC")
    assert not is_valid_timezone("")
    assert not is_valid_timezone(None)
    assert not is_valid_timezone("Not/AZone")
