from __future__ import annotations

import asyncio
import logging

from reminder_bot import main as main_module
from reminder_bot.infra.config import load_settings


def _dry_run_env(monkeypatch, tmp_path) -> None:
    monkeypatch.delenv("BOT_TOKEN", raising=False)
    monkeypatch.setenv("DRY_RUN", "1")
    monkeypatch.setenv("DEFAULT_TIMEZONE", "UTC")
    monkeypatch.setenv("BOT_DB_PATH", str(tmp_path / "reminders.db"))
    monkeypatch.chdir(tmp_path)


def test_dry_run_mode_skips_telegram_polling(monkeypatch, tmp_path, caplog) -> None:
    _dry_run_env(monkeypatch, tmp_path)
    called = {"run_polling": False}

    def _fake_run_polling(self, *args, **kwargs):
        called["run_polling"] = True

    monkeypatch.setattr(main_module.Application, "run_polling", _fake_run_polling)
    monkeypatch.setattr(main_module, "configure_logging", lambda: None)
    caplog.set_level(logging.INFO)

    main_module.main()

    assert called["run_polling"] is False
    assert any("DRY_RUN" in record.message for record in caplog.records)
    assert (tmp_path / "reminders.db").exists()


def test_build_application_wires_runtime(monkeypatch, tmp_path) -> None:
    _dry_run_env(monkeypatch, tmp_path)
    application = main_module.build_application(load_settings())

    for key in ("settings", "store", "users", "sessions", "lifecycle", "app_scheduler", "dispatch_loop"):
        assert key in application.bot_data

    async def run() -> tuple[bool, list, bool]:
        await application.post_init(application)
        loop_running = application.bot_data["dispatch_loop"].running
        job_ids = sorted(job.id for job in application.bot_data["app_scheduler"]._scheduler.get_jobs())
        await application.post_shutdown(application)
        return loop_running, job_ids, application.bot_data["dispatch_loop"].running

    loop_running, job_ids, running_after = asyncio.run(run())

    assert loop_running is True
    assert job_ids == ["delivery", "lifecycle-sweep", "renewal-monitor", "retention"]
    assert running_after is False
