"""APScheduler wrapper: periodic bot jobs and one-shot message deletions."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

LOGGER = logging.getLogger(__name__)

JOB_DELIVERY = "delivery"
JOB_RENEWAL = "renewal-monitor"
JOB_LIFECYCLE_SWEEP = "lifecycle-sweep"
JOB_RETENTION = "retention"
RETENTION_HOUR = 2
RETENTION_MINUTE = 0


class AppScheduler:
    """Single APScheduler instance bound to the bot's event loop."""

    def __init__(self) -> None:
        self._scheduler = AsyncIOScheduler()

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        if self._scheduler.running:
            LOGGER.info("AppScheduler already started, skipping")
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
        self._scheduler._eventloop = loop
        self._scheduler.start()
        LOGGER.info("AppScheduler (APScheduler) started")

    def shutdown(self, wait: bool = True) -> None:
        if not self._scheduler.running:
            return
        try:
            self._scheduler.shutdown(wait=wait)
            LOGGER.info("AppScheduler shutdown")
        except Exception:
            LOGGER.exception("AppScheduler shutdown error")

    def add_one_shot_job(
        self,
        job_id: str,
        run_at: datetime,
        func: Callable[..., Any],
        *,
        kwargs: dict[str, Any] | None = None,
    ) -> bool:
        try:
            self._scheduler.add_job(
                func,
                trigger=DateTrigger(run_date=run_at),
                id=job_id,
                replace_existing=True,
                kwargs=kwargs or {},
                misfire_grace_time=None,
            )
            return True
        except Exception:
            LOGGER.exception("Failed to add one-shot job: job_id=%s", job_id)
            return False

    def add_interval_job(
        self,
        job_id: str,
        func: Callable[..., Any],
        *,
        seconds: int,
        kwargs: dict[str, Any] | None = None,
    ) -> bool:
        try:
            self._scheduler.add_job(
                func,
                trigger=IntervalTrigger(seconds=seconds),
                id=job_id,
                replace_existing=True,
                kwargs=kwargs or {},
                max_instances=1,
                coalesce=True,
            )
            LOGGER.info("Interval job scheduled: job_id=%s seconds=%s", job_id, seconds)
            return True
        except Exception:
            LOGGER.exception("Failed to add interval job: job_id=%s", job_id)
            return False

    def add_cron_job(
        self,
        job_id: str,
        func: Callable[..., Any],
        *,
        hour: int,
        minute: int,
        timezone_str: str,
        kwargs: dict[str, Any] | None = None,
    ) -> bool:
        try:
            self._scheduler.add_job(
                func,
                trigger=CronTrigger(hour=hour, minute=minute, timezone=ZoneInfo(timezone_str)),
                id=job_id,
                replace_existing=True,
                kwargs=kwargs or {},
                max_instances=1,
                coalesce=True,
            )
            LOGGER.info(
                "Cron job scheduled: job_id=%s at=%02d:%02d timezone=%s",
                job_id,
                hour,
                minute,
                timezone_str,
            )
            return True
        except Exception:
            LOGGER.exception("Failed to add cron job: job_id=%s", job_id)
            return False

    def remove_job(self, job_id: str) -> bool:
        try:
            self._scheduler.remove_job(job_id)
            return True
        except Exception:
            return False

    def get_jobs_by_name(self, name: str) -> list[Any]:
        """Jobs whose id equals ``name`` or starts with ``name:``."""
        jobs = self._scheduler.get_jobs()
        return [j for j in jobs if j.id == name or (name and j.id.startswith(name + ":"))]


async def _run_guarded(job_id: str, func: Callable[[], Awaitable[Any]]) -> None:
    try:
        await func()
    except Exception:
        LOGGER.exception("Scheduled job failed: job_id=%s", job_id)


async def _run_delivery(delivery) -> None:
    await _run_guarded(JOB_DELIVERY, delivery.tick)


async def _run_renewal(monitor) -> None:
    await _run_guarded(JOB_RENEWAL, monitor.tick)


async def _run_retention(delivery) -> None:
    await _run_guarded(JOB_RETENTION, delivery.purge_old)


async def _run_lifecycle_sweep(lifecycle) -> None:
    lifecycle.sweep()


def schedule_core_jobs(scheduler, *, delivery, monitor, lifecycle, settings) -> None:
    """Register the bot's periodic timers on ``scheduler``."""
    scheduler.add_interval_job(
        JOB_DELIVERY,
        _run_delivery,
        seconds=settings.delivery_tick_seconds,
        kwargs={"delivery": delivery},
    )
    scheduler.add_interval_job(
        JOB_RENEWAL,
        _run_renewal,
        seconds=settings.renewal_check_hours * 3600,
        kwargs={"monitor": monitor},
    )
    scheduler.add_interval_job(
        JOB_LIFECYCLE_SWEEP,
        _run_lifecycle_sweep,
        seconds=settings.lifecycle_sweep_seconds,
        kwargs={"lifecycle": lifecycle},
    )
    scheduler.add_cron_job(
        JOB_RETENTION,
        _run_retention,
        hour=RETENTION_HOUR,
        minute=RETENTION_MINUTE,
        timezone_str=settings.default_timezone,
        kwargs={"delivery": delivery},
    )
