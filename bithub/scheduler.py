from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from bithub.config import Settings
from bithub.domain import DeletionCount
from bithub.logging_setup import get_logger

JanitorJob = Callable[[], Awaitable[DeletionCount]]


def _run_job(job: JanitorJob, category_id: int) -> None:
    logger = get_logger("scheduler")
    # Each run gets its own event loop on the scheduler's worker thread.
    result = asyncio.run(job())
    logger.info("Janitor run removed %d topic(s) from category %s", result.deleted_count, category_id)


def build_scheduler(job: JanitorJob, *, category_id: int, cron_expr: str) -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        _run_job,
        CronTrigger.from_crontab(cron_expr),
        args=(job, category_id),
        name=f"bithub_janitor_{category_id}",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=30,
    )
    return scheduler


def run_schedule(
    job: JanitorJob,
    *,
    settings: Settings,
    category_id: int,
    cron: str | None = None,
    enable: bool = False,
) -> None:
    logger = get_logger("scheduler")
    if not enable:
        logger.info("Schedule disabled. Pass --enable to start the janitor.")
        print("Schedule disabled. Pass --enable to start the janitor.")
        return

    cron_expr = cron or settings.JANITOR_CRON
    scheduler = build_scheduler(job, category_id=category_id, cron_expr=cron_expr)
    scheduler.start()
    logger.info("Janitor scheduled for category %s with cron: %s", category_id, cron_expr)
    print(f"Janitor scheduled for category {category_id} with cron: {cron_expr}")

    # Keep the process alive until interrupted
    try:
        while True:
            time.sleep(1.0)
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped.")
        scheduler.shutdown()
