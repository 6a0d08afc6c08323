from __future__ import annotations

import datetime as dt
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from newsdesk.services.container import Services

logger = logging.getLogger(__name__)

COLLECT_JOB_ID = "collect_news"
CLEANUP_JOB_ID = "cleanup_audio"
SWEEP_JOB_ID = "sweep_request_cache"


async def run_collection_job(services: Services) -> None:
    await services.collector.run(trigger="scheduled")


async def run_cleanup_job(services: Services) -> None:
    max_age = dt.timedelta(days=services.settings.audio_max_age_days)
    await services.storage.cleanup_artifacts(max_age)


def run_sweep_job(services: Services) -> None:
    services.request_cache.sweep()


def create_scheduler(services: Services) -> AsyncIOScheduler:
    settings = services.settings
    if not settings.single_process:
        # Two ingestion processes would duplicate provider calls and audio generation
        raise RuntimeError("SINGLE_PROCESS=false is not supported: run exactly one ingestion process")

    scheduler = AsyncIOScheduler(timezone=dt.timezone.utc)
    scheduler.add_job(
        run_collection_job,
        IntervalTrigger(minutes=settings.collect_interval_minutes),
        args=[services],
        id=COLLECT_JOB_ID,
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.add_job(
        run_cleanup_job,
        CronTrigger(hour=0, minute=0),
        args=[services],
        id=CLEANUP_JOB_ID,
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.add_job(
        run_sweep_job,
        IntervalTrigger(minutes=1),
        args=[services],
        id=SWEEP_JOB_ID,
        replace_existing=True,
    )
    return scheduler


def next_collection_at(scheduler: AsyncIOScheduler | None) -> str | None:
    if scheduler is None:
        return None
    job = scheduler.get_job(COLLECT_JOB_ID)
    if job is None or job.next_run_time is None:
        return None
    return job.next_run_time.isoformat()


def shutdown_scheduler(scheduler: AsyncIOScheduler | None) -> None:
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
