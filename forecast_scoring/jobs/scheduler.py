"""
Background scheduling.

Runs the expiry sweep on an interval with APScheduler's AsyncIOScheduler.
"""

from datetime import datetime, timezone

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from forecast_scoring.config.settings import SweeperSettings
from forecast_scoring.services.engine import ScoringEngine

logger = structlog.get_logger(__name__)

SWEEP_JOB_ID = "expiry_sweep"


async def expiry_sweep_job(engine: ScoringEngine) -> None:
    """Run one sweep; failures are logged so the next run still fires."""
    logger.info("Running scheduled job", job=SWEEP_JOB_ID)
    try:
        report = await engine.run_expiry_sweep()
        logger.info("Scheduled job completed", job=SWEEP_JOB_ID, **report.summary())
    except Exception:
        logger.exception("Scheduled job failed", job=SWEEP_JOB_ID)


def create_scheduler(
    engine: ScoringEngine,
    settings: SweeperSettings | None = None,
) -> AsyncIOScheduler:
    """
    Build a scheduler with the expiry sweep registered.

    The job never overlaps itself and missed runs collapse into one.
    """
    settings = settings or engine.settings.sweeper
    # An explicit next_run_time=None would add the job paused
    first_run: dict = {"next_run_time": datetime.now(timezone.utc)} if settings.run_on_start else {}

    scheduler = AsyncIOScheduler(timezone=timezone.utc)
    scheduler.add_job(
        expiry_sweep_job,
        "interval",
        minutes=settings.interval_minutes,
        args=[engine],
        id=SWEEP_JOB_ID,
        name="Resolve expired forecasts",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
        **first_run,
    )
    logger.info(
        "Scheduler configured",
        job=SWEEP_JOB_ID,
        interval_minutes=settings.interval_minutes,
        run_on_start=settings.run_on_start,
    )
    return scheduler
