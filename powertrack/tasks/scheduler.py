"""APScheduler setup for periodic weekly and monthly consumer reports."""

import logging
from datetime import UTC, datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from powertrack.db.session import init_engine
from powertrack.services.aggregation import add_months
from powertrack.services.reports import create_consumer_reports

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


async def generate_periodic_reports(start: datetime, end: datetime) -> int:
    """Create one report per consumer for ``(start, end]``."""
    session_factory = init_engine()
    async with session_factory() as session:
        return await create_consumer_reports(session, start, end)


async def run_weekly_reports(now: datetime | None = None) -> None:
    now = now or datetime.now(tz=UTC)
    try:
        await generate_periodic_reports(now - timedelta(weeks=1), now)
    except Exception as e:
        logger.error("Weekly report job failed: %s", e, exc_info=True)


async def run_monthly_reports(now: datetime | None = None) -> None:
    now = now or datetime.now(tz=UTC)
    try:
        await generate_periodic_reports(add_months(now, -1), now)
    except Exception as e:
        logger.error("Monthly report job failed: %s", e, exc_info=True)


def start_scheduler() -> AsyncIOScheduler:
    """Start the report scheduler on the running event loop."""
    global _scheduler
    _scheduler = AsyncIOScheduler(timezone="UTC")

    _scheduler.add_job(
        run_weekly_reports,
        "cron",
        day_of_week="mon",
        hour=0,
        minute=0,
        id="weekly_reports",
        name="Weekly consumer reports",
        max_instances=1,
    )

    _scheduler.add_job(
        run_monthly_reports,
        "cron",
        day=1,
        hour=0,
        minute=0,
        id="monthly_reports",
        name="Monthly consumer reports",
        max_instances=1,
    )

    _scheduler.start()
    logger.info("Scheduler started: weekly reports on Monday, monthly on the 1st")
    return _scheduler


def stop_scheduler() -> None:
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
        _scheduler = None
