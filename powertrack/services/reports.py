"""
Report service.

A report row stores only its parameters (range plus suburb or consumer
scope, or neither for a nation-wide report). The report body is recomputed
from current telemetry every time it is read.

CHANGELOG:
- 2026-04-24: Reject unknown suburb or consumer scope with NotFound (STORY-023)
- 2026-04-22: Add bulk periodic report creation (STORY-022)
- 2026-04-21: Initial creation (STORY-021)

TODO:
- None
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from powertrack.db.models import Consumer, Report, Suburb
from powertrack.errors import MalformedInputError, NoDataError, NotFoundError
from powertrack.services.aggregation import aggregate
from powertrack.services.energy import green_energy, source_breakdown
from powertrack.services.pricing import profit_margin, spending
from powertrack.services.reference import get_consumer_suburb_id

logger = logging.getLogger(__name__)


def _report_summary(report: Report) -> dict:
    return {
        "id": report.id,
        "start_date": report.start_date.isoformat(),
        "end_date": report.end_date.isoformat(),
        "for": {
            "suburb_id": report.suburb_id,
            "consumer_id": report.consumer_id,
        },
    }


async def list_reports(db: AsyncSession) -> list[dict]:
    result = await db.execute(select(Report).order_by(Report.id))
    return [_report_summary(r) for r in result.scalars().all()]


async def create_report(
    db: AsyncSession,
    start: datetime,
    end: datetime,
    suburb_id: int | None = None,
    consumer_id: int | None = None,
) -> int:
    """Store a new report definition.

    Returns:
        int: The new report id.

    Raises:
        MalformedInputError: If both scope ids are given, or a report with
            identical parameters already exists.
        NotFoundError: If the scoped suburb or consumer does not exist.
    """
    if suburb_id is not None and consumer_id is not None:
        raise MalformedInputError("Cannot specify both suburb_id and consumer_id.")
    if suburb_id is not None and await db.get(Suburb, suburb_id) is None:
        raise NotFoundError(f"Suburb {suburb_id} not found.")
    if consumer_id is not None and await db.get(Consumer, consumer_id) is None:
        raise NotFoundError(f"Consumer {consumer_id} not found.")

    existing = await db.execute(
        select(Report.id).where(
            Report.start_date == start,
            Report.end_date == end,
            Report.suburb_id.is_not_distinct_from(suburb_id),
            Report.consumer_id.is_not_distinct_from(consumer_id),
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise MalformedInputError("Report already exists for the given parameters")

    report = Report(
        start_date=start,
        end_date=end,
        suburb_id=suburb_id,
        consumer_id=consumer_id,
    )
    db.add(report)
    await db.commit()
    await db.refresh(report)

    logger.info(
        "Created report %s (suburb_id=%s consumer_id=%s)",
        report.id,
        suburb_id,
        consumer_id,
    )
    return report.id


async def create_consumer_reports(
    db: AsyncSession, start: datetime, end: datetime
) -> int:
    """Create one report per consumer for a period.

    Returns:
        int: Number of reports created.
    """
    result = await db.execute(select(Consumer.id).order_by(Consumer.id))
    consumer_ids = list(result.scalars().all())

    db.add_all(
        [
            Report(start_date=start, end_date=end, consumer_id=consumer_id)
            for consumer_id in consumer_ids
        ]
    )
    await db.commit()

    logger.info(
        "Generated periodic reports for the period %s to %s for %d consumers",
        start.isoformat(),
        end.isoformat(),
        len(consumer_ids),
    )
    return len(consumer_ids)


async def get_report(db: AsyncSession, report_id: int) -> dict:
    """Return a report with its body recomputed from current data.

    Raises:
        NotFoundError: If the report does not exist.
    """
    report = await db.get(Report, report_id)
    if report is None:
        raise NotFoundError("Report not found")

    start, end = report.start_date, report.end_date
    suburb_id = report.suburb_id
    if report.consumer_id is not None:
        suburb_id = await get_consumer_suburb_id(db, report.consumer_id)

    if report.consumer_id is not None:
        consumption = await aggregate(
            db, "consumer_consumption", start, end, report.consumer_id
        )
    else:
        consumption = await aggregate(db, "suburb_consumption", start, end, suburb_id)

    try:
        green = await green_energy(db, start=start, end=end, suburb_id=suburb_id)
    except NoDataError:
        green = {"green_usage_percent": None, "green_goal_percent": None}

    energy: dict = {
        "consumption": [b.to_point() for b in consumption],
        "sources": await source_breakdown(db, start, end, suburb_id),
        "green_energy": {
            "green_goal_percent": green["green_goal_percent"],
            "green_usage_percent": green["green_usage_percent"],
        },
    }
    body = _report_summary(report)
    body["energy"] = energy

    if report.consumer_id is None:
        generation = await aggregate(db, "generation", start, end, suburb_id)
        energy["generation"] = [b.to_point() for b in generation]
        body.update(await profit_margin(db, start, end))
    else:
        body["spending"] = await spending(db, start, end, report.consumer_id)

    return body
