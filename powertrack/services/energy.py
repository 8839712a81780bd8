"""
Energy statistics: green energy share and generation source breakdown.

CHANGELOG:
- 2026-04-20: Initial creation (STORY-019)

TODO:
- None
"""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from powertrack.db.models import (
    EnergyGeneration,
    EnergyGenerator,
    GeneratorType,
    WarningType,
)
from powertrack.errors import NoDataError

logger = logging.getLogger(__name__)

GREEN_TARGET_CATEGORY = "fossil_fuels"


def _generation_join(stmt):
    return stmt.join(
        EnergyGenerator, EnergyGenerator.id == EnergyGeneration.energy_generator_id
    ).join(GeneratorType, GeneratorType.id == EnergyGenerator.generator_type_id)


async def green_energy(
    db: AsyncSession,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    suburb_id: int | None = None,
    lookback_h: int = 24,
    now: datetime | None = None,
) -> dict[str, float]:
    """Return the renewable share of generation and progress to the goal.

    Without an explicit range the last ``lookback_h`` hours are used. Goal
    progress is the renewable share divided by the target of the
    ``fossil_fuels`` warning type.

    Returns:
        dict: ``green_usage_percent`` and ``green_goal_percent`` (fractions).

    Raises:
        NoDataError: If there is no generation in the window or no target
            is configured.
    """
    if start is None or end is None:
        end = now or datetime.now(tz=UTC)
        start = end - timedelta(hours=lookback_h)
        no_data_message = (
            f"No generation records in the last {lookback_h} hours were found."
        )
    else:
        no_data_message = "No generation records in the given period were found."

    stmt = _generation_join(
        select(GeneratorType.renewable, func.sum(EnergyGeneration.amount).label("total"))
    ).where(EnergyGeneration.date > start, EnergyGeneration.date <= end)
    if suburb_id is not None:
        stmt = stmt.where(EnergyGenerator.suburb_id == suburb_id)
    stmt = stmt.group_by(GeneratorType.renewable)

    result = await db.execute(stmt)
    totals = {
        bool(row["renewable"]): float(row["total"] or 0)
        for row in result.mappings().all()
    }
    renewable = totals.get(True, 0.0)
    non_renewable = totals.get(False, 0.0)

    if not renewable and not non_renewable:
        raise NoDataError(no_data_message)
    green_usage = renewable / (renewable + non_renewable)

    target_stmt = (
        select(WarningType.target)
        .where(WarningType.category == GREEN_TARGET_CATEGORY)
        .limit(1)
    )
    target = (await db.execute(target_stmt)).scalar_one_or_none()
    if not target:
        raise NoDataError("No green target found.")

    return {
        "green_usage_percent": green_usage,
        "green_goal_percent": green_usage / float(target),
    }


async def source_breakdown(
    db: AsyncSession,
    start: datetime,
    end: datetime,
    suburb_id: int | None = None,
) -> list[dict]:
    """Return generation per source category.

    Average power is taken per generator, summed per generator-type
    category, and the share is computed from those averages. ``amount`` is
    the category average times the whole hours in the period (kWh).

    Returns:
        list[dict]: ``{category, renewable, percentage, amount}`` sorted by
        category.
    """
    stmt = _generation_join(
        select(
            EnergyGenerator.id.label("generator_id"),
            GeneratorType.category,
            GeneratorType.renewable,
            func.avg(EnergyGeneration.amount).label("average_amount"),
        )
    ).where(EnergyGeneration.date > start, EnergyGeneration.date <= end)
    if suburb_id is not None:
        stmt = stmt.where(EnergyGenerator.suburb_id == suburb_id)
    stmt = stmt.group_by(
        EnergyGenerator.id, GeneratorType.category, GeneratorType.renewable
    ).order_by(GeneratorType.category.asc())

    result = await db.execute(stmt)
    categories: dict[str, dict] = {}
    for row in result.mappings().all():
        entry = categories.setdefault(
            row["category"],
            {
                "category": row["category"],
                "renewable": bool(row["renewable"]),
                "average": 0.0,
            },
        )
        entry["average"] += float(row["average_amount"])

    total = sum(entry["average"] for entry in categories.values())
    hours = int((end - start).total_seconds() // 3600)

    return [
        {
            "category": entry["category"],
            "renewable": entry["renewable"],
            "percentage": entry["average"] / total if total else 0.0,
            "amount": entry["average"] * hours,
        }
        for entry in categories.values()
    ]
