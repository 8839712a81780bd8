"""
Price services: profit margin, consumer spending, latest buying price.

Profit margin merges average selling and spot price buckets with
``selling - spot``; spending merges a consumer's consumption energy buckets
with average selling price buckets with ``kwh * price``. Both series are
bucketed with one shared granularity derived from the request range, and
seed values (the most recent raw sample strictly before ``start``) are only
looked up for a series that has no value at the first combined timestamp.

CHANGELOG:
- 2026-04-12: Add latest buying price lookup (STORY-011)
- 2026-04-08: Initial creation (STORY-009)

TODO:
- None
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from powertrack.db.models import ConsumerConsumption, SellingPrice, SpotPrice
from powertrack.services.aggregation import (
    Bucket,
    aggregate,
    kwh_multiplier,
    select_granularity,
)
from powertrack.services.merge import (
    SeriesPoint,
    merge_series,
    needs_seed,
    profit,
    spend,
)

logger = logging.getLogger(__name__)


def _points(buckets: list[Bucket]) -> list[SeriesPoint]:
    return [(b.start, b.energy) for b in buckets]


def _serialise(points: list[SeriesPoint]) -> list[dict]:
    return [{"date": ts.isoformat(), "amount": value} for ts, value in points]


async def latest_amount_before(db: AsyncSession, model, before: datetime, **filters):
    """Return the amount of the most recent sample strictly before ``before``.

    Args:
        db: Async database session.
        model: Telemetry ORM model with ``date`` and ``amount`` columns.
        before: Exclusive upper bound.
        **filters: Extra equality filters (e.g. ``consumer_id=3``).

    Returns:
        float | None: The amount, or None if no earlier sample exists.
    """
    stmt = select(model.amount).where(model.date < before)
    for column, value in filters.items():
        stmt = stmt.where(getattr(model, column) == value)
    stmt = stmt.order_by(model.date.desc()).limit(1)
    result = await db.execute(stmt)
    amount = result.scalar_one_or_none()
    return None if amount is None else float(amount)


async def profit_margin(
    db: AsyncSession, start: datetime, end: datetime
) -> dict[str, list[dict]]:
    """Return average spot/selling prices and per-bucket profit.

    Returns:
        dict: ``spot_prices``, ``selling_prices`` and ``profits`` lists of
        ``{date, amount}``.
    """
    granularity = select_granularity(start, end)
    spot = _points(
        await aggregate(db, "spot_price", start, end, granularity=granularity)
    )
    selling = _points(
        await aggregate(db, "selling_price", start, end, granularity=granularity)
    )

    seed_selling = None
    seed_spot = None
    if needs_seed(selling, spot):
        seed_selling = await latest_amount_before(db, SellingPrice, start)
    if needs_seed(spot, selling):
        seed_spot = await latest_amount_before(db, SpotPrice, start)

    profits = merge_series(selling, spot, profit, seed_selling, seed_spot)
    return {
        "spot_prices": _serialise(spot),
        "selling_prices": _serialise(selling),
        "profits": _serialise(profits),
    }


async def spending(
    db: AsyncSession, start: datetime, end: datetime, consumer_id: int
) -> list[dict]:
    """Return a consumer's per-bucket spend (kWh consumed x selling price)."""
    granularity = select_granularity(start, end)
    consumption = _points(
        await aggregate(
            db, "consumer_consumption", start, end, consumer_id, granularity
        )
    )
    selling = _points(
        await aggregate(db, "selling_price", start, end, granularity=granularity)
    )

    seed_consumption = None
    seed_selling = None
    if needs_seed(consumption, selling):
        raw = await latest_amount_before(
            db, ConsumerConsumption, start, consumer_id=consumer_id
        )
        if raw is not None:
            seed_consumption = raw * kwh_multiplier(granularity)
    if needs_seed(selling, consumption):
        seed_selling = await latest_amount_before(db, SellingPrice, start)

    return _serialise(
        merge_series(consumption, selling, spend, seed_consumption, seed_selling)
    )


async def latest_buying_price(db: AsyncSession) -> dict | None:
    """Return the most recent selling price as ``{date, amount}``, or None."""
    stmt = select(SellingPrice).order_by(SellingPrice.date.desc()).limit(1)
    result = await db.execute(stmt)
    price = result.scalar_one_or_none()
    if price is None:
        return None
    return {"date": price.date.isoformat(), "amount": float(price.amount)}
