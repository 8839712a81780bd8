"""
Aggregation engine for time-bucketed telemetry series.

Turns raw power samples (kW) into bucketed energy values (kWh). The bucket
width is selected once per request from the width of the queried range and
applied uniformly: ``weekly`` for ranges of at least one calendar month,
``daily`` for at least seven days, ``hourly`` otherwise. Samples are
truncated with ``date_trunc`` (UTC session timezone, ISO weeks), averaged
per bucket, and the average is multiplied by the bucket length in hours.

The queried range is half-open on the left: ``date > start AND date <= end``.
The GRANULARITY_CONFIG dict maps granularity names to their truncation unit
and hours-per-bucket multiplier.

CHANGELOG:
- 2026-04-16: Add renewable and per-generator series (STORY-016)
- 2026-04-06: Initial creation (STORY-006)

TODO:
- None
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from powertrack.db.models import (
    ConsumerConsumption,
    EnergyGeneration,
    EnergyGenerator,
    GeneratorType,
    SellingPrice,
    SpotPrice,
    SuburbConsumption,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GranularityConfig:
    """Configuration for a bucket granularity.

    Attributes:
        trunc_unit: ``date_trunc`` field name (hour, day, week).
        hours: Bucket length in hours, used as the kW -> kWh multiplier.
    """

    trunc_unit: str
    hours: int


GRANULARITY_CONFIG: dict[str, GranularityConfig] = {
    "hourly": GranularityConfig(trunc_unit="hour", hours=1),
    "daily": GranularityConfig(trunc_unit="day", hours=24),
    "weekly": GranularityConfig(trunc_unit="week", hours=168),
}

# Series that can be aggregated; see build_bucket_query().
SERIES = frozenset(
    {
        "suburb_consumption",
        "consumer_consumption",
        "generation",
        "renewable_generation",
        "generator",
        "spot_price",
        "selling_price",
    }
)


@dataclass(frozen=True)
class Bucket:
    """One aggregated bucket.

    Attributes:
        start: Bucket start (UTC).
        granularity: Granularity name the bucket was built with.
        average_amount: Mean of raw sample amounts in the bucket.
        energy: ``average_amount`` times the bucket length in hours.
            Equal to ``average_amount`` for price series callers that
            do not convert.
    """

    start: datetime
    granularity: str
    average_amount: float
    energy: float

    def to_point(self) -> dict:
        """Serialise as the ``{date, amount}`` pair returned by the API."""
        return {"date": self.start.isoformat(), "amount": self.energy}


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def add_months(ts: datetime, months: int) -> datetime:
    """Shift a timestamp by whole calendar months, clamping the day.

    Jan 31 + 1 month is the last day of February.
    """
    month_index = ts.month - 1 + months
    year = ts.year + month_index // 12
    month = month_index % 12 + 1
    day = min(ts.day, calendar.monthrange(year, month)[1])
    return ts.replace(year=year, month=month, day=day)


def select_granularity(start: datetime, end: datetime) -> str:
    """Select the bucket granularity for a query range.

    Args:
        start: Range start (exclusive).
        end: Range end (inclusive).

    Returns:
        str: ``weekly``, ``daily`` or ``hourly``.
    """
    if end >= add_months(start, 1):
        return "weekly"
    if end - start >= timedelta(days=7):
        return "daily"
    return "hourly"


def kwh_multiplier(granularity: str) -> int:
    """Return the hours-per-bucket multiplier for a granularity.

    Raises:
        KeyError: If ``granularity`` is not a GRANULARITY_CONFIG key.
    """
    return GRANULARITY_CONFIG[granularity].hours


def rows_to_buckets(
    rows: list, granularity: str, convert: bool = True
) -> list[Bucket]:
    """Convert ``(bucket, average_amount)`` result rows to Buckets.

    Args:
        rows: Mappings with ``bucket`` and ``average_amount`` keys.
        granularity: Granularity the rows were truncated with.
        convert: Multiply by the bucket length (False for price series).

    Returns:
        list[Bucket]: Buckets in row order.
    """
    multiplier = kwh_multiplier(granularity) if convert else 1
    buckets = []
    for row in rows:
        average = float(row["average_amount"])
        buckets.append(
            Bucket(
                start=row["bucket"].astimezone(UTC),
                granularity=granularity,
                average_amount=average,
                energy=average * multiplier,
            )
        )
    return buckets


# ---------------------------------------------------------------------------
# Query construction
# ---------------------------------------------------------------------------


def build_bucket_query(
    series: str,
    granularity: str,
    start: datetime,
    end: datetime,
    entity_id: int | None = None,
) -> Select:
    """Build the GROUP BY bucket statement for a series.

    ``entity_id`` filters by suburb for suburb consumption and generation
    series, by consumer for consumer consumption, and is ignored for the
    system-wide price series. The ``generator`` series additionally groups by
    generator id.

    Raises:
        KeyError: If ``granularity`` is unknown.
        ValueError: If ``series`` is unknown.
    """
    unit = GRANULARITY_CONFIG[granularity].trunc_unit

    if series == "suburb_consumption":
        model = SuburbConsumption
    elif series == "consumer_consumption":
        model = ConsumerConsumption
    elif series in ("generation", "renewable_generation", "generator"):
        model = EnergyGeneration
    elif series == "spot_price":
        model = SpotPrice
    elif series == "selling_price":
        model = SellingPrice
    else:
        raise ValueError(f"Unknown series '{series}'")

    bucket = func.date_trunc(unit, model.date).label("bucket")
    columns = [bucket, func.avg(model.amount).label("average_amount")]
    if series == "generator":
        columns.append(model.energy_generator_id)

    stmt = select(*columns).where(model.date > start, model.date <= end)

    if series == "suburb_consumption" and entity_id is not None:
        stmt = stmt.where(model.suburb_id == entity_id)
    elif series == "consumer_consumption" and entity_id is not None:
        stmt = stmt.where(model.consumer_id == entity_id)
    elif model is EnergyGeneration:
        stmt = stmt.join(
            EnergyGenerator, EnergyGenerator.id == model.energy_generator_id
        )
        if series == "renewable_generation":
            stmt = stmt.join(
                GeneratorType, GeneratorType.id == EnergyGenerator.generator_type_id
            ).where(GeneratorType.renewable.is_(True))
        if entity_id is not None:
            stmt = stmt.where(EnergyGenerator.suburb_id == entity_id)

    if series == "generator":
        return stmt.group_by(bucket, model.energy_generator_id).order_by(
            bucket.asc(), model.energy_generator_id.asc()
        )
    return stmt.group_by(bucket).order_by(bucket.asc())


# ---------------------------------------------------------------------------
# Service entry points
# ---------------------------------------------------------------------------


async def aggregate(
    db: AsyncSession,
    series: str,
    start: datetime,
    end: datetime,
    entity_id: int | None = None,
    granularity: str | None = None,
) -> list[Bucket]:
    """Aggregate a telemetry series into ordered energy buckets.

    Args:
        db: Async database session.
        series: Series name (see SERIES). ``generator`` is served by
            aggregate_by_generator() instead.
        start: Range start (exclusive).
        end: Range end (inclusive).
        entity_id: Optional suburb or consumer filter.
        granularity: Override the range-derived granularity, used when two
            series must be bucketed identically.

    Returns:
        list[Bucket]: Ascending buckets; empty when the range has no samples.
    """
    granularity = granularity or select_granularity(start, end)
    stmt = build_bucket_query(series, granularity, start, end, entity_id)
    result = await db.execute(stmt)
    rows = result.mappings().all()

    logger.debug(
        "Aggregated %s: granularity=%s entity=%s buckets=%d",
        series,
        granularity,
        entity_id,
        len(rows),
    )
    convert = series not in ("spot_price", "selling_price")
    return rows_to_buckets(rows, granularity, convert=convert)


async def aggregate_by_generator(
    db: AsyncSession,
    start: datetime,
    end: datetime,
    suburb_id: int | None = None,
) -> dict[int, list[Bucket]]:
    """Aggregate generation per generator.

    Returns:
        dict: energy_generator_id -> ascending buckets, in generator id order.
    """
    granularity = select_granularity(start, end)
    stmt = build_bucket_query("generator", granularity, start, end, suburb_id)
    result = await db.execute(stmt)

    grouped: dict[int, list] = {}
    for row in result.mappings().all():
        grouped.setdefault(int(row["energy_generator_id"]), []).append(row)

    return {
        generator_id: rows_to_buckets(rows, granularity)
        for generator_id, rows in sorted(grouped.items())
    }
