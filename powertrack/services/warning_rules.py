"""
Warning evaluator.

Evaluates the configured warning rules against live aggregates for a scope
(one suburb, one consumer, or the whole grid) and returns warning records
``{category, description, suggestion, data}``. Rules come from the
warning_type catalog via goal types whose ``target_type`` is ``consumer``
for a consumer scope and ``retailer`` otherwise.

A rule fires iff ``metric > target`` (trigger_greater_than) or
``metric < target``. A metric that cannot be computed (no price yet, no
generation in the usage window) silently omits that rule.

CHANGELOG:
- 2026-04-24: Add high_spot_price rule (STORY-023)
- 2026-04-20: Add grid utilisation rules (STORY-019)
- 2026-04-18: Initial creation (STORY-017)

TODO:
- None
"""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from powertrack.config import Settings
from powertrack.db.models import (
    Consumer,
    EnergyGeneration,
    EnergyGenerator,
    GoalType,
    SellingPrice,
    SpotPrice,
    SuburbConsumption,
    WarningType,
)
from powertrack.errors import MalformedInputError, NoDataError, NotFoundError
from powertrack.services.outages import detect_outages

logger = logging.getLogger(__name__)

# Catalog entries that hold a goal target rather than an alert rule.
TARGET_ONLY_CATEGORIES = frozenset({"fossil_fuels"})


def rule_fires(metric: float, warning_type: WarningType) -> bool:
    """Compare a live metric against a warning type's target."""
    target = float(warning_type.target)
    if warning_type.trigger_greater_than:
        return metric > target
    return metric < target


def _warning(warning_type: WarningType, suggestion: str, data: dict) -> dict:
    return {
        "category": warning_type.category,
        "description": warning_type.description,
        "suggestion": suggestion,
        "data": data,
    }


# ---------------------------------------------------------------------------
# Metric queries
# ---------------------------------------------------------------------------


async def load_warning_types(
    db: AsyncSession, target_type: str
) -> list[WarningType]:
    """Load warning types attached to goals for ``target_type``."""
    stmt = (
        select(WarningType)
        .join(GoalType, GoalType.id == WarningType.goal_type_id)
        .where(GoalType.target_type == target_type)
        .order_by(WarningType.id)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def _latest_price(db: AsyncSession, model) -> float | None:
    stmt = select(model.amount).order_by(model.date.desc()).limit(1)
    amount = (await db.execute(stmt)).scalar_one_or_none()
    return None if amount is None else float(amount)


async def energy_utilised_percentage(
    db: AsyncSession,
    now: datetime,
    lookback_min: int,
    suburb_id: int | None = None,
) -> float | None:
    """Return sum(consumption) / sum(generation) over the lookback window.

    Returns:
        float | None: The ratio, or None when there is no generation.
    """
    since = now - timedelta(minutes=lookback_min)

    consumption_stmt = select(func.sum(SuburbConsumption.amount)).where(
        SuburbConsumption.date > since, SuburbConsumption.date <= now
    )
    generation_stmt = (
        select(func.sum(EnergyGeneration.amount))
        .join(EnergyGenerator, EnergyGenerator.id == EnergyGeneration.energy_generator_id)
        .where(EnergyGeneration.date > since, EnergyGeneration.date <= now)
    )
    if suburb_id is not None:
        consumption_stmt = consumption_stmt.where(
            SuburbConsumption.suburb_id == suburb_id
        )
        generation_stmt = generation_stmt.where(EnergyGenerator.suburb_id == suburb_id)

    consumption = (await db.execute(consumption_stmt)).scalar_one_or_none()
    generation = (await db.execute(generation_stmt)).scalar_one_or_none()

    if not generation:
        return None
    return float(consumption or 0) / float(generation)


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


async def evaluate_warnings(
    db: AsyncSession,
    settings: Settings,
    *,
    suburb_id: int | None = None,
    consumer_id: int | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """Evaluate all warning rules for a scope.

    Args:
        db: Async database session.
        settings: Outage windows and usage lookback.
        suburb_id: Restrict to one suburb.
        consumer_id: Restrict to one consumer (mutually exclusive with
            ``suburb_id``).
        now: Evaluation time, defaults to the current time.

    Returns:
        list[dict]: Warning records in catalog order.

    Raises:
        MalformedInputError: If both scope ids are given.
        NotFoundError: If ``consumer_id`` does not exist.
        NoDataError: If no warning types are configured for the audience.
    """
    if suburb_id is not None and consumer_id is not None:
        raise MalformedInputError("Cannot specify both suburb_id and consumer_id.")

    now = now or datetime.now(tz=UTC)
    target_type = "consumer" if consumer_id is not None else "retailer"

    usage_suburb_id = suburb_id
    if consumer_id is not None:
        consumer = await db.get(Consumer, consumer_id)
        if consumer is None:
            raise NotFoundError(f"Consumer {consumer_id} not found.")
        usage_suburb_id = consumer.suburb_id

    warning_types = await load_warning_types(db, target_type)
    if not warning_types:
        raise NoDataError(f"No warning types found for {target_type} goals.")

    warnings: list[dict] = []
    utilisation: float | None = None
    utilisation_loaded = False

    for warning_type in warning_types:
        category = warning_type.category

        if category == "outage_hp":
            records = await detect_outages(
                db,
                threshold_min=settings.outage_threshold_min,
                hp_threshold_min=settings.outage_hp_threshold_min,
                now=now,
                suburb_id=suburb_id,
                consumer_id=consumer_id,
                high_priority_only=True,
            )
            if not rule_fires(len(records), warning_type):
                continue
            for record in records:
                warnings.append(
                    _warning(
                        warning_type,
                        "Prioritise re-establishing energy for priority "
                        f"consumer at address {record.street_address}.",
                        {
                            "consumer_id": record.id,
                            "street_address": record.street_address,
                        },
                    )
                )

        elif category == "high_cost":
            price = await _latest_price(db, SellingPrice)
            if price is None or not rule_fires(price, warning_type):
                continue
            warnings.append(
                _warning(
                    warning_type,
                    f"Energy cost is at ${price}/kWh, so use less energy to save money.",
                    {"energy_cost": price},
                )
            )

        elif category == "high_spot_price":
            price = await _latest_price(db, SpotPrice)
            if price is None or not rule_fires(price, warning_type):
                continue
            warnings.append(
                _warning(
                    warning_type,
                    f"Spot price is at ${price}/kWh, so reduce wholesale purchases "
                    "and favour stored or contracted energy.",
                    {"spot_price": price},
                )
            )

        elif category in ("high_usage", "low_usage"):
            if not utilisation_loaded:
                utilisation = await energy_utilised_percentage(
                    db, now, settings.usage_lookback_min, usage_suburb_id
                )
                utilisation_loaded = True
            if utilisation is None or not rule_fires(utilisation, warning_type):
                continue
            percent = round(utilisation * 100, 1)
            if category == "high_usage":
                suggestion = (
                    f"Consumption is at {percent}% of generation, "
                    "so bring additional generation online."
                )
            else:
                suggestion = (
                    f"Consumption is only {percent}% of generation, "
                    "so reduce generation output."
                )
            warnings.append(
                _warning(
                    warning_type,
                    suggestion,
                    {"energy_utilised_percentage": utilisation},
                )
            )

        elif category in TARGET_ONLY_CATEGORIES:
            continue

        else:
            logger.warning("Unsupported warning category: %s", category)

    return warnings
