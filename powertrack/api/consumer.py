"""
Consumer-facing endpoints under /consumer.

GET /consumer/buyingPrice returns the latest selling price through a Redis
cache with configurable TTL; the cache entry is invalidated whenever a new
selling price is ingested. GET /consumer/spending merges a consumer's
consumption with the selling price. GET /consumer/greenEnergy reports the
renewable share for the consumer's suburb.

CHANGELOG:
- 2026-04-20: Add greenEnergy (STORY-019)
- 2026-04-12: Add buyingPrice with Redis cache (STORY-011)
- 2026-04-08: Initial creation with spending (STORY-009)

TODO:
- None
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from powertrack.api.deps import DbSession, SettingsDep
from powertrack.api.params import DateRange, date_range, parse_id
from powertrack.cache.redis_client import cache_buying_price, get_cached_buying_price
from powertrack.errors import MalformedInputError, NotFoundError
from powertrack.services import energy, pricing, reference

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/consumer", tags=["consumer"])


def _required_consumer_id(
    consumer_id: Annotated[str | None, Query()] = None,
) -> int:
    parsed = parse_id(consumer_id, "Consumer ID")
    if parsed is None:
        raise MalformedInputError("Consumer ID must be provided.")
    return parsed


ConsumerId = Annotated[int, Depends(_required_consumer_id)]


@router.get("/buyingPrice")
async def get_buying_price(db: DbSession, settings: SettingsDep) -> dict:
    """Return the latest selling price as ``{date, amount}``.

    Raises:
        NotFoundError: If no selling price has been ingested yet.
    """
    cached = await get_cached_buying_price()
    if cached is not None:
        return cached

    price = await pricing.latest_buying_price(db)
    if price is None:
        raise NotFoundError("No buying price found")

    await cache_buying_price(price, settings.cache_ttl_s)
    return price


@router.get("/spending")
async def get_spending(
    db: DbSession,
    consumer_id: ConsumerId,
    dates: Annotated[DateRange, Depends(date_range)],
) -> dict:
    """Per-bucket spend: consumption energy times selling price."""
    await reference.get_consumer_suburb_id(db, consumer_id)
    spend = await pricing.spending(db, dates.start, dates.end, consumer_id)
    return {
        "start_date": dates.start.isoformat(),
        "end_date": dates.end.isoformat(),
        "consumer_id": consumer_id,
        "spending": spend,
    }


@router.get("/greenEnergy")
async def get_green_energy(
    db: DbSession, settings: SettingsDep, consumer_id: ConsumerId
) -> dict:
    """Renewable share of recent generation in the consumer's suburb."""
    suburb_id = await reference.get_consumer_suburb_id(db, consumer_id)
    return await energy.green_energy(
        db, suburb_id=suburb_id, lookback_h=settings.green_energy_lookback_h
    )
