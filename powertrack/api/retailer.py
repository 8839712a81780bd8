"""
Retailer analytics endpoints under /retailer.

Exposes the aggregation engine (consumption, generation, renewable and
per-generator series), source breakdown and green energy statistics,
profit margin, outage detection and clustering, warnings, the suburb
consumption map, and reference data. Handlers validate query parameters,
call the services and serialise; domain errors are mapped to HTTP
responses by the handlers registered in powertrack.api.main.

CHANGELOG:
- 2026-04-24: Add map bounding box and suburb detail (STORY-015)
- 2026-04-20: Add sources, greenEnergy and warnings (STORY-019)
- 2026-04-10: Add powerOutages (STORY-014)
- 2026-04-08: Add profitMargin (STORY-009)
- 2026-04-06: Initial creation (STORY-006)

TODO:
- None
"""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from powertrack.api.deps import DbSession, SettingsDep
from powertrack.api.params import DateRange, Scope, date_range, parse_id, scope
from powertrack.services import energy, outages, pricing, reference
from powertrack.services.aggregation import aggregate, aggregate_by_generator
from powertrack.services.warning_rules import evaluate_warnings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/retailer", tags=["retailer"])


# ---------------------------------------------------------------------------
# Pydantic response models
# ---------------------------------------------------------------------------


class EnergyPoint(BaseModel):
    """One bucket: start timestamp and energy (kWh) or average price."""

    date: datetime
    amount: float


class EnergySeriesResponse(BaseModel):
    """Bucketed series for a range and optional scope."""

    start_date: datetime
    end_date: datetime
    suburb_id: int | None = None
    consumer_id: int | None = None
    energy: list[EnergyPoint]


class GeneratorSeries(BaseModel):
    energy_generator_id: int
    energy: list[EnergyPoint]


class GeneratorResponse(BaseModel):
    start_date: datetime
    end_date: datetime
    suburb_id: int | None = None
    generators: list[GeneratorSeries]


class RenewableResponse(BaseModel):
    start_date: datetime
    end_date: datetime
    suburb_id: int | None = None
    renewable_energy: list[EnergyPoint]


class ProfitMarginResponse(BaseModel):
    """Average spot and selling prices with the derived per-bucket profit."""

    start_date: datetime
    end_date: datetime
    spot_prices: list[EnergyPoint]
    selling_prices: list[EnergyPoint]
    profits: list[EnergyPoint]


class GreenEnergyResponse(BaseModel):
    green_usage_percent: float
    green_goal_percent: float


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


SuburbIdParam = Annotated[str | None, Query(description="Suburb filter.")]


def _suburb_filter(suburb_id: SuburbIdParam = None) -> int | None:
    return parse_id(suburb_id, "Suburb ID")


SuburbFilter = Annotated[int | None, Depends(_suburb_filter)]
Dates = Annotated[DateRange, Depends(date_range)]
ScopeDep = Annotated[Scope, Depends(scope)]


async def _scope_suburb(db, filters: Scope) -> int | None:
    """Suburb for suburb-level statistics; a consumer maps to its suburb."""
    if filters.consumer_id is not None:
        return await reference.get_consumer_suburb_id(db, filters.consumer_id)
    return filters.suburb_id


# ---------------------------------------------------------------------------
# Aggregated series
# ---------------------------------------------------------------------------


@router.get("/consumption", response_model=EnergySeriesResponse)
async def get_consumption(
    db: DbSession, dates: Dates, filters: ScopeDep
) -> EnergySeriesResponse:
    """Consumption energy for a suburb, a consumer, or nation-wide."""
    if filters.consumer_id is not None:
        buckets = await aggregate(
            db, "consumer_consumption", dates.start, dates.end, filters.consumer_id
        )
    else:
        buckets = await aggregate(
            db, "suburb_consumption", dates.start, dates.end, filters.suburb_id
        )
    return EnergySeriesResponse(
        start_date=dates.start,
        end_date=dates.end,
        suburb_id=filters.suburb_id,
        consumer_id=filters.consumer_id,
        energy=[b.to_point() for b in buckets],
    )


@router.get("/generation", response_model=EnergySeriesResponse)
async def get_generation(
    db: DbSession, dates: Dates, suburb_id: SuburbFilter
) -> EnergySeriesResponse:
    """Generation energy for a suburb or nation-wide."""
    buckets = await aggregate(db, "generation", dates.start, dates.end, suburb_id)
    return EnergySeriesResponse(
        start_date=dates.start,
        end_date=dates.end,
        suburb_id=suburb_id,
        energy=[b.to_point() for b in buckets],
    )


@router.get("/generator", response_model=GeneratorResponse)
async def get_generators(
    db: DbSession, dates: Dates, suburb_id: SuburbFilter
) -> GeneratorResponse:
    """Generation energy per generator."""
    per_generator = await aggregate_by_generator(
        db, dates.start, dates.end, suburb_id
    )
    return GeneratorResponse(
        start_date=dates.start,
        end_date=dates.end,
        suburb_id=suburb_id,
        generators=[
            GeneratorSeries(
                energy_generator_id=generator_id,
                energy=[b.to_point() for b in buckets],
            )
            for generator_id, buckets in per_generator.items()
        ],
    )


@router.get("/renewableGeneration", response_model=RenewableResponse)
async def get_renewable_generation(
    db: DbSession, dates: Dates, suburb_id: SuburbFilter
) -> RenewableResponse:
    """Generation energy from renewable generator types only."""
    buckets = await aggregate(
        db, "renewable_generation", dates.start, dates.end, suburb_id
    )
    return RenewableResponse(
        start_date=dates.start,
        end_date=dates.end,
        suburb_id=suburb_id,
        renewable_energy=[b.to_point() for b in buckets],
    )


@router.get("/sources")
async def get_sources(db: DbSession, dates: Dates, filters: ScopeDep) -> dict:
    """Generation share and energy per generator-type category."""
    suburb_id = await _scope_suburb(db, filters)
    sources = await energy.source_breakdown(db, dates.start, dates.end, suburb_id)
    body = {
        "start_date": dates.start.isoformat(),
        "end_date": dates.end.isoformat(),
        "sources": sources,
    }
    if filters.suburb_id is not None:
        body["suburb_id"] = filters.suburb_id
    if filters.consumer_id is not None:
        body["consumer_id"] = filters.consumer_id
    return body


@router.get("/greenEnergy", response_model=GreenEnergyResponse)
async def get_green_energy(
    db: DbSession, settings: SettingsDep, suburb_id: SuburbFilter
) -> GreenEnergyResponse:
    """Renewable share of recent generation and progress to the green goal."""
    stats = await energy.green_energy(
        db, suburb_id=suburb_id, lookback_h=settings.green_energy_lookback_h
    )
    return GreenEnergyResponse(**stats)


@router.get("/profitMargin", response_model=ProfitMarginResponse)
async def get_profit_margin(db: DbSession, dates: Dates) -> ProfitMarginResponse:
    """Average spot and selling prices and their per-bucket difference."""
    margin = await pricing.profit_margin(db, dates.start, dates.end)
    return ProfitMarginResponse(start_date=dates.start, end_date=dates.end, **margin)


# ---------------------------------------------------------------------------
# Outages and warnings
# ---------------------------------------------------------------------------


@router.get("/powerOutages")
async def get_power_outages(
    db: DbSession, settings: SettingsDep, suburb_id: SuburbFilter
) -> dict:
    """Outaged consumers and their spatial clusters."""
    return await outages.find_power_outages(
        db,
        threshold_min=settings.outage_threshold_min,
        hp_threshold_min=settings.outage_hp_threshold_min,
        proximity_km=settings.outage_proximity_km,
        min_points=settings.outage_min_points,
        suburb_id=suburb_id,
    )


@router.get("/warnings")
async def get_warnings(
    db: DbSession, settings: SettingsDep, filters: ScopeDep
) -> dict:
    """Evaluate warning rules for a suburb, a consumer, or the whole grid."""
    warnings = await evaluate_warnings(
        db,
        settings,
        suburb_id=filters.suburb_id,
        consumer_id=filters.consumer_id,
    )
    logger.debug(
        "Warnings query: suburb_id=%s consumer_id=%s warnings=%d",
        filters.suburb_id,
        filters.consumer_id,
        len(warnings),
    )
    return {"warnings": warnings}


# ---------------------------------------------------------------------------
# Map and reference data
# ---------------------------------------------------------------------------


@router.get("/map")
async def get_map(
    db: DbSession,
    lat1: float | None = None,
    long1: float | None = None,
    lat2: float | None = None,
    long2: float | None = None,
) -> dict:
    """Latest consumption (kW) per suburb, optionally inside a bounding box."""
    corners = (lat1, long1, lat2, long2)
    bbox = corners if all(c is not None for c in corners) else None
    return {"energy": await reference.suburb_map(db, bbox)}


@router.get("/consumers")
async def get_consumers(db: DbSession, filters: ScopeDep) -> dict:
    consumers = await reference.list_consumers(
        db, suburb_id=filters.suburb_id, consumer_id=filters.consumer_id
    )
    return {"consumers": consumers}


@router.get("/suburbs")
async def get_suburbs(db: DbSession) -> dict:
    return {"suburbs": await reference.list_suburbs(db)}


@router.get("/suburbs/{suburb_id}")
async def get_suburb(db: DbSession, suburb_id: int) -> dict:
    """One suburb with its high/low priority consumer counts."""
    return await reference.get_suburb(db, suburb_id)
