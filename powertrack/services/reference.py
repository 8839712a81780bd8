"""
Reference data lookups: consumers, suburbs, and the suburb consumption map.

CHANGELOG:
- 2026-04-14: Add latest-consumption map with bounding box (STORY-015)
- 2026-04-03: Initial creation (STORY-003)

TODO:
- None
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from powertrack.db.models import Consumer, Suburb, SuburbConsumption
from powertrack.errors import NotFoundError


async def list_consumers(
    db: AsyncSession,
    suburb_id: int | None = None,
    consumer_id: int | None = None,
) -> list[dict]:
    """Return consumers with their suburb name and postcode."""
    stmt = (
        select(Consumer, Suburb.name, Suburb.postcode)
        .join(Suburb, Suburb.id == Consumer.suburb_id)
        .order_by(Consumer.id)
    )
    if suburb_id is not None:
        stmt = stmt.where(Consumer.suburb_id == suburb_id)
    if consumer_id is not None:
        stmt = stmt.where(Consumer.id == consumer_id)

    result = await db.execute(stmt)
    return [
        {
            "id": consumer.id,
            "high_priority": consumer.high_priority,
            "address": consumer.street_address,
            "suburb_id": consumer.suburb_id,
            "suburb_name": name,
            "suburb_post_code": postcode,
        }
        for consumer, name, postcode in result.all()
    ]


def _suburb_to_dict(suburb: Suburb) -> dict:
    return {
        "id": suburb.id,
        "name": suburb.name,
        "postcode": suburb.postcode,
        "state": suburb.state,
        "latitude": suburb.latitude,
        "longitude": suburb.longitude,
    }


async def list_suburbs(db: AsyncSession) -> list[dict]:
    result = await db.execute(select(Suburb).order_by(Suburb.id))
    return [_suburb_to_dict(s) for s in result.scalars().all()]


async def get_suburb(db: AsyncSession, suburb_id: int) -> dict:
    """Return one suburb with high/low priority consumer counts.

    Raises:
        NotFoundError: If the suburb does not exist.
    """
    suburb = await db.get(Suburb, suburb_id)
    if suburb is None:
        raise NotFoundError("Suburb not found")

    stmt = (
        select(Consumer.high_priority, func.count(Consumer.id).label("count"))
        .where(Consumer.suburb_id == suburb_id)
        .group_by(Consumer.high_priority)
    )
    counts = {
        bool(row["high_priority"]): int(row["count"])
        for row in (await db.execute(stmt)).mappings().all()
    }
    return {
        "id": suburb.id,
        "name": suburb.name,
        "postcode": suburb.postcode,
        "state": suburb.state,
        "highPriorityConsumers": counts.get(True, 0),
        "lowPriorityConsumers": counts.get(False, 0),
    }


async def get_consumer_suburb_id(db: AsyncSession, consumer_id: int) -> int:
    """Return the suburb of a consumer.

    Raises:
        NotFoundError: If the consumer does not exist.
    """
    consumer = await db.get(Consumer, consumer_id)
    if consumer is None:
        raise NotFoundError(f"Consumer {consumer_id} not found.")
    return consumer.suburb_id


async def suburb_map(
    db: AsyncSession,
    bbox: tuple[float, float, float, float] | None = None,
) -> list[dict]:
    """Return the latest consumption sample (kW) of each suburb.

    Args:
        db: Async database session.
        bbox: Optional ``(lat1, long1, lat2, long2)`` corners.
    """
    latest = (
        select(
            SuburbConsumption.suburb_id,
            SuburbConsumption.date,
            SuburbConsumption.amount,
        )
        .distinct(SuburbConsumption.suburb_id)
        .order_by(SuburbConsumption.suburb_id, SuburbConsumption.date.desc())
        .subquery()
    )
    stmt = (
        select(latest.c.suburb_id, latest.c.date, latest.c.amount)
        .join(Suburb, Suburb.id == latest.c.suburb_id)
        .order_by(latest.c.suburb_id)
    )
    if bbox is not None:
        lat1, long1, lat2, long2 = bbox
        stmt = stmt.where(
            Suburb.latitude.between(min(lat1, lat2), max(lat1, lat2)),
            Suburb.longitude.between(min(long1, long2), max(long1, long2)),
        )

    result = await db.execute(stmt)
    return [
        {
            "suburb_id": row["suburb_id"],
            "consumption": float(row["amount"]),
            "timestamp": row["date"].isoformat(),
        }
        for row in result.mappings().all()
    ]
