"""
Outage detection and spatial clustering.

Each consumer with telemetry is either in ``Normal`` or ``Outage`` state. A
consumer is in outage when its latest consumption sample is not strictly
newer than ``now - window`` or reports an amount of exactly zero. The window
is shorter for high-priority consumers. Consumers that never reported are
excluded (un-provisioned meters are not outages).

Outaged consumers are clustered with DBSCAN over great-circle (haversine)
distance. Noise points are dropped, except high-priority consumers, which
are re-inserted as singleton clusters so that an isolated critical outage is
always reported.

CHANGELOG:
- 2026-04-10: Switch clustering to scikit-learn DBSCAN with haversine metric (STORY-014)
- 2026-04-09: Initial creation (STORY-013)

TODO:
- None
"""

import logging
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta

import numpy as np
from sklearn.cluster import DBSCAN
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from powertrack.db.models import Consumer, ConsumerConsumption

logger = logging.getLogger(__name__)

# Mean Earth radius (IUGG), km.
EARTH_RADIUS_KM = 6371.0088


@dataclass(frozen=True)
class OutageRecord:
    """A consumer currently in outage state."""

    id: int
    street_address: str
    suburb_id: int
    latitude: float
    longitude: float
    high_priority: bool

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


def is_outage(
    last_date: datetime,
    last_amount: float,
    high_priority: bool,
    now: datetime,
    threshold_min: int,
    hp_threshold_min: int,
) -> bool:
    """Return True if a consumer's latest sample puts it in outage state.

    Args:
        last_date: Timestamp of the latest consumption sample.
        last_amount: Amount of that sample (kW).
        high_priority: Whether the consumer uses the short window.
        now: Evaluation time.
        threshold_min: Window for standard consumers, in minutes.
        hp_threshold_min: Window for high-priority consumers, in minutes.
    """
    window = hp_threshold_min if high_priority else threshold_min
    if float(last_amount) == 0:
        return True
    return last_date <= now - timedelta(minutes=window)


async def detect_outages(
    db: AsyncSession,
    *,
    threshold_min: int,
    hp_threshold_min: int,
    now: datetime | None = None,
    suburb_id: int | None = None,
    consumer_id: int | None = None,
    high_priority_only: bool = False,
) -> list[OutageRecord]:
    """Return consumers in outage state, ordered by id.

    The latest sample per consumer is selected with ``DISTINCT ON``; the
    inner join drops consumers that never reported.
    """
    now = now or datetime.now(tz=UTC)

    latest = (
        select(
            ConsumerConsumption.consumer_id,
            ConsumerConsumption.date,
            ConsumerConsumption.amount,
        )
        .distinct(ConsumerConsumption.consumer_id)
        .order_by(ConsumerConsumption.consumer_id, ConsumerConsumption.date.desc())
        .subquery()
    )
    stmt = (
        select(
            Consumer.id,
            Consumer.street_address,
            Consumer.suburb_id,
            Consumer.latitude,
            Consumer.longitude,
            Consumer.high_priority,
            latest.c.date.label("last_date"),
            latest.c.amount.label("last_amount"),
        )
        .join(latest, latest.c.consumer_id == Consumer.id)
        .order_by(Consumer.id)
    )
    if suburb_id is not None:
        stmt = stmt.where(Consumer.suburb_id == suburb_id)
    if consumer_id is not None:
        stmt = stmt.where(Consumer.id == consumer_id)
    if high_priority_only:
        stmt = stmt.where(Consumer.high_priority.is_(True))

    result = await db.execute(stmt)

    outages = []
    for row in result.mappings().all():
        if not is_outage(
            row["last_date"],
            row["last_amount"],
            row["high_priority"],
            now,
            threshold_min,
            hp_threshold_min,
        ):
            continue
        outages.append(
            OutageRecord(
                id=int(row["id"]),
                street_address=row["street_address"],
                suburb_id=int(row["suburb_id"]),
                latitude=float(row["latitude"]),
                longitude=float(row["longitude"]),
                high_priority=bool(row["high_priority"]),
            )
        )

    logger.info("Detected %d consumer(s) in outage state", len(outages))
    return outages


# ---------------------------------------------------------------------------
# Clustering
# ---------------------------------------------------------------------------


def cluster_outages(
    records: list[OutageRecord],
    proximity_km: float,
    min_points: int,
) -> list[list[OutageRecord]]:
    """Cluster outaged consumers by location.

    Args:
        records: Outaged consumers.
        proximity_km: Maximum great-circle distance between two directly
            connected points.
        min_points: Minimum neighbourhood size for a core point, counting
            the point itself.

    Returns:
        list: Clusters in label order, followed by high-priority singletons.
    """
    if not records:
        return []

    if len(records) < min_points:
        labels = np.full(len(records), -1)
    else:
        coords = np.radians([[r.latitude, r.longitude] for r in records])
        labels = DBSCAN(
            eps=proximity_km / EARTH_RADIUS_KM,
            min_samples=min_points,
            metric="haversine",
            algorithm="ball_tree",
        ).fit(coords).labels_

    grouped: dict[int, list[OutageRecord]] = {}
    singletons: list[list[OutageRecord]] = []
    for record, label in zip(records, labels, strict=True):
        if label == -1:
            if record.high_priority:
                singletons.append([record])
            continue
        grouped.setdefault(int(label), []).append(record)

    clusters = [grouped[label] for label in sorted(grouped)]
    return clusters + singletons


def power_outages_payload(clusters: list[list[OutageRecord]]) -> dict:
    """Build the ``power_outages`` response body from clusters."""
    members = {record.id: record for cluster in clusters for record in cluster}
    return {
        "power_outages": {
            "consumers": [members[i].to_dict() for i in sorted(members)],
            "clusters": [
                {"consumers": [record.to_dict() for record in cluster]}
                for cluster in clusters
            ],
        }
    }


async def find_power_outages(
    db: AsyncSession,
    *,
    threshold_min: int,
    hp_threshold_min: int,
    proximity_km: float,
    min_points: int,
    now: datetime | None = None,
    suburb_id: int | None = None,
) -> dict:
    """Detect and cluster outages; return the ``power_outages`` body."""
    records = await detect_outages(
        db,
        threshold_min=threshold_min,
        hp_threshold_min=hp_threshold_min,
        now=now,
        suburb_id=suburb_id,
    )
    clusters = cluster_outages(records, proximity_km, min_points)
    logger.info(
        "Clustered %d outage(s) into %d cluster(s)", len(records), len(clusters)
    )
    return power_outages_payload(clusters)
