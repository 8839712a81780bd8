"""
Ingestion service for stream telemetry messages.

Parses one Kafka message per call and writes one row with
INSERT ... ON CONFLICT DO NOTHING on the table's natural key. Two write
failures are recoverable and acknowledged after logging:

- uniqueness conflict (zero rows inserted): duplicate timestamp for the
  same entity;
- foreign-key violation (SQLSTATE 23503): the entity does not exist yet.

Every other write failure propagates. Malformed messages (absent key or
value, non-decimal key, non-finite or unparseable value, bad date) raise
FatalIngestionError so that a broken producer aborts the consumer batch.

CHANGELOG:
- 2026-04-24: Reject non-finite values and non-decimal keys (STORY-023)
- 2026-04-12: Invalidate buying price cache on selling price writes (STORY-011)
- 2026-04-04: Initial creation (STORY-005)

TODO:
- None
"""

import enum
import json
import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from powertrack.cache.redis_client import invalidate_buying_price
from powertrack.db.models import (
    Base,
    ConsumerConsumption,
    EnergyGeneration,
    SellingPrice,
    SpotPrice,
    SuburbConsumption,
)
from powertrack.errors import FatalIngestionError

logger = logging.getLogger(__name__)

FOREIGN_KEY_VIOLATION = "23503"


class IngestOutcome(enum.Enum):
    """Acknowledged result of handling one message."""

    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    MISSING_ENTITY = "missing_entity"


@dataclass(frozen=True)
class TelemetryKind:
    """Static description of one telemetry stream.

    Attributes:
        name: Internal kind name.
        topic: Kafka topic.
        group_id: Kafka consumer group.
        model: Target ORM model.
        entity_column: Column filled from the message key, or None for the
            system-wide price series.
        label: Human-readable prefix for log messages.
        missing_entity_message: Logged on a foreign-key violation.
    """

    name: str
    topic: str
    group_id: str
    model: type[Base]
    entity_column: str | None
    label: str
    missing_entity_message: str | None = None

    @property
    def key_columns(self) -> list[str]:
        if self.entity_column is None:
            return ["date"]
        return [self.entity_column, "date"]


TELEMETRY_KINDS: dict[str, TelemetryKind] = {
    "suburb_consumption": TelemetryKind(
        name="suburb_consumption",
        topic="suburbConsumption",
        group_id="suburbReaders",
        model=SuburbConsumption,
        entity_column="suburb_id",
        label="Suburb consumption",
        missing_entity_message="Could not add consumption event to non-existent suburb",
    ),
    "consumer_consumption": TelemetryKind(
        name="consumer_consumption",
        topic="consumerConsumption",
        group_id="consumerReaders",
        model=ConsumerConsumption,
        entity_column="consumer_id",
        label="Consumer consumption",
        missing_entity_message="Could not add consumption event to non-existent consumer",
    ),
    "generation": TelemetryKind(
        name="generation",
        topic="generatorProduction",
        group_id="generatorReaders",
        model=EnergyGeneration,
        entity_column="energy_generator_id",
        label="Generator production",
        missing_entity_message="Could not add generation event to non-existent generator",
    ),
    "spot_price": TelemetryKind(
        name="spot_price",
        topic="spotPrice",
        group_id="spotPriceReaders",
        model=SpotPrice,
        entity_column=None,
        label="Spot price",
    ),
    "selling_price": TelemetryKind(
        name="selling_price",
        topic="sellingPrice",
        group_id="sellingPriceReaders",
        model=SellingPrice,
        entity_column=None,
        label="Selling price",
    ),
}


@dataclass(frozen=True)
class ParsedSample:
    """A validated telemetry message."""

    entity_id: int | None
    date: datetime
    amount: float
    ingested_at: datetime | None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_entity_id(key: bytes) -> int:
    """Decode an optionally signed ASCII decimal key."""
    try:
        text = key.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise FatalIngestionError(f"Message key was not a number: {key!r}") from exc
    digits = text[1:] if text[:1] in ("+", "-") else text
    if not (digits.isascii() and digits.isdecimal()):
        raise FatalIngestionError(f"Message key was not a number: {key!r}")
    return int(text)


def _is_finite_number(amount) -> bool:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return False
    try:
        return math.isfinite(amount)
    except OverflowError:
        return False


def parse_message(
    kind: TelemetryKind,
    key: bytes | None,
    value: bytes | None,
    timestamp_ms: int | None = None,
) -> ParsedSample:
    """Parse and validate one stream message.

    Args:
        kind: Telemetry kind the message was read from.
        key: UTF-8 decimal entity id (ignored for price series).
        value: UTF-8 JSON ``{"value": number, "date": ISO-8601}``.
        timestamp_ms: Transport timestamp, stored as ``ingested_at``.

    Returns:
        ParsedSample: The validated sample.

    Raises:
        FatalIngestionError: If the message is malformed.
    """
    if value is None or (kind.entity_column is not None and key is None):
        raise FatalIngestionError("Message contained a null key or value")

    entity_id = None
    if kind.entity_column is not None:
        entity_id = _parse_entity_id(key)

    try:
        body = json.loads(value)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise FatalIngestionError("Could not parse message body") from exc
    if not isinstance(body, dict):
        raise FatalIngestionError("Message body was not a JSON object")

    amount = body.get("value")
    if not _is_finite_number(amount):
        raise FatalIngestionError(f"Message value was not a number: {amount!r}")

    raw_date = body.get("date")
    try:
        date = datetime.fromisoformat(raw_date)
    except (TypeError, ValueError) as exc:
        raise FatalIngestionError(
            f"Message timestamp was not a date: {raw_date!r}"
        ) from exc
    if date.tzinfo is None:
        date = date.replace(tzinfo=UTC)

    ingested_at = None
    if timestamp_ms is not None:
        ingested_at = datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)

    return ParsedSample(
        entity_id=entity_id,
        date=date,
        amount=float(amount),
        ingested_at=ingested_at,
    )


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def is_foreign_key_violation(exc: IntegrityError) -> bool:
    """Return True if an IntegrityError carries SQLSTATE 23503."""
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code == FOREIGN_KEY_VIOLATION


async def store_sample(
    db: AsyncSession,
    kind: TelemetryKind,
    sample: ParsedSample,
) -> IngestOutcome:
    """Insert one sample idempotently.

    Args:
        db: Async SQLAlchemy session.
        kind: Telemetry kind.
        sample: Parsed sample.

    Returns:
        IngestOutcome: What happened to the sample.

    Raises:
        IntegrityError: For integrity failures other than a missing entity.
    """
    values = {
        "date": sample.date,
        "amount": sample.amount,
        "ingested_at": sample.ingested_at,
    }
    if kind.entity_column is not None:
        values[kind.entity_column] = sample.entity_id

    stmt = (
        pg_insert(kind.model)
        .values(**values)
        .on_conflict_do_nothing(index_elements=kind.key_columns)
    )
    try:
        result = await db.execute(stmt)
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        if kind.missing_entity_message and is_foreign_key_violation(exc):
            logger.warning(
                "%s (id=%s)", kind.missing_entity_message, sample.entity_id
            )
            return IngestOutcome.MISSING_ENTITY
        raise

    if result.rowcount == 0:
        logger.warning(
            "%s: Entry with that timestamp already exists (id=%s, date=%s)",
            kind.label,
            sample.entity_id,
            sample.date.isoformat(),
        )
        return IngestOutcome.DUPLICATE

    if kind.entity_column is None:
        logger.info("%s: created entry at %s", kind.label, sample.date.isoformat())
    else:
        logger.info("%s: created entry for %s", kind.label, sample.entity_id)

    if kind.name == "selling_price":
        await invalidate_buying_price()

    return IngestOutcome.INSERTED


class IngestionHandler:
    """Handles messages for one telemetry kind.

    The session factory is injected by the process entry point, which owns
    its lifecycle.
    """

    def __init__(
        self,
        kind: TelemetryKind,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self.kind = kind
        self._session_factory = session_factory

    async def handle(
        self,
        key: bytes | None,
        value: bytes | None,
        timestamp_ms: int | None = None,
    ) -> IngestOutcome:
        """Parse and store one message.

        Raises:
            FatalIngestionError: If the message is malformed.
        """
        sample = parse_message(self.kind, key, value, timestamp_ms)
        async with self._session_factory() as session:
            return await store_sample(session, self.kind, sample)
