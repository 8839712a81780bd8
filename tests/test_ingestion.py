"""
Tests for the stream message ingestion service.

Validates message parsing (null key/value, non-numeric key, bad JSON, bad
date), idempotent insertion with ON CONFLICT DO NOTHING, recoverable
foreign-key violations, propagation of other integrity errors, and buying
price cache invalidation on selling price writes.

CHANGELOG:
- 2026-04-12: Add cache invalidation tests (STORY-011)
- 2026-04-04: Initial creation (STORY-005)

TODO:
- None
"""

import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError

from powertrack.errors import FatalIngestionError
from powertrack.services.ingestion import (
    TELEMETRY_KINDS,
    IngestionHandler,
    IngestOutcome,
    ParsedSample,
    is_foreign_key_violation,
    parse_message,
    store_sample,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SUBURB = TELEMETRY_KINDS["suburb_consumption"]
SPOT = TELEMETRY_KINDS["spot_price"]
SELLING = TELEMETRY_KINDS["selling_price"]


def _value(amount: object = 12.5, date: object = "2026-03-01T10:00:00Z") -> bytes:
    return json.dumps({"value": amount, "date": date}).encode()


def _sample(entity_id: int | None = 4) -> ParsedSample:
    return ParsedSample(
        entity_id=entity_id,
        date=datetime(2026, 3, 1, 10, 0, tzinfo=UTC),
        amount=12.5,
        ingested_at=None,
    )


def _mock_session(rowcount: int = 1) -> AsyncMock:
    session = AsyncMock()
    result = MagicMock()
    result.rowcount = rowcount
    session.execute = AsyncMock(return_value=result)
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


def _integrity_error(sqlstate: str) -> IntegrityError:
    orig = Exception("violation")
    orig.sqlstate = sqlstate
    return IntegrityError("INSERT ...", {}, orig)


# ---------------------------------------------------------------------------
# Kind registry
# ---------------------------------------------------------------------------


class TestTelemetryKinds:
    def test_topics_and_groups(self) -> None:
        assert {k.topic: k.group_id for k in TELEMETRY_KINDS.values()} == {
            "suburbConsumption": "suburbReaders",
            "consumerConsumption": "consumerReaders",
            "generatorProduction": "generatorReaders",
            "spotPrice": "spotPriceReaders",
            "sellingPrice": "sellingPriceReaders",
        }

    def test_key_columns(self) -> None:
        assert SUBURB.key_columns == ["suburb_id", "date"]
        assert SPOT.key_columns == ["date"]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParseMessage:
    def test_valid_entity_message(self) -> None:
        sample = parse_message(SUBURB, b"4", _value(), timestamp_ms=1772359200000)

        assert sample.entity_id == 4
        assert sample.amount == 12.5
        assert sample.date == datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
        assert sample.ingested_at == datetime.fromtimestamp(1772359200, tz=UTC)

    def test_price_message_ignores_key(self) -> None:
        sample = parse_message(SPOT, None, _value(0.21))
        assert sample.entity_id is None
        assert sample.ingested_at is None

    def test_naive_date_is_utc(self) -> None:
        sample = parse_message(SUBURB, b"4", _value(date="2026-03-01T10:00:00"))
        assert sample.date.tzinfo == UTC

    @pytest.mark.parametrize(
        ("key", "value"),
        [
            (None, _value()),
            (b"4", None),
            (b"four", _value()),
            (b"4", b"not json"),
            (b"4", b"[1, 2]"),
            (b"4", _value(amount="12")),
            (b"4", _value(amount=True)),
            (b"4", _value(date="yesterday")),
            (b"4", _value(date=None)),
            (b"4", b'{"value": NaN, "date": "2026-03-01T10:00:00Z"}'),
            (b"4", b'{"value": Infinity, "date": "2026-03-01T10:00:00Z"}'),
            (b"4", b'{"value": -Infinity, "date": "2026-03-01T10:00:00Z"}'),
            (b"4", _value(amount=10**400)),
            (b"1_000", _value()),
            (b" 4 ", _value()),
            (b"\xd9\xa3", _value()),
            (b"", _value()),
            (b"-", _value()),
        ],
    )
    def test_malformed_message_is_fatal(self, key, value) -> None:
        with pytest.raises(FatalIngestionError):
            parse_message(SUBURB, key, value)

    def test_price_message_without_value_is_fatal(self) -> None:
        with pytest.raises(FatalIngestionError, match="null key or value"):
            parse_message(SPOT, None, None)


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


class TestStoreSample:
    @pytest.mark.asyncio
    async def test_insert(self) -> None:
        session = _mock_session(rowcount=1)

        outcome = await store_sample(session, SUBURB, _sample())

        assert outcome is IngestOutcome.INSERTED
        session.execute.assert_awaited_once()
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_insert_uses_on_conflict_do_nothing(self) -> None:
        session = _mock_session()

        await store_sample(session, SUBURB, _sample())

        stmt = session.execute.call_args[0][0]
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert "ON CONFLICT (suburb_id, date) DO NOTHING" in sql

    @pytest.mark.asyncio
    async def test_duplicate_is_logged_and_acknowledged(self, caplog) -> None:
        """Re-ingesting the same (entity, date) does not create a second row."""
        session = _mock_session(rowcount=0)

        outcome = await store_sample(session, SUBURB, _sample())

        assert outcome is IngestOutcome.DUPLICATE
        assert "Entry with that timestamp already exists" in caplog.text

    @pytest.mark.asyncio
    async def test_missing_entity_is_recoverable(self, caplog) -> None:
        session = _mock_session()
        session.execute = AsyncMock(side_effect=_integrity_error("23503"))

        outcome = await store_sample(session, SUBURB, _sample())

        assert outcome is IngestOutcome.MISSING_ENTITY
        session.rollback.assert_awaited_once()
        assert "non-existent suburb" in caplog.text

    @pytest.mark.asyncio
    async def test_other_integrity_error_propagates(self) -> None:
        session = _mock_session()
        session.execute = AsyncMock(side_effect=_integrity_error("23514"))

        with pytest.raises(IntegrityError):
            await store_sample(session, SUBURB, _sample())
        session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_selling_price_invalidates_cache(self) -> None:
        session = _mock_session()

        with patch(
            "powertrack.services.ingestion.invalidate_buying_price", new_callable=AsyncMock
        ) as mock_invalidate:
            await store_sample(session, SELLING, _sample(entity_id=None))
            mock_invalidate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_spot_price_does_not_touch_cache(self) -> None:
        session = _mock_session()

        with patch(
            "powertrack.services.ingestion.invalidate_buying_price", new_callable=AsyncMock
        ) as mock_invalidate:
            await store_sample(session, SPOT, _sample(entity_id=None))
            mock_invalidate.assert_not_awaited()


class TestIsForeignKeyViolation:
    def test_sqlstate(self) -> None:
        assert is_foreign_key_violation(_integrity_error("23503"))
        assert not is_foreign_key_violation(_integrity_error("23505"))

    def test_pgcode(self) -> None:
        orig = Exception("violation")
        orig.pgcode = "23503"
        assert is_foreign_key_violation(IntegrityError("INSERT ...", {}, orig))


class TestIngestionHandler:
    @pytest.mark.asyncio
    async def test_handle_opens_session_and_stores(self) -> None:
        session = _mock_session()
        factory = MagicMock()
        factory.return_value.__aenter__ = AsyncMock(return_value=session)
        factory.return_value.__aexit__ = AsyncMock(return_value=None)
        handler = IngestionHandler(SUBURB, factory)

        outcome = await handler.handle(b"4", _value(), 1772359200000)

        assert outcome is IngestOutcome.INSERTED
        factory.assert_called_once()

    @pytest.mark.asyncio
    async def test_malformed_message_never_opens_session(self) -> None:
        factory = MagicMock()
        handler = IngestionHandler(SUBURB, factory)

        with pytest.raises(FatalIngestionError):
            await handler.handle(None, _value())
        factory.assert_not_called()
