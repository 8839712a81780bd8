"""
Unit tests for request parameter validation.

CHANGELOG:
- 2026-04-06: Initial creation (STORY-006)

TODO:
- None
"""

from datetime import UTC, datetime

import pytest

from powertrack.api.params import (
    parse_id,
    parse_iso_datetime,
    validate_date_range,
    validate_scope,
)
from powertrack.errors import MalformedInputError

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


class TestValidateDateRange:
    def test_valid_range(self) -> None:
        dates = validate_date_range(
            "2026-03-01T00:00:00Z", "2026-03-02T00:00:00+00:00", now=NOW
        )
        assert dates.start == datetime(2026, 3, 1, tzinfo=UTC)
        assert dates.end == datetime(2026, 3, 2, tzinfo=UTC)

    def test_end_defaults_to_now(self) -> None:
        dates = validate_date_range("2026-03-01T00:00:00Z", None, now=NOW)
        assert dates.end == NOW

    @pytest.mark.parametrize(
        ("start", "end", "message"),
        [
            (None, None, "Start date must be provided."),
            ("yesterday", None, "Invalid start date format."),
            ("2026-03-01", "soon", "Invalid end date format."),
            ("2026-03-05", "2026-03-01", "Start date must be before end date."),
            ("2026-03-01", "2026-04-01", "End date must not be in the future."),
        ],
    )
    def test_rejected(self, start, end, message: str) -> None:
        with pytest.raises(MalformedInputError) as exc_info:
            validate_date_range(start, end, now=NOW)
        assert exc_info.value.message.startswith(message)

    def test_naive_dates_are_utc(self) -> None:
        assert parse_iso_datetime("2026-03-01T05:00:00").tzinfo == UTC


class TestParseId:
    def test_absent(self) -> None:
        assert parse_id(None, "Suburb ID") is None
        assert parse_id("", "Suburb ID") is None

    def test_valid(self) -> None:
        assert parse_id("12", "Suburb ID") == 12

    def test_not_integer(self) -> None:
        with pytest.raises(MalformedInputError, match="Suburb ID must be an integer"):
            parse_id("abc", "Suburb ID")

    def test_not_positive(self) -> None:
        with pytest.raises(MalformedInputError, match="positive"):
            parse_id("0", "Consumer ID")


class TestValidateScope:
    def test_both_rejected(self) -> None:
        with pytest.raises(MalformedInputError, match="Cannot specify both"):
            validate_scope("1", "2")

    def test_single(self) -> None:
        scope = validate_scope(None, "2")
        assert scope.suburb_id is None
        assert scope.consumer_id == 2
