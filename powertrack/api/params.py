"""
Query parameter parsing shared by the retailer and consumer routers.

Dates and ids are accepted as raw strings and validated here so that bad
input surfaces as MalformedInputError (HTTP 400 with a readable message)
instead of FastAPI's generic 422.

CHANGELOG:
- 2026-04-06: Initial creation (STORY-006)

TODO:
- None
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Annotated

from fastapi import Query

from powertrack.errors import MalformedInputError


@dataclass(frozen=True)
class DateRange:
    """Validated ``(start, end]`` query range."""

    start: datetime
    end: datetime


@dataclass(frozen=True)
class Scope:
    """Validated suburb / consumer filter (at most one is set)."""

    suburb_id: int | None = None
    consumer_id: int | None = None


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 string; naive values are taken as UTC.

    Raises:
        ValueError: If ``value`` is not ISO-8601.
    """
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def validate_date_range(
    start_date: str | None,
    end_date: str | None,
    now: datetime | None = None,
) -> DateRange:
    """Validate request dates.

    Args:
        start_date: Required ISO-8601 start.
        end_date: Optional ISO-8601 end, defaults to ``now``.
        now: Current time, injectable for tests.

    Raises:
        MalformedInputError: On a missing, unparseable or inverted range, or
            an end date in the future.
    """
    now = now or datetime.now(tz=UTC)
    if not start_date:
        raise MalformedInputError("Start date must be provided.")
    try:
        start = parse_iso_datetime(start_date)
    except ValueError as exc:
        raise MalformedInputError(
            "Invalid start date format. Provide dates in ISO string format."
        ) from exc

    if end_date:
        try:
            end = parse_iso_datetime(end_date)
        except ValueError as exc:
            raise MalformedInputError(
                "Invalid end date format. Provide dates in ISO string format."
            ) from exc
    else:
        end = now

    if end < start:
        raise MalformedInputError("Start date must be before end date.")
    if end > now:
        raise MalformedInputError("End date must not be in the future.")
    return DateRange(start=start, end=end)


def parse_id(value: str | None, label: str) -> int | None:
    """Parse an optional positive integer id.

    Raises:
        MalformedInputError: If ``value`` is not a positive integer.
    """
    if value is None or value == "":
        return None
    try:
        parsed = int(value)
    except ValueError as exc:
        raise MalformedInputError(f"{label} must be an integer") from exc
    if parsed < 1:
        raise MalformedInputError(f"{label} must be a positive integer")
    return parsed


def validate_scope(suburb_id: str | None, consumer_id: str | None) -> Scope:
    """Validate the mutually exclusive suburb / consumer filter."""
    if suburb_id and consumer_id:
        raise MalformedInputError("Cannot specify both suburb_id and consumer_id.")
    return Scope(
        suburb_id=parse_id(suburb_id, "Suburb ID"),
        consumer_id=parse_id(consumer_id, "Consumer ID"),
    )


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def date_range(
    start_date: Annotated[str | None, Query(description="ISO-8601 start.")] = None,
    end_date: Annotated[str | None, Query(description="ISO-8601 end.")] = None,
) -> DateRange:
    return validate_date_range(start_date, end_date)


def scope(
    suburb_id: Annotated[str | None, Query()] = None,
    consumer_id: Annotated[str | None, Query()] = None,
) -> Scope:
    return validate_scope(suburb_id, consumer_id)
