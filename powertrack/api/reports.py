"""
Report endpoints under /retailer/reports.

POST stores report parameters; GET /{id} recomputes the report body from
current telemetry on every call.

CHANGELOG:
- 2026-04-21: Initial creation (STORY-021)

TODO:
- None
"""

import logging

from fastapi import APIRouter
from pydantic import BaseModel, Field

from powertrack.api.deps import DbSession
from powertrack.api.params import validate_date_range
from powertrack.errors import MalformedInputError
from powertrack.services import reports

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/retailer/reports", tags=["reports"])


class ReportFor(BaseModel):
    suburb_id: int | None = None
    consumer_id: int | None = None


class ReportCreate(BaseModel):
    """Request body for POST /retailer/reports.

    ``for`` is a Python keyword, hence the alias.
    """

    start_date: str | None = None
    end_date: str | None = None
    report_for: ReportFor | None = Field(default=None, alias="for")

    model_config = {"populate_by_name": True}


@router.get("")
async def list_reports(db: DbSession) -> dict:
    return {"reports": await reports.list_reports(db)}


@router.post("")
async def create_report(db: DbSession, body: ReportCreate) -> dict:
    """Create a report for a suburb, a consumer, or nation-wide.

    Raises:
        MalformedInputError: On bad dates, both scope ids, or a duplicate.
    """
    if body.report_for is None:
        raise MalformedInputError("Report scope ('for') must be provided.")
    dates = validate_date_range(body.start_date, body.end_date)
    report_id = await reports.create_report(
        db,
        dates.start,
        dates.end,
        suburb_id=body.report_for.suburb_id,
        consumer_id=body.report_for.consumer_id,
    )
    return {"id": report_id}


@router.get("/{report_id}")
async def get_report(db: DbSession, report_id: int) -> dict:
    return await reports.get_report(db, report_id)
