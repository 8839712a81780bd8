"""
Tests for report storage and the /retailer/reports endpoints.

CHANGELOG:
- 2026-04-24: Add unknown scope tests (STORY-023)
- 2026-04-22: Add periodic consumer report tests (STORY-022)
- 2026-04-21: Initial creation (STORY-021)

TODO:
- None
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from powertrack.db.models import Report
from powertrack.errors import MalformedInputError, NoDataError, NotFoundError
from powertrack.services.aggregation import Bucket
from powertrack.services.reports import (
    create_consumer_reports,
    create_report,
    get_report,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

START = datetime(2026, 3, 1, tzinfo=UTC)
END = datetime(2026, 3, 8, tzinfo=UTC)
MODULE = "powertrack.services.reports"


def _scalar_result(value) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def _report(**overrides) -> Report:
    values = {"id": 1, "start_date": START, "end_date": END}
    values.update(overrides)
    return Report(**values)


def _override_db_factory(mock_session: AsyncMock):
    async def _override():
        yield mock_session

    return _override


def _use_db(mock_session: AsyncMock) -> None:
    from powertrack.api.deps import get_db
    from powertrack.api.main import app

    app.dependency_overrides[get_db] = _override_db_factory(mock_session)


# ---------------------------------------------------------------------------
# Service: create
# ---------------------------------------------------------------------------


class TestCreateReport:
    @pytest.mark.asyncio
    async def test_creates_and_returns_id(self, mock_db_session) -> None:
        mock_db_session.execute = AsyncMock(return_value=_scalar_result(None))
        mock_db_session.get = AsyncMock(return_value=MagicMock())

        async def _refresh(report):
            report.id = 42

        mock_db_session.refresh = AsyncMock(side_effect=_refresh)

        report_id = await create_report(mock_db_session, START, END, suburb_id=3)

        assert report_id == 42
        added = mock_db_session.add.call_args.args[0]
        assert added.suburb_id == 3
        assert added.consumer_id is None
        mock_db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_duplicate_rejected(self, mock_db_session) -> None:
        mock_db_session.execute = AsyncMock(return_value=_scalar_result(7))

        with pytest.raises(MalformedInputError, match="already exists"):
            await create_report(mock_db_session, START, END)
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_both_scope_ids_rejected(self, mock_db_session) -> None:
        with pytest.raises(MalformedInputError):
            await create_report(mock_db_session, START, END, suburb_id=1, consumer_id=2)

    @pytest.mark.asyncio
    async def test_unknown_suburb_is_not_found(self, mock_db_session) -> None:
        with pytest.raises(NotFoundError, match="Suburb 9 not found"):
            await create_report(mock_db_session, START, END, suburb_id=9)

        mock_db_session.execute.assert_not_awaited()
        mock_db_session.add.assert_not_called()
        mock_db_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_consumer_is_not_found(self, mock_db_session) -> None:
        with pytest.raises(NotFoundError, match="Consumer 9 not found"):
            await create_report(mock_db_session, START, END, consumer_id=9)

        mock_db_session.add.assert_not_called()


class TestCreateConsumerReports:
    @pytest.mark.asyncio
    async def test_one_report_per_consumer(self, mock_db_session) -> None:
        result = MagicMock()
        result.scalars.return_value.all.return_value = [1, 2, 3]
        mock_db_session.execute = AsyncMock(return_value=result)

        count = await create_consumer_reports(mock_db_session, START, END)

        assert count == 3
        reports = mock_db_session.add_all.call_args.args[0]
        assert [r.consumer_id for r in reports] == [1, 2, 3]
        assert all(r.suburb_id is None for r in reports)


# ---------------------------------------------------------------------------
# Service: read
# ---------------------------------------------------------------------------


class TestGetReport:
    @pytest.mark.asyncio
    async def test_unknown_report(self, mock_db_session) -> None:
        with pytest.raises(NotFoundError, match="Report not found"):
            await get_report(mock_db_session, 5)

    @pytest.mark.asyncio
    async def test_suburb_report_body(self, mock_db_session) -> None:
        mock_db_session.get = AsyncMock(return_value=_report(suburb_id=2))
        bucket = Bucket(start=START + timedelta(days=1), granularity="daily",
                        average_amount=1.0, energy=24.0)
        margin = {"spot_prices": [], "selling_prices": [], "profits": []}

        with (
            patch(f"{MODULE}.aggregate", AsyncMock(return_value=[bucket])) as mock_agg,
            patch(
                f"{MODULE}.green_energy",
                AsyncMock(side_effect=NoDataError("No generation records")),
            ),
            patch(f"{MODULE}.source_breakdown", AsyncMock(return_value=[])),
            patch(f"{MODULE}.profit_margin", AsyncMock(return_value=margin)),
        ):
            body = await get_report(mock_db_session, 1)

        assert body["for"] == {"suburb_id": 2, "consumer_id": None}
        assert body["energy"]["consumption"] == [bucket.to_point()]
        assert body["energy"]["generation"] == [bucket.to_point()]
        assert body["energy"]["green_energy"] == {
            "green_goal_percent": None,
            "green_usage_percent": None,
        }
        assert body["profits"] == []
        assert "spending" not in body
        assert [c.args[1] for c in mock_agg.await_args_list] == [
            "suburb_consumption",
            "generation",
        ]

    @pytest.mark.asyncio
    async def test_consumer_report_body(self, mock_db_session) -> None:
        mock_db_session.get = AsyncMock(return_value=_report(consumer_id=5))

        with (
            patch(f"{MODULE}.get_consumer_suburb_id", AsyncMock(return_value=4)),
            patch(f"{MODULE}.aggregate", AsyncMock(return_value=[])) as mock_agg,
            patch(
                f"{MODULE}.green_energy",
                AsyncMock(
                    return_value={"green_usage_percent": 0.2, "green_goal_percent": 0.4}
                ),
            ) as mock_green,
            patch(f"{MODULE}.source_breakdown", AsyncMock(return_value=[])),
            patch(f"{MODULE}.spending", AsyncMock(return_value=[])),
        ):
            body = await get_report(mock_db_session, 1)

        assert body["spending"] == []
        assert "profits" not in body
        assert "generation" not in body["energy"]
        assert mock_agg.await_args.args[1] == "consumer_consumption"
        assert mock_green.await_args.kwargs["suburb_id"] == 4


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


class TestReportEndpoints:
    def test_create_report(self, client: TestClient) -> None:
        _use_db(AsyncMock())

        with patch(
            "powertrack.api.reports.reports.create_report", AsyncMock(return_value=11)
        ) as mock_create:
            response = client.post(
                "/retailer/reports",
                json={
                    "start_date": "2026-03-01T00:00:00Z",
                    "end_date": "2026-03-08T00:00:00Z",
                    "for": {"suburb_id": 2},
                },
            )

        assert response.status_code == 200
        assert response.json() == {"id": 11}
        assert mock_create.await_args.kwargs == {"suburb_id": 2, "consumer_id": None}

    def test_missing_scope(self, client: TestClient) -> None:
        _use_db(AsyncMock())

        response = client.post(
            "/retailer/reports", json={"start_date": "2026-03-01T00:00:00Z"}
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "Report scope ('for') must be provided."}

    def test_unknown_scope_is_404(self, client: TestClient) -> None:
        session = AsyncMock()
        session.get = AsyncMock(return_value=None)
        _use_db(session)

        response = client.post(
            "/retailer/reports",
            json={
                "start_date": "2026-03-01T00:00:00Z",
                "end_date": "2026-03-08T00:00:00Z",
                "for": {"consumer_id": 77},
            },
        )

        assert response.status_code == 404
        assert response.json() == {"detail": "Consumer 77 not found."}
        session.commit.assert_not_awaited()

    def test_bad_dates(self, client: TestClient) -> None:
        _use_db(AsyncMock())

        response = client.post(
            "/retailer/reports", json={"start_date": "last week", "for": {}}
        )

        assert response.status_code == 400

    def test_list_reports(self, client: TestClient) -> None:
        session = AsyncMock()
        result = MagicMock()
        result.scalars.return_value.all.return_value = [_report(suburb_id=2)]
        session.execute = AsyncMock(return_value=result)
        _use_db(session)

        response = client.get("/retailer/reports")

        assert response.status_code == 200
        assert response.json() == {
            "reports": [
                {
                    "id": 1,
                    "start_date": "2026-03-01T00:00:00+00:00",
                    "end_date": "2026-03-08T00:00:00+00:00",
                    "for": {"suburb_id": 2, "consumer_id": None},
                }
            ]
        }

    def test_unknown_report_is_404(self, client: TestClient) -> None:
        session = AsyncMock()
        session.get = AsyncMock(return_value=None)
        _use_db(session)

        response = client.get("/retailer/reports/3")

        assert response.status_code == 404
