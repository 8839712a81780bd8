"""
Tests for the /consumer endpoints.

Validates the Redis-cached buying price (hit, miss, empty table), spending
for a consumer, and green energy for the consumer's suburb.

CHANGELOG:
- 2026-04-20: Add greenEnergy tests (STORY-019)
- 2026-04-12: Add buyingPrice cache tests (STORY-011)
- 2026-04-08: Initial creation (STORY-009)

TODO:
- None
"""

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from powertrack.db.models import Consumer

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

DATES = {"start_date": "2026-03-01T00:00:00Z", "end_date": "2026-03-01T03:00:00Z"}
PRICE = {"date": "2026-03-01T10:00:00+00:00", "amount": 0.27}


def _override_db_factory(mock_session: AsyncMock):
    """Create a dependency override for get_db that yields mock_session."""

    async def _override():
        yield mock_session

    return _override


def _use_db(mock_session: AsyncMock) -> None:
    from powertrack.api.deps import get_db
    from powertrack.api.main import app

    app.dependency_overrides[get_db] = _override_db_factory(mock_session)


def _session_with_consumer(suburb_id: int = 3) -> AsyncMock:
    session = AsyncMock()
    session.get = AsyncMock(
        return_value=Consumer(id=5, suburb_id=suburb_id, street_address="5 Test St")
    )
    return session


# ---------------------------------------------------------------------------
# buyingPrice
# ---------------------------------------------------------------------------


class TestBuyingPrice:
    def test_cache_hit_skips_db(self, client: TestClient) -> None:
        session = AsyncMock()
        _use_db(session)

        with patch(
            "powertrack.api.consumer.get_cached_buying_price",
            AsyncMock(return_value=PRICE),
        ):
            response = client.get("/consumer/buyingPrice")

        assert response.status_code == 200
        assert response.json() == PRICE
        session.execute.assert_not_awaited()

    def test_cache_miss_reads_db_and_caches(self, client: TestClient) -> None:
        session = AsyncMock()
        result = MagicMock()
        result.scalar_one_or_none.return_value = MagicMock(
            date=datetime(2026, 3, 1, 10, 0, tzinfo=UTC), amount=Decimal("0.27")
        )
        session.execute = AsyncMock(return_value=result)
        _use_db(session)

        with (
            patch(
                "powertrack.api.consumer.get_cached_buying_price",
                AsyncMock(return_value=None),
            ),
            patch(
                "powertrack.api.consumer.cache_buying_price", new_callable=AsyncMock
            ) as mock_cache,
        ):
            response = client.get("/consumer/buyingPrice")

        assert response.status_code == 200
        assert response.json() == PRICE
        mock_cache.assert_awaited_once_with(PRICE, 5)

    def test_no_price_is_404(self, client: TestClient) -> None:
        session = AsyncMock()
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        session.execute = AsyncMock(return_value=result)
        _use_db(session)

        with patch(
            "powertrack.api.consumer.get_cached_buying_price",
            AsyncMock(return_value=None),
        ):
            response = client.get("/consumer/buyingPrice")

        assert response.status_code == 404
        assert response.json() == {"detail": "No buying price found"}


# ---------------------------------------------------------------------------
# spending
# ---------------------------------------------------------------------------


class TestSpending:
    def test_spending(self, client: TestClient) -> None:
        _use_db(_session_with_consumer())
        spend = [{"date": "2026-03-01T01:00:00+00:00", "amount": 1.2}]

        with patch(
            "powertrack.api.consumer.pricing.spending", AsyncMock(return_value=spend)
        ) as mock_spending:
            response = client.get(
                "/consumer/spending", params={**DATES, "consumer_id": "5"}
            )

        assert response.status_code == 200
        data = response.json()
        assert data["consumer_id"] == 5
        assert data["spending"] == spend
        assert mock_spending.await_args.args[3] == 5

    def test_consumer_id_required(self, client: TestClient) -> None:
        _use_db(AsyncMock())

        response = client.get("/consumer/spending", params=DATES)

        assert response.status_code == 400
        assert response.json() == {"detail": "Consumer ID must be provided."}

    def test_unknown_consumer_is_404(self, client: TestClient) -> None:
        session = AsyncMock()
        session.get = AsyncMock(return_value=None)
        _use_db(session)

        response = client.get(
            "/consumer/spending", params={**DATES, "consumer_id": "77"}
        )

        assert response.status_code == 404


# ---------------------------------------------------------------------------
# greenEnergy
# ---------------------------------------------------------------------------


class TestConsumerGreenEnergy:
    def test_uses_consumer_suburb(self, client: TestClient) -> None:
        _use_db(_session_with_consumer(suburb_id=9))

        with patch(
            "powertrack.api.consumer.energy.green_energy",
            AsyncMock(
                return_value={"green_usage_percent": 0.5, "green_goal_percent": 1.0}
            ),
        ) as mock_green:
            response = client.get("/consumer/greenEnergy", params={"consumer_id": "5"})

        assert response.status_code == 200
        assert response.json()["green_goal_percent"] == 1.0
        assert mock_green.await_args.kwargs["suburb_id"] == 9
        assert mock_green.await_args.kwargs["lookback_h"] == 24
