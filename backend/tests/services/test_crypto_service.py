"""Tests for CryptoService (fake upstream)."""

import pytest

from pulsedash.errors import InvalidRequest, MalformedResponse, NotFound
from pulsedash.market.instruments import MARKET_SUMMARY_COINS
from pulsedash.services.crypto import SUMMARY_FIELDS, CryptoService

BASE_URL = "https://coingecko.test/api/v3"

MARKETS = [
    {
        "id": "bitcoin",
        "symbol": "btc",
        "name": "Bitcoin",
        "current_price": 50000,
        "high_24h": 51000,
        "low_24h": 49000,
        "price_change_percentage_24h": 1.2,
        "price_change_percentage_7d_in_currency": 4.5,
        "market_cap": 980000000000,
        "image": "https://img.test/btc.png",
        "last_updated": "2024-02-10T16:00:00Z",
        "ath": 69000,
    }
]

CHART = {
    "prices": [[1707580800000, 50000.0], [1707584400000, 50100.0]],
    "market_caps": [[1707580800000, 9.8e11]],
    "total_volumes": [[1707580800000, 2.1e10]],
}


@pytest.fixture
def service(fake_http, cache) -> CryptoService:
    return CryptoService(fake_http, cache, base_url=BASE_URL)


@pytest.mark.asyncio
class TestMarkets:
    async def test_summary_fields(self, service, fake_http):
        fake_http.routes["/coins/markets"] = MARKETS

        result = await service.markets()

        assert set(result[0]) == set(SUMMARY_FIELDS)
        assert result[0]["price_change_percentage_7d"] == 4.5
        params = fake_http.calls_to("/coins/markets")[0]
        assert params["ids"] == ",".join(MARKET_SUMMARY_COINS)
        assert params["vs_currency"] == "usd"

    async def test_served_from_cache(self, service, fake_http):
        fake_http.routes["/coins/markets"] = MARKETS
        await service.markets()
        await service.markets()
        assert len(fake_http.calls) == 1

    async def test_malformed(self, service, fake_http):
        fake_http.routes["/coins/markets"] = {"error": "rate limited"}
        with pytest.raises(MalformedResponse):
            await service.markets()


@pytest.mark.asyncio
class TestDetail:
    async def test_shapes_detail(self, service, fake_http):
        fake_http.routes["/coins/bitcoin"] = {
            "id": "bitcoin",
            "symbol": "btc",
            "name": "Bitcoin",
            "description": {"en": "Digital gold."},
            "image": {"large": "https://img.test/btc-large.png"},
            "links": {"homepage": ["https://bitcoin.org", ""], "blockchain_site": []},
            "market_data": {
                "current_price": {"usd": 50000, "eur": 46000},
                "market_cap": {"usd": 9.8e11},
                "price_change_percentage_24h": 1.2,
                "total_supply": 21000000,
            },
        }

        result = await service.detail("Bitcoin")

        assert result["id"] == "bitcoin"
        assert result["description"] == "Digital gold."
        assert result["market_data"]["current_price"] == 50000
        assert result["market_data"]["price_change_24h"] == 1.2
        assert result["homepage"] == "https://bitcoin.org"
        assert result["blockchain_site"] is None
        assert result["total_supply"] == 21000000

    async def test_unknown_coin(self, service, fake_http):
        fake_http.routes["/coins/nope"] = NotFound("Upstream resource not found")
        with pytest.raises(NotFound, match='Cryptocurrency with ID "nope" not found'):
            await service.detail("nope")

    async def test_blank_id(self, service, fake_http):
        with pytest.raises(InvalidRequest):
            await service.detail("  ")
        assert fake_http.calls == []


@pytest.mark.asyncio
class TestHistoryAndChart:
    async def test_history_reshapes_series(self, service, fake_http):
        fake_http.routes["/market_chart"] = CHART

        result = await service.history("bitcoin", days=30)

        assert result["days"] == 30
        assert result["prices"][1] == {"timestamp": 1707584400000, "price": 50100.0}
        assert result["market_caps"] == [{"timestamp": 1707580800000, "market_cap": 9.8e11}]
        assert result["total_volumes"][0]["volume"] == 2.1e10
        url, params = fake_http.calls[0]
        assert url == f"{BASE_URL}/coins/bitcoin/market_chart"
        assert params == {"vs_currency": "usd", "days": 30}

    async def test_chart_passes_payload_through(self, service, fake_http):
        fake_http.routes["/market_chart"] = CHART
        assert await service.chart() == CHART
        assert fake_http.calls[0][0].endswith("/coins/bitcoin/market_chart")

    async def test_history_and_chart_are_cached_per_days(self, service, fake_http):
        fake_http.routes["/market_chart"] = CHART
        await service.history("bitcoin", days=7)
        await service.history("bitcoin", days=7)
        await service.history("bitcoin", days=30)
        assert len(fake_http.calls) == 2

    async def test_bad_series_is_malformed(self, service, fake_http):
        fake_http.routes["/market_chart"] = {"prices": [[1, 2, 3]], "market_caps": [], "total_volumes": []}
        with pytest.raises(MalformedResponse):
            await service.history("bitcoin")

    @pytest.mark.parametrize("days", [0, -3])
    async def test_invalid_days(self, service, days):
        with pytest.raises(InvalidRequest):
            await service.history("bitcoin", days=days)
