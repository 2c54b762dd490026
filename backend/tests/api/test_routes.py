"""Tests for the HTTP API: routing, error shapes and status codes."""

import pytest
from fastapi.testclient import TestClient

from pulsedash.config import Settings
from pulsedash.errors import MalformedResponse, NotFound, UpstreamUnavailable
from pulsedash.main import create_app

SETTINGS = Settings(
    openweather_api_key="weather-key",
    newsdata_api_key="news-key",
    openweather_base_url="https://weather.test",
    coingecko_base_url="https://coingecko.test/api/v3",
    newsdata_base_url="https://news.test/api/1",
    price_stream_url="",
)

WEATHER = {
    "name": "London",
    "coord": {"lon": -0.13, "lat": 51.51},
    "main": {"temp": 11.5, "humidity": 81, "pressure": 1012, "temp_min": 9.8, "temp_max": 12.9},
    "weather": [{"main": "Clouds", "icon": "04d"}],
    "wind": {"speed": 4.1},
    "sys": {"sunrise": 1707550000, "sunset": 1707585000},
}


@pytest.fixture
def client(fake_http) -> TestClient:
    with TestClient(create_app(SETTINGS, http=fake_http, start_pipeline=False)) as client:
        yield client


class TestWeatherRoutes:
    def test_all_cities(self, client, fake_http):
        fake_http.routes["/data/2.5/weather"] = WEATHER
        response = client.get("/api/weather")
        assert response.status_code == 200
        assert len(response.json()) == 3

    def test_city(self, client, fake_http):
        fake_http.routes["/data/2.5/weather"] = WEATHER
        response = client.get("/api/weather/London")
        assert response.status_code == 200
        assert response.json()["temp"] == 11.5

    def test_history_route_is_not_a_city(self, client, fake_http):
        fake_http.routes["/data/2.5/weather"] = WEATHER
        fake_http.routes["/data/2.5/forecast"] = {"list": []}
        response = client.get("/api/weather/history/London")
        assert response.status_code == 200
        assert response.json()["forecast"] == []

    def test_unknown_city_is_404(self, client, fake_http):
        fake_http.routes["/data/2.5/weather"] = NotFound("Upstream resource not found")
        response = client.get("/api/weather/Atlantis")
        assert response.status_code == 404
        assert response.json() == {"error": 'City "Atlantis" not found'}

    def test_upstream_failure_is_500(self, client, fake_http):
        fake_http.routes["/geo/1.0/direct"] = UpstreamUnavailable("Upstream request timed out")
        response = client.get("/api/air_pollution/London")
        assert response.status_code == 500
        assert response.json() == {"error": "Upstream request timed out"}

    def test_missing_api_key_is_500_without_upstream_call(self, fake_http):
        settings = Settings(price_stream_url="", openweather_api_key="")
        with TestClient(create_app(settings, http=fake_http, start_pipeline=False)) as client:
            response = client.get("/api/weather/London")
        assert response.status_code == 500
        assert "OPENWEATHER_API_KEY" in response.json()["error"]
        assert fake_http.calls == []


class TestCryptoRoutes:
    def test_chat_route_is_not_an_id(self, client, fake_http):
        fake_http.routes["/market_chart"] = {"prices": [], "market_caps": [], "total_volumes": []}
        response = client.get("/api/crypto/chat", params={"cryptoId": "ethereum", "days": 30})
        assert response.status_code == 200
        url, params = fake_http.calls[0]
        assert url.endswith("/coins/ethereum/market_chart")
        assert params["days"] == 30

    def test_history_default_days(self, client, fake_http):
        fake_http.routes["/market_chart"] = {"prices": [[1, 2.0]], "market_caps": [], "total_volumes": []}
        response = client.get("/api/crypto/history/bitcoin")
        assert response.status_code == 200
        assert response.json()["days"] == 7

    def test_non_numeric_days_is_400(self, client, fake_http):
        response = client.get("/api/crypto/history/bitcoin", params={"days": "lots"})
        assert response.status_code == 400
        assert "error" in response.json()
        assert fake_http.calls == []

    def test_unknown_coin_is_404(self, client, fake_http):
        fake_http.routes["/coins/nope"] = NotFound("Upstream resource not found")
        response = client.get("/api/crypto/nope")
        assert response.status_code == 404
        assert response.json() == {"error": 'Cryptocurrency with ID "nope" not found'}

    def test_malformed_upstream_is_500(self, client, fake_http):
        fake_http.routes["/coins/markets"] = MalformedResponse("Unexpected markets response")
        response = client.get("/api/crypto")
        assert response.status_code == 500
        assert response.json() == {"error": "Unexpected markets response"}


class TestNewsRoutes:
    def test_top_news(self, client, fake_http):
        fake_http.routes["/news"] = {"results": [{"title": "Bitcoin climbs"}]}
        response = client.get("/api/news")
        assert response.status_code == 200
        assert response.json()[0]["title"] == "Bitcoin climbs"

    def test_search(self, client, fake_http):
        fake_http.routes["/news"] = {"results": [{"title": "ETH upgrade"}]}
        response = client.get("/api/news/search", params={"query": "ethereum", "size": 2})
        assert response.status_code == 200
        assert response.json()[0]["sentiment"] == "neutral"
        assert fake_http.calls[0][1]["size"] == 2

    @pytest.mark.parametrize("params", [{}, {"query": ""}, {"query": "  "}])
    def test_empty_query_is_400_without_upstream_call(self, client, fake_http, params):
        response = client.get("/api/news/search", params=params)
        assert response.status_code == 400
        assert response.json() == {"error": "Query parameter is required"}
        assert fake_http.calls == []


class TestAppWiring:
    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "ok"
        assert body["stream_state"] == "disabled"
        assert body["stream_live"] is False

    def test_prices_endpoint_mounted(self, client):
        response = client.get("/api/prices")
        assert response.status_code == 200
        assert response.json() == {"stream_live": False, "prices": {}}

    def test_lifespan_runs_pipeline(self, fake_http):
        fake_http.routes["/simple/price"] = {
            "bitcoin": {"usd": 50000, "usd_24h_change": 1.0, "last_updated_at": 100},
            "ethereum": {"usd": 3000, "usd_24h_change": 0.5, "last_updated_at": 100},
            "dogecoin": {"usd": 0.08, "usd_24h_change": -1.0, "last_updated_at": 100},
        }
        app = create_app(SETTINGS, http=fake_http)
        with TestClient(app) as client:
            prices = client.get("/api/prices").json()["prices"]
        assert prices["BTCUSDT"]["price"] == 50000
        assert set(prices) == {"BTCUSDT", "ETHUSDT", "DOGEUSDT"}
