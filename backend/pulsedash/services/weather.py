"""OpenWeather proxy: current conditions, forecast and air quality."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..errors import MalformedResponse, NotFound, UpstreamUnavailable
from ..market.cache import ResponseCache, TTLClass, make_key
from ..upstream import HttpClient

logger = logging.getLogger(__name__)

# Cities shown on the dashboard overview
CITIES: list[str] = ["New York", "London", "Tokyo"]


def city_slug(city: str) -> str:
    return city.strip().lower().replace(" ", "-")


class WeatherService:
    def __init__(self, http: HttpClient, cache: ResponseCache, base_url: str, api_key: str) -> None:
        self._http = http
        self._cache = cache
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key

    async def current(self, city_id: str) -> dict:
        """Current conditions for one city."""
        city = city_id.strip()
        return await self._cache.get_or_fetch(
            make_key("/weather", {"city": city.lower()}),
            TTLClass.LIVE,
            lambda: self._fetch_current(city),
        )

    async def current_all(self) -> list[dict]:
        """Current conditions for every overview city, fetched concurrently."""
        return list(await asyncio.gather(*(self.current(city) for city in CITIES)))

    async def history(self, city_id: str) -> dict:
        """Current conditions plus the 5-day / 3-hour forecast."""
        city = city_id.strip()
        return await self._cache.get_or_fetch(
            make_key("/weather/history", {"city": city.lower()}),
            TTLClass.HISTORICAL,
            lambda: self._fetch_history(city),
        )

    async def air_pollution(self, city_id: str) -> dict:
        """Air quality index (1-5) and pollutant concentrations."""
        city = city_id.strip()
        return await self._cache.get_or_fetch(
            make_key("/air_pollution", {"city": city.lower()}),
            TTLClass.LIVE,
            lambda: self._fetch_air_pollution(city),
        )

    # --- Upstream calls ---

    async def _get(self, path: str, **params: Any) -> Any:
        if not self._api_key:
            raise UpstreamUnavailable("Weather provider API key (OPENWEATHER_API_KEY) is not configured")
        return await self._http.get_json(f"{self._base_url}{path}", params={**params, "appid": self._api_key})

    async def _raw_current(self, city: str) -> Any:
        if not city:
            raise NotFound("City not found")
        try:
            return await self._get("/data/2.5/weather", q=city, units="metric")
        except NotFound as e:
            raise NotFound(f'City "{city}" not found') from e

    async def _fetch_current(self, city: str) -> dict:
        data = await self._raw_current(city)
        try:
            return {
                "id": city_slug(city),
                "name": city,
                "temp": data["main"]["temp"],
                "humidity": data["main"]["humidity"],
                "pressure": data["main"]["pressure"],
                "condition": data["weather"][0]["main"],
                "icon": data["weather"][0]["icon"],
                "windSpeed": data["wind"]["speed"],
                "windDirection": data["wind"].get("deg"),
                "sunrise": data["sys"]["sunrise"],
                "sunset": data["sys"]["sunset"],
                "lon": data["coord"]["lon"],
                "lat": data["coord"]["lat"],
                "minTemp": data["main"]["temp_min"],
                "maxTemp": data["main"]["temp_max"],
            }
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise MalformedResponse(f"Unexpected weather response for {city!r}: missing {e}") from e

    async def _fetch_history(self, city: str) -> dict:
        current = await self._raw_current(city)
        try:
            lat, lon = current["coord"]["lat"], current["coord"]["lon"]
        except (KeyError, TypeError) as e:
            raise MalformedResponse(f"Unexpected weather response for {city!r}: missing {e}") from e

        forecast = await self._get("/data/2.5/forecast", lat=lat, lon=lon, units="metric")
        try:
            return {
                "id": city_slug(city),
                "name": current["name"],
                "current": {
                    "temp": current["main"]["temp"],
                    "humidity": current["main"]["humidity"],
                    "condition": current["weather"][0]["main"],
                    "icon": current["weather"][0]["icon"],
                    "windSpeed": current["wind"]["speed"],
                },
                "forecast": [
                    {
                        "date": entry["dt"] * 1000,  # Milliseconds for JS Date
                        "temp": entry["main"]["temp"],
                        "humidity": entry["main"]["humidity"],
                        "condition": entry["weather"][0]["main"],
                    }
                    for entry in forecast["list"]
                ],
            }
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise MalformedResponse(f"Unexpected forecast response for {city!r}: missing {e}") from e

    async def _fetch_air_pollution(self, city: str) -> dict:
        if not city:
            raise NotFound("City not found")
        places = await self._get("/geo/1.0/direct", q=city, limit=1)
        if not isinstance(places, list):
            raise MalformedResponse("Unexpected geocoding response")
        if not places:
            raise NotFound(f'City "{city}" not found')
        try:
            lat, lon = places[0]["lat"], places[0]["lon"]
        except (KeyError, TypeError) as e:
            raise MalformedResponse(f"Unexpected geocoding response: missing {e}") from e

        pollution = await self._get("/data/2.5/air_pollution", lat=lat, lon=lon)
        try:
            details = pollution["list"][0]
            return {
                "city": city,
                "aqi": details["main"]["aqi"],
                "components": details["components"],
            }
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponse(f"Unexpected air pollution response for {city!r}: missing {e}") from e
