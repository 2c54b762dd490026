"""Weather and air-quality endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from ..services.weather import WeatherService


def create_weather_router(service: WeatherService) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["weather"])

    @router.get("/weather")
    async def all_cities() -> list[dict]:
        return await service.current_all()

    @router.get("/weather/history/{city_id}")
    async def city_history(city_id: str) -> dict:
        return await service.history(city_id)

    @router.get("/weather/{city_id}")
    async def city_weather(city_id: str) -> dict:
        return await service.current(city_id)

    @router.get("/air_pollution/{city_id}")
    async def air_pollution(city_id: str) -> dict:
        return await service.air_pollution(city_id)

    return router
