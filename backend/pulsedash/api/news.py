"""Crypto news endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query

from ..services.news import NewsService


def create_news_router(service: NewsService) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["news"])

    @router.get("/news")
    async def top_news() -> list[dict]:
        return await service.top()

    @router.get("/news/search")
    async def search_news(
        query: str | None = Query(None),
        size: int = Query(10),
        language: str = Query("en"),
    ) -> list[dict]:
        return await service.search(query, size=size, language=language)

    return router
