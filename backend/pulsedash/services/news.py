"""newsdata.io proxy: top crypto headlines and keyword search."""

from __future__ import annotations

import logging
from typing import Any

from ..errors import InvalidRequest, MalformedResponse, UpstreamUnavailable
from ..market.cache import ResponseCache, TTLClass, make_key
from ..upstream import HttpClient

logger = logging.getLogger(__name__)

TOP_NEWS_QUERY = "cryptocurrency OR bitcoin OR ethereum OR crypto"
TOP_NEWS_SIZE = 5


def _shape_article(article: dict) -> dict:
    return {
        "title": article.get("title"),
        "description": article.get("description"),
        "source": article.get("source_id"),
        "url": article.get("link"),
        "publishedAt": article.get("pubDate"),
        "image": article.get("image_url"),
    }


def _articles(payload: Any) -> list[dict]:
    if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
        raise MalformedResponse("Unexpected news response")
    return [article for article in payload["results"] if isinstance(article, dict)]


class NewsService:
    def __init__(self, http: HttpClient, cache: ResponseCache, base_url: str, api_key: str) -> None:
        self._http = http
        self._cache = cache
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key

    async def top(self) -> list[dict]:
        return await self._cache.get_or_fetch(
            make_key("/news", {"q": TOP_NEWS_QUERY, "size": TOP_NEWS_SIZE}),
            TTLClass.CONTENT,
            self._fetch_top,
        )

    async def search(self, query: str | None, size: int = 10, language: str = "en") -> list[dict]:
        """Search articles. A blank query is rejected before any upstream call."""
        query = (query or "").strip()
        if not query:
            raise InvalidRequest("Query parameter is required")
        if size < 1:
            raise InvalidRequest("size must be a positive integer")
        language = (language or "en").strip() or "en"
        return await self._cache.get_or_fetch(
            make_key("/news/search", {"q": query, "size": size, "language": language}),
            TTLClass.CONTENT,
            lambda: self._fetch_search(query, size, language),
        )

    async def _get(self, **params: Any) -> Any:
        if not self._api_key:
            raise UpstreamUnavailable("News provider API key (NEWSDATA_API_KEY) is not configured")
        return await self._http.get_json(f"{self._base_url}/news", params={"apikey": self._api_key, **params})

    async def _fetch_top(self) -> list[dict]:
        payload = await self._get(q=TOP_NEWS_QUERY, language="en", size=TOP_NEWS_SIZE)
        return [_shape_article(article) for article in _articles(payload)]

    async def _fetch_search(self, query: str, size: int, language: str) -> list[dict]:
        payload = await self._get(q=query, language=language, size=size, category="business")
        results = []
        for article in _articles(payload):
            shaped = _shape_article(article)
            shaped["keywords"] = article.get("keywords") or []
            # The provider's free tier has no sentiment; report neutral.
            shaped["sentiment"] = article.get("sentiment") or "neutral"
            results.append(shaped)
        return results
