"""Tests for NewsService (fake upstream)."""

import pytest

from pulsedash.errors import InvalidRequest, MalformedResponse, UpstreamUnavailable
from pulsedash.services.news import TOP_NEWS_QUERY, NewsService

BASE_URL = "https://news.test/api/1"

ARTICLE = {
    "title": "Bitcoin climbs",
    "description": "Prices rose overnight.",
    "source_id": "coindesk",
    "link": "https://news.test/a",
    "pubDate": "2024-02-10 16:00:00",
    "image_url": None,
    "keywords": ["bitcoin"],
}


@pytest.fixture
def service(fake_http, cache) -> NewsService:
    return NewsService(fake_http, cache, base_url=BASE_URL, api_key="news-key")


@pytest.mark.asyncio
class TestTopNews:
    async def test_shapes_articles(self, service, fake_http):
        fake_http.routes["/news"] = {"status": "success", "results": [ARTICLE]}

        result = await service.top()

        assert result == [
            {
                "title": "Bitcoin climbs",
                "description": "Prices rose overnight.",
                "source": "coindesk",
                "url": "https://news.test/a",
                "publishedAt": "2024-02-10 16:00:00",
                "image": None,
            }
        ]
        url, params = fake_http.calls[0]
        assert url == f"{BASE_URL}/news"
        assert params["q"] == TOP_NEWS_QUERY
        assert params["size"] == 5
        assert params["apikey"] == "news-key"

    async def test_cached(self, service, fake_http):
        fake_http.routes["/news"] = {"results": []}
        await service.top()
        await service.top()
        assert len(fake_http.calls) == 1

    async def test_malformed(self, service, fake_http):
        fake_http.routes["/news"] = {"status": "error"}
        with pytest.raises(MalformedResponse):
            await service.top()


@pytest.mark.asyncio
class TestSearch:
    async def test_adds_keywords_and_sentiment(self, service, fake_http):
        fake_http.routes["/news"] = {"results": [ARTICLE, {**ARTICLE, "keywords": None, "sentiment": "positive"}]}

        result = await service.search("bitcoin", size=3, language="de")

        assert result[0]["keywords"] == ["bitcoin"]
        assert result[0]["sentiment"] == "neutral"
        assert result[1]["keywords"] == []
        assert result[1]["sentiment"] == "positive"
        params = fake_http.calls[0][1]
        assert params["q"] == "bitcoin"
        assert params["size"] == 3
        assert params["language"] == "de"
        assert params["category"] == "business"

    @pytest.mark.parametrize("query", [None, "", "   "])
    async def test_blank_query_rejected_before_upstream(self, service, fake_http, query):
        with pytest.raises(InvalidRequest):
            await service.search(query)
        assert fake_http.calls == []

    async def test_invalid_size(self, service):
        with pytest.raises(InvalidRequest):
            await service.search("bitcoin", size=0)

    async def test_missing_api_key(self, fake_http, cache):
        service = NewsService(fake_http, cache, base_url=BASE_URL, api_key="")
        with pytest.raises(UpstreamUnavailable):
            await service.search("bitcoin")
        assert fake_http.calls == []
