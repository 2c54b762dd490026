"""Pytest configuration and fixtures."""

from typing import Any

import pytest

from pulsedash.market.cache import ResponseCache


@pytest.fixture
def event_loop_policy():
    """Use the default event loop policy for all async tests."""
    import asyncio

    return asyncio.DefaultEventLoopPolicy()


class FakeHttp:
    """Stands in for UpstreamClient: canned JSON (or exceptions) keyed by URL suffix."""

    def __init__(self) -> None:
        self.routes: dict[str, Any] = {}
        self.calls: list[tuple[str, dict]] = []

    async def get_json(self, url: str, params=None) -> Any:
        self.calls.append((url, dict(params or {})))
        for suffix in sorted(self.routes, key=len, reverse=True):
            if url.endswith(suffix):
                response = self.routes[suffix]
                if isinstance(response, BaseException):
                    raise response
                if callable(response):
                    return response(url, dict(params or {}))
                return response
        raise AssertionError(f"Unexpected upstream call: {url}")

    def calls_to(self, suffix: str) -> list[dict]:
        return [params for url, params in self.calls if url.endswith(suffix)]


@pytest.fixture
def fake_http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture
def cache() -> ResponseCache:
    return ResponseCache()
