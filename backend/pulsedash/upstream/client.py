"""aiohttp-backed JSON client shared by every upstream fetcher."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Protocol

import aiohttp

from ..errors import MalformedResponse, NotFound, UpstreamUnavailable

logger = logging.getLogger(__name__)


class HttpClient(Protocol):
    """What fetchers need from an HTTP client. Tests substitute a fake."""

    async def get_json(self, url: str, params: Mapping[str, Any] | None = None) -> Any: ...


class UpstreamClient:
    """GET-and-decode JSON with a bounded request time.

    Failures are translated into the error taxonomy:
      - connection errors, timeouts, non-2xx   -> UpstreamUnavailable
      - 404                                    -> NotFound
      - body that is not JSON                  -> MalformedResponse

    The session is created lazily so the client can be built outside a
    running event loop and closed from the application lifespan.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def get_json(self, url: str, params: Mapping[str, Any] | None = None) -> Any:
        session = self._ensure_session()
        try:
            async with session.get(url, params=_clean_params(params), timeout=self._timeout) as resp:
                if resp.status == 404:
                    raise NotFound(f"Upstream resource not found: {_describe(url)}")
                if resp.status >= 400:
                    raise UpstreamUnavailable(f"Upstream API error: {resp.status} ({_describe(url)})")
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise MalformedResponse(f"Upstream returned invalid JSON ({_describe(url)})") from e
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailable(f"Upstream request timed out ({_describe(url)})") from e
        except aiohttp.ClientError as e:
            raise UpstreamUnavailable(f"Upstream request failed ({_describe(url)}): {e}") from e

    async def close(self) -> None:
        """Close the underlying session if this client created it. Safe to call twice."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session


def _clean_params(params: Mapping[str, Any] | None) -> dict[str, str] | None:
    """Drop None values and stringify the rest (aiohttp rejects bools and floats)."""
    if not params:
        return None
    cleaned: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            cleaned[key] = "true" if value else "false"
        else:
            cleaned[key] = str(value)
    return cleaned


def _describe(url: str) -> str:
    # Never echo query strings: they carry API keys.
    return url.split("?", 1)[0]
