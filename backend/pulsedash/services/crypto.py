"""CoinGecko proxy: market summaries, coin detail, price history and chart data."""

from __future__ import annotations

import logging
from typing import Any

from ..errors import InvalidRequest, MalformedResponse, NotFound
from ..market.cache import ResponseCache, TTLClass, make_key
from ..market.instruments import MARKET_SUMMARY_COINS
from ..upstream import HttpClient

logger = logging.getLogger(__name__)

SUMMARY_FIELDS = (
    "id",
    "symbol",
    "name",
    "current_price",
    "high_24h",
    "low_24h",
    "price_change_percentage_24h",
    "price_change_percentage_7d",
    "market_cap",
    "image",
    "last_updated",
)


def _usd(block: dict, name: str) -> Any:
    value = block.get(name)
    if isinstance(value, dict):
        return value.get("usd")
    return value


def _first(values: Any) -> Any:
    if isinstance(values, list) and values:
        return values[0]
    return None


class CryptoService:
    def __init__(self, http: HttpClient, cache: ResponseCache, base_url: str) -> None:
        self._http = http
        self._cache = cache
        self._base_url = base_url.rstrip("/")

    async def markets(self) -> list[dict]:
        """Market summaries for the dashboard's instrument list."""
        return await self._cache.get_or_fetch(
            make_key("/crypto", {"ids": ",".join(MARKET_SUMMARY_COINS)}),
            TTLClass.LIVE,
            self._fetch_markets,
        )

    async def detail(self, crypto_id: str) -> dict:
        crypto_id = _require_id(crypto_id)
        return await self._cache.get_or_fetch(
            make_key("/crypto/detail", {"id": crypto_id}),
            TTLClass.LIVE,
            lambda: self._fetch_detail(crypto_id),
        )

    async def history(self, crypto_id: str, days: int = 7) -> dict:
        """Price, market-cap and volume series reshaped into chart points."""
        crypto_id = _require_id(crypto_id)
        days = _require_days(days)
        return await self._cache.get_or_fetch(
            make_key("/crypto/history", {"id": crypto_id, "days": days}),
            TTLClass.HISTORICAL,
            lambda: self._fetch_history(crypto_id, days),
        )

    async def chart(self, crypto_id: str = "bitcoin", days: int = 7) -> Any:
        """Upstream market_chart payload, passed through unchanged."""
        crypto_id = _require_id(crypto_id)
        days = _require_days(days)
        return await self._cache.get_or_fetch(
            make_key("/crypto/chart", {"id": crypto_id, "days": days}),
            TTLClass.HISTORICAL,
            lambda: self._market_chart(crypto_id, days),
        )

    # --- Upstream calls ---

    async def _fetch_markets(self) -> list[dict]:
        data = await self._http.get_json(
            f"{self._base_url}/coins/markets",
            params={
                "vs_currency": "usd",
                "ids": ",".join(MARKET_SUMMARY_COINS),
                "order": "market_cap_desc",
                "per_page": 100,
                "page": 1,
                "sparkline": "false",
                "price_change_percentage": "24h,7d",
            },
        )
        if not isinstance(data, list):
            raise MalformedResponse("Unexpected markets response")
        summaries = []
        for coin in data:
            if not isinstance(coin, dict) or "id" not in coin:
                raise MalformedResponse("Unexpected coin entry in markets response")
            summary = {name: coin.get(name) for name in SUMMARY_FIELDS}
            if summary["price_change_percentage_7d"] is None:
                summary["price_change_percentage_7d"] = coin.get("price_change_percentage_7d_in_currency")
            summaries.append(summary)
        return summaries

    async def _fetch_detail(self, crypto_id: str) -> dict:
        try:
            data = await self._http.get_json(
                f"{self._base_url}/coins/{crypto_id}",
                params={
                    "localization": "false",
                    "tickers": "false",
                    "market_data": "true",
                    "community_data": "false",
                    "developer_data": "false",
                    "sparkline": "false",
                },
            )
        except NotFound as e:
            raise NotFound(f'Cryptocurrency with ID "{crypto_id}" not found') from e
        if not isinstance(data, dict) or "id" not in data:
            raise MalformedResponse(f"Unexpected detail response for {crypto_id!r}")

        market = data.get("market_data") or {}
        links = data.get("links") or {}
        return {
            "id": data["id"],
            "symbol": data.get("symbol"),
            "name": data.get("name"),
            "description": (data.get("description") or {}).get("en"),
            "hashing_algorithm": data.get("hashing_algorithm"),
            "image": (data.get("image") or {}).get("large"),
            "market_data": {
                "current_price": _usd(market, "current_price"),
                "market_cap": _usd(market, "market_cap"),
                "total_volume": _usd(market, "total_volume"),
                "high_24h": _usd(market, "high_24h"),
                "low_24h": _usd(market, "low_24h"),
                "price_change_24h": market.get("price_change_percentage_24h"),
                "price_change_7d": market.get("price_change_percentage_7d"),
                "price_change_30d": market.get("price_change_percentage_30d"),
                "price_change_percentage_24h": market.get("price_change_percentage_24h"),
                "price_change_percentage_7d": market.get("price_change_percentage_7d"),
                "price_change_percentage_30d": market.get("price_change_percentage_30d"),
                "price_change_percentage_1y": market.get("price_change_percentage_1y"),
            },
            "homepage": _first(links.get("homepage")),
            "genesis_date": data.get("genesis_date"),
            "sentiment_votes_up_percentage": data.get("sentiment_votes_up_percentage"),
            "sentiment_votes_down_percentage": data.get("sentiment_votes_down_percentage"),
            "blockchain_site": _first(links.get("blockchain_site")),
            "total_supply": market.get("total_supply"),
            "last_updated": data.get("last_updated"),
        }

    async def _market_chart(self, crypto_id: str, days: int) -> Any:
        try:
            return await self._http.get_json(
                f"{self._base_url}/coins/{crypto_id}/market_chart",
                params={"vs_currency": "usd", "days": days},
            )
        except NotFound as e:
            raise NotFound(f'Cryptocurrency with ID "{crypto_id}" not found') from e

    async def _fetch_history(self, crypto_id: str, days: int) -> dict:
        data = await self._market_chart(crypto_id, days)
        try:
            return {
                "id": crypto_id,
                "days": days,
                "prices": [{"timestamp": ts, "price": value} for ts, value in data["prices"]],
                "market_caps": [{"timestamp": ts, "market_cap": value} for ts, value in data["market_caps"]],
                "total_volumes": [{"timestamp": ts, "volume": value} for ts, value in data["total_volumes"]],
            }
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponse(f"Unexpected market chart response for {crypto_id!r}") from e


def _require_id(crypto_id: str) -> str:
    crypto_id = (crypto_id or "").strip().lower()
    if not crypto_id:
        raise InvalidRequest("cryptoId is required")
    return crypto_id


def _require_days(days: int) -> int:
    if days < 1:
        raise InvalidRequest("days must be a positive integer")
    return days
