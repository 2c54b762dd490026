"""CoinGecko REST snapshots: cold-start seed and periodic correctness backstop."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Any, Iterable

from ..errors import MalformedResponse, NotFound, PulseDashError
from ..upstream import HttpClient
from .cache import ResponseCache, TTLClass, make_key
from .instruments import INSTRUMENTS, normalize_symbol
from .models import InstrumentPrice, Source
from .reconciler import Reconciler

logger = logging.getLogger(__name__)

SIMPLE_PRICE_PATH = "/simple/price"


class SnapshotFetcher:
    """Pulls full price state for a set of instruments in a single API call.

    GET /simple/price?ids=bitcoin,ethereum&vs_currencies=usd&include_24hr_change=true
    answers {"bitcoin": {"usd": 50000, "usd_24h_change": 1.2, "last_updated_at": 1700000000}, ...}
    """

    def __init__(self, http: HttpClient, cache: ResponseCache, base_url: str) -> None:
        self._http = http
        self._cache = cache
        self._base_url = base_url.rstrip("/")

    async def fetch_snapshot(self, symbols: Iterable[str]) -> dict[str, InstrumentPrice]:
        wanted = sorted({normalize_symbol(s) for s in symbols})
        if not wanted:
            return {}
        unknown = [s for s in wanted if s not in INSTRUMENTS]
        if unknown:
            raise NotFound(f"Unknown instrument(s): {', '.join(unknown)}")

        coin_ids = [INSTRUMENTS[s] for s in wanted]
        params = {
            "ids": ",".join(coin_ids),
            "vs_currencies": "usd",
            "include_24hr_change": "true",
            "include_last_updated_at": "true",
        }
        url = f"{self._base_url}{SIMPLE_PRICE_PATH}"
        payload = await self._http.get_json(url, params=params)

        prices = _parse_simple_price(payload, wanted)
        # Refresh the shared cache so on-demand readers of the same signature skip upstream.
        self._cache.put(make_key(SIMPLE_PRICE_PATH, params), payload, TTLClass.LIVE)
        return prices


def _parse_simple_price(payload: Any, symbols: list[str]) -> dict[str, InstrumentPrice]:
    if not isinstance(payload, dict):
        raise MalformedResponse("Snapshot response is not a JSON object")

    prices: dict[str, InstrumentPrice] = {}
    for symbol in symbols:
        coin_id = INSTRUMENTS[symbol]
        values = payload.get(coin_id)
        if not isinstance(values, dict):
            raise MalformedResponse(f"Snapshot response is missing {coin_id!r}")
        price = values.get("usd")
        if isinstance(price, bool) or not isinstance(price, (int, float)) or not math.isfinite(price):
            raise MalformedResponse(f"Snapshot response has no usable USD price for {coin_id!r}")

        change = values.get("usd_24h_change")
        updated_at = values.get("last_updated_at")
        prices[symbol] = InstrumentPrice(
            symbol=symbol,
            price=float(price),
            previous_price=None,
            percent_change_24h=float(change) if isinstance(change, (int, float)) else None,
            last_updated=float(updated_at) if isinstance(updated_at, (int, float)) else time.time(),
            source=Source.SNAPSHOT,
        )
    return prices


class SnapshotPoller:
    """Seeds the Reconciler on start, then refreshes it every `interval` seconds.

    Runs independently of stream health: it is the only way ticks lost
    across reconnects get corrected.
    """

    def __init__(
        self,
        fetcher: SnapshotFetcher,
        reconciler: Reconciler,
        symbols: list[str],
        interval: float = 300.0,
    ) -> None:
        self._fetcher = fetcher
        self._reconciler = reconciler
        self._symbols = [normalize_symbol(s) for s in symbols]
        self._interval = interval
        self._task: asyncio.Task | None = None
        self.last_error: PulseDashError | None = None

    async def start(self) -> None:
        if self._task and not self._task.done():
            logger.warning("Snapshot poller already running")
            return

        # Do an immediate first poll so the reconciler has data right away
        await self.poll_once()

        self._task = asyncio.create_task(self._poll_loop(), name="snapshot-poller")
        logger.info(
            "Snapshot poller started: %d symbols, %.1fs interval",
            len(self._symbols),
            self._interval,
        )

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Snapshot poller stopped")

    def get_symbols(self) -> list[str]:
        return list(self._symbols)

    async def _poll_loop(self) -> None:
        """Poll on interval. First poll already happened in start()."""
        while True:
            await asyncio.sleep(self._interval)
            await self.poll_once()

    async def poll_once(self) -> None:
        """Execute one poll cycle: fetch a snapshot, merge it into the reconciler."""
        if not self._symbols:
            return
        try:
            prices = await self._fetcher.fetch_snapshot(self._symbols)
        except PulseDashError as e:
            # Don't re-raise: the loop retries on the next interval.
            self.last_error = e
            logger.error("Snapshot poll failed: %s", e)
            return
        self.last_error = None
        written = self._reconciler.apply_snapshot(prices)
        logger.debug("Snapshot poll: wrote %d/%d symbols", len(written), len(prices))
