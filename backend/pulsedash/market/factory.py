"""Factory for wiring the price pipeline from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import Settings
from ..upstream import HttpClient
from .cache import ResponseCache
from .events import PriceEventHub
from .instruments import TRACKED_SYMBOLS, subscription_set
from .interface import FeedTransport
from .reconciler import Reconciler
from .snapshot import SnapshotFetcher, SnapshotPoller
from .stream_client import ReconnectPolicy, StreamClient

logger = logging.getLogger(__name__)


@dataclass
class PricePipeline:
    """Everything that keeps the reconciled price view current."""

    reconciler: Reconciler
    hub: PriceEventHub
    fetcher: SnapshotFetcher
    poller: SnapshotPoller
    stream: StreamClient | None = None

    async def start(self) -> None:
        # Seed from a snapshot first so the stream only ever refines known state.
        await self.poller.start()
        if self.stream is not None:
            await self.stream.start()

    async def stop(self) -> None:
        if self.stream is not None:
            await self.stream.stop()
        await self.poller.stop()


def create_price_pipeline(
    settings: Settings,
    http: HttpClient,
    cache: ResponseCache,
    symbols: list[str] | None = None,
    transport: FeedTransport | None = None,
) -> PricePipeline:
    """Create the price pipeline based on settings.

    - PRICE_STREAM_URL set and non-empty -> snapshot poller + streaming client
    - Otherwise -> snapshot poller only (degraded, pull-based mode)

    Returns an unstarted pipeline. Caller must await pipeline.start().
    """
    symbols = list(symbols or TRACKED_SYMBOLS)
    reconciler = Reconciler(alert_threshold=settings.alert_threshold)
    hub = PriceEventHub()
    reconciler.add_listener(hub)

    fetcher = SnapshotFetcher(http=http, cache=cache, base_url=settings.coingecko_base_url)
    poller = SnapshotPoller(
        fetcher=fetcher,
        reconciler=reconciler,
        symbols=symbols,
        interval=settings.snapshot_interval,
    )

    stream: StreamClient | None = None
    if settings.stream_enabled:
        stream = StreamClient(
            url=settings.price_stream_url,
            subscriptions=subscription_set(symbols),
            reconciler=reconciler,
            transport=transport,
            policy=ReconnectPolicy(
                base_delay=settings.reconnect_base_delay,
                max_delay=settings.reconnect_max_delay,
                max_attempts=settings.reconnect_max_attempts,
            ),
        )
        logger.info("Price pipeline: snapshot + stream (%s)", settings.price_stream_url)
    else:
        reconciler.mark_stream_stale("streaming disabled")
        logger.info("Price pipeline: snapshot only")

    return PricePipeline(reconciler=reconciler, hub=hub, fetcher=fetcher, poller=poller, stream=stream)
