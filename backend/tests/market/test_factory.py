"""Tests for the price pipeline factory."""

from unittest.mock import AsyncMock

import pytest

from pulsedash.config import Settings
from pulsedash.market.factory import create_price_pipeline
from pulsedash.market.instruments import TRACKED_SYMBOLS
from pulsedash.market.models import PriceTick
from pulsedash.market.snapshot import SIMPLE_PRICE_PATH
from pulsedash.market.stream_client import StreamClient

from fakes import FakeConnection, FakeTransport


class TestFactory:
    """Tests for create_price_pipeline."""

    def test_snapshot_only_when_stream_url_empty(self, fake_http, cache):
        """Test that no streaming client is created without a stream URL."""
        pipeline = create_price_pipeline(Settings(price_stream_url=""), fake_http, cache)

        assert pipeline.stream is None
        assert not pipeline.reconciler.stream_live
        assert pipeline.reconciler.stale_reason == "streaming disabled"

    def test_stream_created_when_url_set(self, fake_http, cache, fake_transport):
        """Test that a streaming client is created when PRICE_STREAM_URL is set."""
        settings = Settings(price_stream_url="wss://feed.test/ws")
        pipeline = create_price_pipeline(settings, fake_http, cache, transport=fake_transport)

        assert isinstance(pipeline.stream, StreamClient)
        assert pipeline.reconciler.stream_live
        assert set(pipeline.stream.subscriptions) == set(TRACKED_SYMBOLS)

    def test_custom_symbols(self, fake_http, cache):
        pipeline = create_price_pipeline(
            Settings(price_stream_url="wss://feed.test/ws"), fake_http, cache, symbols=["solusdt"]
        )
        assert pipeline.poller.get_symbols() == ["SOLUSDT"]
        assert pipeline.stream.subscriptions == {"SOLUSDT": "solusdt@ticker"}

    def test_settings_flow_into_components(self, fake_http, cache):
        settings = Settings(
            price_stream_url="wss://feed.test/ws",
            alert_threshold=0.01,
            snapshot_interval=42.0,
            reconnect_max_attempts=2,
        )
        pipeline = create_price_pipeline(settings, fake_http, cache)

        assert pipeline.reconciler.alert_threshold == 0.01
        assert pipeline.poller._interval == 42.0
        assert pipeline.stream._policy.max_attempts == 2

    def test_hub_receives_reconciler_events(self, fake_http, cache):
        """Test that the event hub is registered as a reconciler listener."""
        pipeline = create_price_pipeline(Settings(price_stream_url=""), fake_http, cache)
        queue = pipeline.hub.subscribe()

        pipeline.reconciler.apply_tick(PriceTick(symbol="BTCUSDT", price=50000.0, event_time=1.0))

        message = queue.get_nowait()
        assert message["type"] == "price_update"
        assert message["symbol"] == "BTCUSDT"


@pytest.mark.asyncio
class TestPipelineLifecycle:
    async def test_start_seeds_before_streaming(self, fake_http, cache):
        fake_http.routes[SIMPLE_PRICE_PATH] = {
            "bitcoin": {"usd": 50000, "usd_24h_change": 1.0, "last_updated_at": 100},
        }
        conn = FakeConnection()
        settings = Settings(price_stream_url="wss://feed.test/ws")
        pipeline = create_price_pipeline(
            settings, fake_http, cache, symbols=["BTCUSDT"], transport=FakeTransport([conn])
        )

        await pipeline.start()
        assert pipeline.reconciler.get("BTCUSDT").price == 50000.0
        assert pipeline.stream.running

        await pipeline.stop()
        assert not pipeline.stream.running

    async def test_stop_order(self, fake_http, cache):
        """Stream stops before the poller."""
        pipeline = create_price_pipeline(Settings(price_stream_url="wss://feed.test/ws"), fake_http, cache)
        order = []
        pipeline.stream = AsyncMock(spec=StreamClient)
        pipeline.stream.stop.side_effect = lambda: order.append("stream")
        pipeline.poller = AsyncMock()
        pipeline.poller.stop.side_effect = lambda: order.append("poller")

        await pipeline.stop()

        assert order == ["stream", "poller"]
