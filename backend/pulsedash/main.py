"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import create_crypto_router, create_news_router, create_weather_router
from .config import Settings, load_settings
from .errors import install_error_handlers
from .market import ResponseCache, create_price_pipeline, create_stream_router
from .market.interface import FeedTransport
from .services import CryptoService, NewsService, WeatherService
from .upstream import HttpClient, UpstreamClient

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    http: HttpClient | None = None,
    transport: FeedTransport | None = None,
    start_pipeline: bool = True,
) -> FastAPI:
    """Build the application.

    One ResponseCache and one HTTP client are shared by every fetcher. The
    price pipeline (snapshot poller + stream client) is started and stopped
    with the application lifespan; pass start_pipeline=False to serve the
    proxy endpoints without background tasks.
    """
    settings = settings or load_settings()
    owns_http = http is None
    http_client: HttpClient = http or UpstreamClient(timeout=settings.request_timeout)
    cache = ResponseCache()
    pipeline = create_price_pipeline(settings, http_client, cache, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if start_pipeline:
            await pipeline.start()
        try:
            yield
        finally:
            if start_pipeline:
                await pipeline.stop()
            if owns_http:
                await http_client.close()
            logger.info("PulseDash shut down")

    app = FastAPI(title="PulseDash", lifespan=lifespan)
    app.state.settings = settings
    app.state.cache = cache
    app.state.pipeline = pipeline
    install_error_handlers(app)

    app.include_router(
        create_weather_router(
            WeatherService(
                http_client,
                cache,
                base_url=settings.openweather_base_url,
                api_key=settings.openweather_api_key,
            )
        )
    )
    app.include_router(create_crypto_router(CryptoService(http_client, cache, base_url=settings.coingecko_base_url)))
    app.include_router(
        create_news_router(
            NewsService(
                http_client,
                cache,
                base_url=settings.newsdata_base_url,
                api_key=settings.newsdata_api_key,
            )
        )
    )
    app.include_router(create_stream_router(pipeline.reconciler, pipeline.hub))

    @app.get("/api/health")
    async def health() -> dict:
        stream = pipeline.stream
        return {
            "status": "ok",
            "stream_state": stream.state.value if stream else "disabled",
            "stream_live": pipeline.reconciler.stream_live,
            "tracked": pipeline.poller.get_symbols(),
        }

    return app
