"""HTTP proxy routers."""

from .crypto import create_crypto_router
from .news import create_news_router
from .weather import create_weather_router

__all__ = ["create_crypto_router", "create_news_router", "create_weather_router"]
