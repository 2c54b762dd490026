"""Upstream proxy services that shape third-party JSON for the dashboard."""

from .crypto import CryptoService
from .news import NewsService
from .weather import WeatherService

__all__ = ["CryptoService", "NewsService", "WeatherService"]
