"""Environment-driven configuration."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_STREAM_URL = "wss://stream.binance.com:9443/ws"
DEFAULT_OPENWEATHER_URL = "https://api.openweathermap.org"
DEFAULT_COINGECKO_URL = "https://api.coingecko.com/api/v3"
DEFAULT_NEWSDATA_URL = "https://newsdata.io/api/1"


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime settings. Build with load_settings() or construct directly in tests."""

    openweather_api_key: str = ""
    newsdata_api_key: str = ""
    openweather_base_url: str = DEFAULT_OPENWEATHER_URL
    coingecko_base_url: str = DEFAULT_COINGECKO_URL
    newsdata_base_url: str = DEFAULT_NEWSDATA_URL
    price_stream_url: str = DEFAULT_STREAM_URL  # Empty -> snapshot-only mode
    request_timeout: float = 10.0
    snapshot_interval: float = 300.0
    alert_threshold: float = 0.005  # Fraction, i.e. 0.5%
    reconnect_base_delay: float = 1.0
    reconnect_max_delay: float = 30.0
    reconnect_max_attempts: int = 5
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def stream_enabled(self) -> bool:
        return bool(self.price_stream_url)


def _env_str(name: str, default: str) -> str:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip()


def _env_number(name: str, default, cast=float):
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Invalid value for %s: %r (using default %r)", name, raw, default)
        return default


def load_settings() -> Settings:
    """Read settings from environment variables.

    API keys may be absent: the process still starts and the endpoints that
    need them report the upstream as unavailable.
    """
    return Settings(
        openweather_api_key=_env_str("OPENWEATHER_API_KEY", ""),
        newsdata_api_key=_env_str("NEWSDATA_API_KEY", ""),
        openweather_base_url=_env_str("OPENWEATHER_BASE_URL", DEFAULT_OPENWEATHER_URL),
        coingecko_base_url=_env_str("COINGECKO_BASE_URL", DEFAULT_COINGECKO_URL),
        newsdata_base_url=_env_str("NEWSDATA_BASE_URL", DEFAULT_NEWSDATA_URL),
        price_stream_url=_env_str("PRICE_STREAM_URL", DEFAULT_STREAM_URL),
        request_timeout=_env_number("REQUEST_TIMEOUT", 10.0),
        snapshot_interval=_env_number("SNAPSHOT_INTERVAL", 300.0),
        alert_threshold=_env_number("ALERT_THRESHOLD", 0.005),
        reconnect_base_delay=_env_number("RECONNECT_BASE_DELAY", 1.0),
        reconnect_max_delay=_env_number("RECONNECT_MAX_DELAY", 30.0),
        reconnect_max_attempts=_env_number("RECONNECT_MAX_ATTEMPTS", 5, cast=int),
        log_level=_env_str("LOG_LEVEL", "INFO").upper() or "INFO",
        host=_env_str("HOST", "0.0.0.0") or "0.0.0.0",
        port=_env_number("PORT", 8000, cast=int),
    )
