"""Data models for reconciled market data."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum

from .instruments import coin_id_for


class Source(str, Enum):
    """Where the current value for a symbol came from."""

    SNAPSHOT = "snapshot"
    STREAM = "stream"


@dataclass(frozen=True, slots=True)
class InstrumentPrice:
    """Reconciled price of a single instrument at a point in time."""

    symbol: str
    price: float
    previous_price: float | None = None
    percent_change_24h: float | None = None
    last_updated: float = field(default_factory=time.time)  # Unix seconds
    source: Source = Source.SNAPSHOT

    @property
    def change(self) -> float:
        """Absolute price change from the previous value (0 without a baseline)."""
        if self.previous_price is None:
            return 0.0
        return round(self.price - self.previous_price, 8)

    @property
    def change_percent(self) -> float:
        """Percentage change from the previous value."""
        if not self.previous_price:
            return 0.0
        return round((self.price - self.previous_price) / self.previous_price * 100, 4)

    @property
    def direction(self) -> str:
        """'up', 'down', or 'flat'."""
        if self.previous_price is None or self.price == self.previous_price:
            return "flat"
        return "up" if self.price > self.previous_price else "down"

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission."""
        return {
            "symbol": self.symbol,
            "crypto": coin_id_for(self.symbol),
            "price": self.price,
            "previous_price": self.previous_price,
            "percent_change_24h": self.percent_change_24h,
            "last_updated": self.last_updated,
            "source": self.source.value,
            "change": self.change,
            "change_percent": self.change_percent,
            "direction": self.direction,
        }

    def to_update_event(self) -> dict:
        """Browser `price_update` payload."""
        return {
            "type": "price_update",
            "crypto": coin_id_for(self.symbol),
            "symbol": self.symbol,
            "price": self.price,
            "change_24h": self.percent_change_24h,
        }


@dataclass(frozen=True, slots=True)
class PriceTick:
    """One normalized push update from the stream."""

    symbol: str
    price: float
    percent_change_24h: float | None = None
    event_time: float = field(default_factory=time.time)  # Unix seconds


@dataclass(frozen=True, slots=True)
class SignificantMove:
    """A price change at or beyond the alert threshold since the last recorded price."""

    symbol: str
    price: float
    previous_price: float

    @property
    def change_percent(self) -> float:
        return (self.price - self.previous_price) / self.previous_price * 100

    def to_alert_event(self) -> dict:
        """Browser `price_alert` payload."""
        return {
            "type": "price_alert",
            "crypto": coin_id_for(self.symbol),
            "symbol": self.symbol,
            "price": self.price,
            "previous": self.previous_price,
            "change": f"{self.change_percent:.2f}",
        }
