"""Merges snapshot and stream prices into one authoritative per-symbol state."""

from __future__ import annotations

import logging
import math
from threading import Lock
from typing import Any, Callable, Mapping

from .models import InstrumentPrice, PriceTick, SignificantMove, Source

logger = logging.getLogger(__name__)

# (event_name, payload) where event_name is "price_update" or "price_alert"
Listener = Callable[[str, Any], None]


class Reconciler:
    """Authoritative current price per symbol.

    Writers: SnapshotPoller (apply_snapshot) and StreamClient (apply_tick).
    Readers: /api/prices, the SSE stream and the browser websocket.

    Precedence:
      - a snapshot fills unknown symbols and refreshes older snapshot values,
        but never replaces a live stream value;
      - a tick replaces snapshot values and older stream values;
      - once the stream is marked stale, snapshots replace stream values too,
        so consumers fall back to polled data.
    """

    def __init__(self, alert_threshold: float = 0.005) -> None:
        self._prices: dict[str, InstrumentPrice] = {}
        self._stream_times: dict[str, float] = {}  # Last accepted tick event_time per symbol
        self._lock = Lock()
        self._version: int = 0  # Bumped on every accepted change
        self._alert_threshold = alert_threshold
        self._stream_live = True
        self._stale_reason: str | None = None
        self._listeners: list[Listener] = []

    # --- Writers ---

    def apply_snapshot(self, prices: Mapping[str, InstrumentPrice]) -> list[InstrumentPrice]:
        """Merge a snapshot. Returns the records that were actually written."""
        written: list[InstrumentPrice] = []
        with self._lock:
            for symbol, incoming in prices.items():
                current = self._prices.get(symbol)
                if current is not None and current.source is Source.STREAM and self._stream_live:
                    continue
                if current is None:
                    record = InstrumentPrice(
                        symbol=symbol,
                        price=incoming.price,
                        previous_price=incoming.previous_price,
                        percent_change_24h=incoming.percent_change_24h,
                        last_updated=incoming.last_updated,
                        source=Source.SNAPSHOT,
                    )
                else:
                    record = InstrumentPrice(
                        symbol=symbol,
                        price=incoming.price,
                        previous_price=current.price,
                        percent_change_24h=incoming.percent_change_24h,
                        last_updated=max(current.last_updated, incoming.last_updated),
                        source=Source.SNAPSHOT,
                    )
                self._prices[symbol] = record
                written.append(record)
            if written:
                self._version += 1

        if written:
            logger.debug("Snapshot applied: %d/%d symbols written", len(written), len(prices))
        for record in written:
            self._notify("price_update", record)
        return written

    def apply_tick(self, tick: PriceTick) -> SignificantMove | None:
        """Apply one stream tick. Returns a SignificantMove when the move crosses the threshold."""
        if not math.isfinite(tick.price) or tick.price <= 0:
            logger.warning("Rejected tick for %s: invalid price %r", tick.symbol, tick.price)
            return None

        move: SignificantMove | None = None
        with self._lock:
            current = self._prices.get(tick.symbol)
            last_event = self._stream_times.get(tick.symbol)
            # Ordering is judged against the feed's own clock, not snapshot timestamps.
            if (
                current is not None
                and current.source is Source.STREAM
                and last_event is not None
                and tick.event_time <= last_event
            ):
                logger.debug(
                    "Ignored out-of-order tick for %s (%.3f <= %.3f)",
                    tick.symbol,
                    tick.event_time,
                    last_event,
                )
                return None

            previous = current.price if current else None
            change_24h = tick.percent_change_24h
            if change_24h is None and current is not None:
                change_24h = current.percent_change_24h

            record = InstrumentPrice(
                symbol=tick.symbol,
                price=tick.price,
                previous_price=previous,
                percent_change_24h=change_24h,
                last_updated=max(current.last_updated, tick.event_time) if current else tick.event_time,
                source=Source.STREAM,
            )
            self._prices[tick.symbol] = record
            self._stream_times[tick.symbol] = tick.event_time
            self._version += 1

            # No baseline on the first price for a symbol: nothing to compare against.
            if previous is not None and abs(tick.price - previous) / previous >= self._alert_threshold:
                move = SignificantMove(symbol=tick.symbol, price=tick.price, previous_price=previous)

        self._notify("price_update", record)
        if move is not None:
            logger.info(
                "Significant move on %s: %.2f -> %.2f (%.2f%%)",
                move.symbol,
                move.previous_price,
                move.price,
                move.change_percent,
            )
            self._notify("price_alert", move)
        return move

    # --- Stream health ---

    def mark_stream_stale(self, reason: Exception | str | None = None) -> None:
        """Stream gave up: let the next snapshot replace stream values."""
        with self._lock:
            self._stream_live = False
            self._stale_reason = str(reason) if reason else "stream unavailable"
        logger.warning("Streaming data marked stale: %s", self._stale_reason)

    def mark_stream_live(self) -> None:
        with self._lock:
            was_stale = not self._stream_live
            self._stream_live = True
            self._stale_reason = None
        if was_stale:
            logger.info("Streaming data live again")

    @property
    def stream_live(self) -> bool:
        return self._stream_live

    @property
    def stale_reason(self) -> str | None:
        return self._stale_reason

    @property
    def alert_threshold(self) -> float:
        return self._alert_threshold

    # --- Readers ---

    def current(self) -> dict[str, InstrumentPrice]:
        """Snapshot of all current prices. Returns a shallow copy."""
        with self._lock:
            return dict(self._prices)

    def get(self, symbol: str) -> InstrumentPrice | None:
        with self._lock:
            return self._prices.get(symbol)

    @property
    def version(self) -> int:
        """Current version counter. Useful for SSE change detection."""
        return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._prices)

    def __contains__(self, symbol: str) -> bool:
        with self._lock:
            return symbol in self._prices

    # --- Listeners ---

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: str, payload: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception:
                logger.exception("Price listener failed for %s", event)
