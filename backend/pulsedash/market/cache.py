"""Thread-safe in-memory TTL cache for upstream responses."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any, Awaitable, Callable, Mapping

logger = logging.getLogger(__name__)


class TTLClass(float, Enum):
    """Named expiry durations, in seconds, per kind of cached payload."""

    LIVE = 60.0  # Live prices, coin detail, current weather
    HISTORICAL = 300.0  # Price history, chart data, forecasts
    CONTENT = 900.0  # News and news search


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    payload: Any
    stored_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.stored_at < self.ttl


def make_key(endpoint: str, params: Mapping[str, Any] | None = None) -> str:
    """Request signature: endpoint plus parameters, independent of parameter order."""
    if not params:
        return endpoint
    encoded = json.dumps(
        {k: v for k, v in params.items() if v is not None},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return f"{endpoint}?{encoded}"


class ResponseCache:
    """Short-TTL memoization of upstream JSON, shared by all fetchers.

    Expiry is lazy: stale entries are ignored on read and overwritten on the
    next put, never swept. Memory is therefore bounded only by the number of
    distinct request signatures.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = Lock()
        self._clock = clock

    def get(self, key: str) -> Any | None:
        """Return the cached payload, or None on a miss or an expired entry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not entry.is_fresh(self._clock()):
                return None
            return entry.payload

    def put(self, key: str, payload: Any, ttl_class: TTLClass | float = TTLClass.LIVE) -> CacheEntry:
        with self._lock:
            entry = CacheEntry(key=key, payload=payload, stored_at=self._clock(), ttl=float(ttl_class))
            self._entries[key] = entry
            return entry

    async def get_or_fetch(
        self,
        key: str,
        ttl_class: TTLClass | float,
        fetch: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Serve a fresh entry, or await `fetch()` and store its result.

        Concurrent misses for the same key may each call upstream; the last
        writer wins. Errors from `fetch()` propagate and nothing is stored.
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug("Cache hit: %s", key)
            return cached
        payload = await fetch()
        self.put(key, payload, ttl_class)
        return payload

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
