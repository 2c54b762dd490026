"""Fan-out of reconciled price events to connected browser clients."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .models import InstrumentPrice, SignificantMove

logger = logging.getLogger(__name__)


class PriceEventHub:
    """One bounded queue per connected client.

    Registered as a Reconciler listener. Publishing never blocks: when a slow
    client's queue is full the oldest event is dropped to make room.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self._max_queue_size = max_queue_size
        self._queues: set[asyncio.Queue] = set()

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._queues.add(queue)
        logger.debug("Event hub subscriber added (%d total)", len(self._queues))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._queues.discard(queue)
        logger.debug("Event hub subscriber removed (%d total)", len(self._queues))

    def publish(self, event: str, payload: Any) -> None:
        message = _to_message(event, payload)
        for queue in list(self._queues):
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait(message)

    # Reconciler listener signature
    __call__ = publish

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)


def _to_message(event: str, payload: Any) -> dict:
    if isinstance(payload, SignificantMove):
        return payload.to_alert_event()
    if isinstance(payload, InstrumentPrice):
        return payload.to_update_event()
    if isinstance(payload, dict):
        return {"type": event, **payload}
    return {"type": event, "data": payload}
