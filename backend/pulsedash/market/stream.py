"""Browser-facing push endpoints: SSE price stream, websocket events, state read."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from .events import PriceEventHub
from .instruments import resolve_symbol
from .reconciler import Reconciler

logger = logging.getLogger(__name__)


def _state_payload(reconciler: Reconciler) -> dict:
    return {
        "stream_live": reconciler.stream_live,
        "prices": {symbol: record.to_dict() for symbol, record in reconciler.current().items()},
    }


def create_stream_router(reconciler: Reconciler, hub: PriceEventHub) -> APIRouter:
    """Create the push/state router with references to the reconciler and event hub.

    This factory pattern lets us inject the pipeline without globals.
    """
    router = APIRouter(prefix="/api", tags=["streaming"])

    @router.get("/prices")
    async def get_prices() -> dict:
        """Current reconciled state for every tracked instrument."""
        return _state_payload(reconciler)

    @router.get("/stream/prices")
    async def stream_prices(request: Request) -> StreamingResponse:
        """SSE endpoint for live price updates.

        Streams the full reconciled state whenever it changes. The client
        connects with EventSource and receives events in the format:

            data: {"BTCUSDT": {"symbol": "BTCUSDT", "price": 50300.0, ...}, ...}
        """
        return StreamingResponse(
            _generate_events(reconciler, request),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    @router.websocket("/socket")
    async def price_socket(websocket: WebSocket) -> None:
        """Push `price_update` / `price_alert` events; accept `subscribe_crypto`.

        Without any subscription a client receives every tracked instrument;
        after one or more `subscribe_crypto` messages it receives only those.
        """
        await websocket.accept()
        queue = hub.subscribe()
        subscribed: set[str] = set()
        client = websocket.client.host if websocket.client else "unknown"
        logger.info("Price socket client connected: %s", client)

        await websocket.send_json({"type": "snapshot", **_state_payload(reconciler)})
        pump = asyncio.create_task(_pump_events(websocket, queue, subscribed), name="price-socket-pump")
        try:
            await _read_control_messages(websocket, subscribed)
        finally:
            pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pump
            hub.unsubscribe(queue)
            logger.info("Price socket client disconnected: %s", client)

    return router


async def _pump_events(websocket: WebSocket, queue: asyncio.Queue, subscribed: set[str]) -> None:
    while True:
        message = await queue.get()
        if subscribed and message.get("symbol") not in subscribed:
            continue
        try:
            await websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.debug("Price socket send failed, stopping pump: %r", e)
            return


async def _read_control_messages(websocket: WebSocket, subscribed: set[str]) -> None:
    while True:
        try:
            raw = await websocket.receive_text()
        except WebSocketDisconnect:
            return
        try:
            message = json.loads(raw)
        except ValueError:
            await websocket.send_json({"type": "error", "error": "Messages must be JSON"})
            continue
        if not isinstance(message, dict) or message.get("type") != "subscribe_crypto":
            await websocket.send_json({"type": "error", "error": "Unsupported message"})
            continue

        requested = str(message.get("crypto", ""))
        symbol = resolve_symbol(requested)
        if symbol is None:
            await websocket.send_json({"type": "error", "error": f"Untracked cryptocurrency: {requested!r}"})
            continue
        subscribed.add(symbol)
        logger.info("Price socket client subscribed to %s", symbol)
        await websocket.send_json({"type": "subscribed", "crypto": requested, "symbol": symbol})


async def _generate_events(
    reconciler: Reconciler,
    request: Request,
    interval: float = 0.5,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE-formatted price events.

    Sends all prices whenever the reconciler version changes, checking every
    `interval` seconds. Stops when the client disconnects.
    """
    # Tell the client to retry after 1 second if the connection drops
    yield "retry: 1000\n\n"

    last_version = -1
    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s", client_ip)

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break

            current_version = reconciler.version
            if current_version != last_version:
                last_version = current_version
                prices = reconciler.current()

                if prices:
                    data = {symbol: record.to_dict() for symbol, record in prices.items()}
                    yield f"data: {json.dumps(data)}\n\n"

            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
