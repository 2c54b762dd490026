"""Push-feed client with an explicit connection state machine and backoff."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from ..errors import ConnectionExhausted
from .instruments import normalize_symbol
from .interface import TRANSPORT_ERRORS, FeedConnection, FeedTransport, WebsocketsTransport
from .models import PriceTick
from .reconciler import Reconciler

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class ConnectionEvent(str, Enum):
    CONNECT = "connect"  # start(), or backoff delay elapsed
    OPENED = "opened"  # Handshake succeeded
    LOST = "lost"  # Handshake failed, or connection closed/errored
    STOP = "stop"  # Explicit stop()


class InvalidTransition(RuntimeError):
    pass


_TRANSITIONS: dict[tuple[ConnectionState, ConnectionEvent], ConnectionState] = {
    (ConnectionState.DISCONNECTED, ConnectionEvent.CONNECT): ConnectionState.CONNECTING,
    (ConnectionState.RECONNECTING, ConnectionEvent.CONNECT): ConnectionState.CONNECTING,
    (ConnectionState.CONNECTING, ConnectionEvent.OPENED): ConnectionState.CONNECTED,
    (ConnectionState.CONNECTING, ConnectionEvent.LOST): ConnectionState.RECONNECTING,
    (ConnectionState.CONNECTED, ConnectionEvent.LOST): ConnectionState.RECONNECTING,
}


def next_state(state: ConnectionState, event: ConnectionEvent) -> ConnectionState:
    """Transition function for the connection state machine."""
    if event is ConnectionEvent.STOP:
        return ConnectionState.DISCONNECTED
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransition(f"{event.value!r} is not valid in state {state.value!r}") from None


@dataclass(frozen=True, slots=True)
class ReconnectPolicy:
    """Exponential backoff: min(base * 2^attempt, max), giving up after max_attempts."""

    base_delay: float = 1.0
    max_delay: float = 30.0
    max_attempts: int = 5

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2**attempt), self.max_delay)

    def exhausted(self, attempt: int) -> bool:
        return attempt >= self.max_attempts


@dataclass(frozen=True, slots=True)
class SubscriptionAck:
    """Reply to a SUBSCRIBE/UNSUBSCRIBE request, correlated by request id."""

    request_id: int | str | None
    ok: bool
    error: Any = None


def parse_frame(raw: str | bytes) -> PriceTick | SubscriptionAck | None:
    """Parse one wire frame. Returns None (and logs) for anything unexpected.

    Understands Binance `24hrTicker` and `trade` events, combined-stream
    envelopes ({"stream": ..., "data": {...}}) and request acknowledgments
    ({"result": null, "id": 1} or {"error": {...}, "id": 1}).
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Dropped non UTF-8 frame (%d bytes)", len(raw))
            return None
    try:
        message = json.loads(raw)
    except ValueError:
        logger.warning("Dropped non-JSON frame: %.80s", raw)
        return None
    if not isinstance(message, dict):
        logger.warning("Dropped unexpected frame: %.80s", raw)
        return None

    if "id" in message and ("result" in message or "error" in message):
        error = message.get("error")
        return SubscriptionAck(
            request_id=message["id"],
            ok=error is None and message.get("result") is None,
            error=error if error is not None else message.get("result"),
        )

    if isinstance(message.get("data"), dict) and "stream" in message:
        message = message["data"]

    event_type = message.get("e")
    try:
        if event_type == "24hrTicker":
            return PriceTick(
                symbol=normalize_symbol(message["s"]),
                price=float(message["c"]),
                percent_change_24h=float(message["P"]) if message.get("P") is not None else None,
                event_time=_millis_to_seconds(message["E"]),
            )
        if event_type == "trade":
            return PriceTick(
                symbol=normalize_symbol(message["s"]),
                price=float(message["p"]),
                percent_change_24h=None,
                event_time=_millis_to_seconds(message.get("T", message["E"])),
            )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.warning("Dropped malformed %s frame: %s", event_type, e)
        return None

    logger.debug("Ignored frame of type %r", event_type)
    return None


def _millis_to_seconds(value: Any) -> float:
    seconds = float(value) / 1000.0
    if not math.isfinite(seconds):
        raise ValueError(f"non-finite event time {value!r}")
    return seconds


class StreamClient:
    """Maintains at most one live connection to the price feed.

    Ticks are handed to the Reconciler synchronously in arrival order. The
    client never raises transport errors to its caller: it reconnects with
    exponential backoff and, once attempts are exhausted, tells the
    Reconciler that streaming data is stale and stops retrying.

    Lifecycle:
        client = StreamClient(url, subscription_set(["BTCUSDT"]), reconciler)
        await client.start()
        # ... app runs ...
        await client.stop()
    """

    def __init__(
        self,
        url: str,
        subscriptions: dict[str, str],
        reconciler: Reconciler,
        transport: FeedTransport | None = None,
        policy: ReconnectPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if transport is None:
            transport = WebsocketsTransport()
        self._url = url
        self._subscriptions = dict(subscriptions)
        self._reconciler = reconciler
        self._transport = transport
        self._policy = policy or ReconnectPolicy()
        self._sleep = sleep

        self._state = ConnectionState.DISCONNECTED
        self._attempt: int = 0
        self._conn: FeedConnection | None = None
        self._task: asyncio.Task | None = None
        self._stopping = False
        self._next_request_id = 1
        self._pending_requests: dict[int, str] = {}  # request id -> method

        self.subscription_errors: dict[int | str | None, Any] = {}
        self.ticks_received: int = 0
        self.exhausted: ConnectionExhausted | None = None

    # --- Public API ---

    async def start(self) -> None:
        """Begin connecting in the background. No-op if already running."""
        if self._task and not self._task.done():
            logger.warning("Stream client already running")
            return
        self._stopping = False
        self.exhausted = None
        self._attempt = 0
        self._task = asyncio.create_task(self._run(), name="price-stream")
        logger.info("Stream client started: %d channels on %s", len(self._subscriptions), self._url)

    async def stop(self) -> None:
        """Unsubscribe (if connected), cancel pending backoff and close. Safe to call repeatedly."""
        self._stopping = True
        conn = self._conn
        if conn is not None and self._state is ConnectionState.CONNECTED:
            try:
                await conn.send(self._request("UNSUBSCRIBE"))
            except TRANSPORT_ERRORS as e:
                logger.debug("Unsubscribe failed during stop: %s", e)

        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

        await self._close_connection()
        if self._state is not ConnectionState.DISCONNECTED:
            self._set_state(ConnectionEvent.STOP)
        logger.info("Stream client stopped")

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def attempt(self) -> int:
        return self._attempt

    @property
    def subscriptions(self) -> dict[str, str]:
        return dict(self._subscriptions)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # --- Connection loop ---

    async def _run(self) -> None:
        try:
            while not self._stopping:
                self._set_state(ConnectionEvent.CONNECT)
                try:
                    self._conn = await self._transport.connect(self._url)
                except TRANSPORT_ERRORS as e:
                    logger.warning("Stream connection failed: %s", e)
                else:
                    await self._session(self._conn)

                if self._stopping:
                    break
                self._set_state(ConnectionEvent.LOST)

                if self._policy.exhausted(self._attempt):
                    self._give_up()
                    return
                delay = self._policy.delay_for(self._attempt)
                logger.info(
                    "Reconnecting in %.1fs (attempt %d/%d)",
                    delay,
                    self._attempt + 1,
                    self._policy.max_attempts,
                )
                await self._sleep(delay)
                self._attempt += 1
        finally:
            await self._close_connection()

    async def _session(self, conn: FeedConnection) -> None:
        """Run one connected session until the connection drops."""
        self._set_state(ConnectionEvent.OPENED)
        self._attempt = 0
        self._reconciler.mark_stream_live()
        logger.info("Stream connected: %s", self._url)
        try:
            # Subscriptions do not survive a disconnect: always re-send the full set.
            await conn.send(self._request("SUBSCRIBE"))
            while True:
                frame = await conn.recv()
                self._handle_frame(frame)
        except TRANSPORT_ERRORS as e:
            if not self._stopping:
                logger.warning("Stream connection lost: %s", e)
        finally:
            await self._close_connection()

    def _handle_frame(self, frame: str | bytes) -> None:
        parsed = parse_frame(frame)
        if parsed is None:
            return
        if isinstance(parsed, SubscriptionAck):
            self._handle_ack(parsed)
            return
        if parsed.symbol not in self._subscriptions:
            logger.debug("Ignored tick for unsubscribed symbol %s", parsed.symbol)
            return
        self.ticks_received += 1
        self._reconciler.apply_tick(parsed)

    def _handle_ack(self, ack: SubscriptionAck) -> None:
        method = self._pending_requests.pop(ack.request_id, None) if isinstance(ack.request_id, int) else None
        if ack.ok:
            logger.info("%s acknowledged (id=%s)", method or "Request", ack.request_id)
            self.subscription_errors.pop(ack.request_id, None)
        else:
            # The connection may still deliver other channels; do not reconnect.
            logger.error("%s failed (id=%s): %s", method or "Request", ack.request_id, ack.error)
            self.subscription_errors[ack.request_id] = ack.error

    def _request(self, method: str) -> str:
        request_id = self._next_request_id
        self._next_request_id += 1
        self._pending_requests[request_id] = method
        return json.dumps(
            {
                "method": method,
                "params": list(self._subscriptions.values()),
                "id": request_id,
            }
        )

    def _give_up(self) -> None:
        self._set_state(ConnectionEvent.STOP)
        self.exhausted = ConnectionExhausted(
            f"Price stream unavailable after {self._attempt} reconnect attempts"
        )
        logger.error("%s; falling back to snapshot-only mode", self.exhausted)
        self._reconciler.mark_stream_stale(self.exhausted)

    def _set_state(self, event: ConnectionEvent) -> None:
        new_state = next_state(self._state, event)
        if new_state is not self._state:
            logger.debug("Stream state %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    async def _close_connection(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            await conn.close()
        except TRANSPORT_ERRORS as e:
            logger.debug("Error closing stream connection: %s", e)
