"""Abstract transport for the push-based price feed."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import websockets
from websockets.exceptions import WebSocketException

logger = logging.getLogger(__name__)

# Everything a transport may raise when the connection fails or drops.
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (WebSocketException, OSError, TimeoutError)


class FeedConnection(ABC):
    """One open connection to the feed.

    recv() blocks until the next frame arrives and raises one of
    TRANSPORT_ERRORS when the connection is closed or broken.
    """

    @abstractmethod
    async def send(self, message: str) -> None:
        """Send one text frame."""

    @abstractmethod
    async def recv(self) -> str | bytes:
        """Wait for the next frame."""

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Safe to call multiple times."""


class FeedTransport(ABC):
    """Opens connections to the feed.

    Lifecycle:
        conn = await transport.connect(url)
        await conn.send('{"method": "SUBSCRIBE", ...}')
        frame = await conn.recv()
        ...
        await conn.close()
    """

    @abstractmethod
    async def connect(self, url: str) -> FeedConnection:
        """Open a connection (handshake included) or raise one of TRANSPORT_ERRORS."""


class WebsocketsConnection(FeedConnection):
    """FeedConnection over a `websockets` client connection."""

    def __init__(self, ws) -> None:
        self._ws = ws

    async def send(self, message: str) -> None:
        await self._ws.send(message)

    async def recv(self) -> str | bytes:
        return await self._ws.recv()

    async def close(self) -> None:
        await self._ws.close()


class WebsocketsTransport(FeedTransport):
    """Production transport backed by the `websockets` library."""

    def __init__(self, open_timeout: float = 10.0, ping_interval: float | None = 20.0) -> None:
        self._open_timeout = open_timeout
        self._ping_interval = ping_interval

    async def connect(self, url: str) -> FeedConnection:
        ws = await websockets.connect(
            url,
            open_timeout=self._open_timeout,
            ping_interval=self._ping_interval,
        )
        logger.debug("Websocket handshake completed: %s", url)
        return WebsocketsConnection(ws)
