"""Fixtures for market data tests.

Provides a scripted in-memory feed transport so the stream client can be
exercised without a network connection.
"""

import asyncio

import pytest
from fakes import FakeTransport


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def recorded_sleep():
    """An asyncio.sleep replacement that records delays and returns at once."""
    delays: list[float] = []

    async def _sleep(delay: float) -> None:
        delays.append(delay)
        await asyncio.sleep(0)

    _sleep.delays = delays
    return _sleep
