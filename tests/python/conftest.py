"""Pytest configuration and fixtures."""

import asyncio
import os
import sys
import pytest

# Add python directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))

from websockets.exceptions import ConnectionClosedError
from websockets.frames import Close
from websockets.protocol import State


def pytest_configure(config):
    """Configure pytest."""
    os.environ['LIFT_LOG_LEVEL'] = 'WARNING'
    # Register asyncio marker
    config.addinivalue_line("markers", "asyncio: mark test as async")


class FakeWebSocket:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self):
        self.state = State.OPEN
        self.sent = []
        self.close_code = None
        self.close_reason = ""
        self.close_calls = 0
        self.send_error = None
        self._frames = asyncio.Queue()

    async def send(self, data):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(data)

    def feed(self, frame):
        """Queue an inbound frame."""
        self._frames.put_nowait(frame)

    def fail(self, exc):
        """Make the reader raise ``exc``."""
        self._frames.put_nowait(exc)

    def remote_close(self, code=1000, reason=""):
        """
        Simulate the server closing the connection.

        Like websockets, iteration ends cleanly for 1000/1001 and raises
        ConnectionClosedError for any other code.
        """
        self.state = State.CLOSED
        self.close_code = code
        self.close_reason = reason
        if code in (1000, 1001):
            self._frames.put_nowait(None)
        else:
            rcvd = None if code == 1006 else Close(code, reason)
            self._frames.put_nowait(ConnectionClosedError(rcvd, None))

    async def close(self, code=1000, reason=""):
        self.close_calls += 1
        if self.state == State.OPEN:
            self.remote_close(code, reason)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._frames.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture
def fake_ws():
    """Open fake WebSocket connection."""
    return FakeWebSocket()


@pytest.fixture
def eventually():
    """Wait (briefly) until a condition holds."""

    async def _wait(predicate, timeout=1.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(0.005)

    return _wait
