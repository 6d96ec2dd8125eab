"""
In-memory transport for exercising the client without a serial port.

Incoming bytes reach the client from three sources: chunks queued up
front with add_response(), answers produced by a response callback for
each write, and chunks scheduled with add_response_later(). A test can
also pull the plug (disconnect) or make the next read blow up (fail).

Example:
    >>> mock = MockTransport()
    >>> mock.set_response_callback(firmware.handle)
    >>> client = ImprovSerialClient(mock)
"""

from __future__ import annotations

import asyncio
from typing import Callable

from improv_serial.exceptions import TransportError
from improv_serial.protocol.constants import ProtocolConstants
from improv_serial.transport.abc import AbstractTransport

ResponseCallback = Callable[[bytes], "bytes | None"]

# Sentinel queued to signal end of stream
_EOF = None


class MockTransport(AbstractTransport):
    """
    Duplex byte stream backed by an asyncio queue.

    Every write is recorded in written_data so tests can check exactly
    what went out on the wire.
    """

    def __init__(self, port_name: str = "mock://test") -> None:
        self._port_name = port_name
        self._is_open = False
        self._connected = True
        self._incoming: asyncio.Queue[bytes | BaseException | None] = asyncio.Queue()
        self._pending = bytearray()
        self._writes: list[bytes] = []
        self._on_write: ResponseCallback | None = None
        self._timers: list[asyncio.TimerHandle] = []

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def port_name(self) -> str:
        return self._port_name

    @property
    def written_data(self) -> list[bytes]:
        """Copy of every chunk written so far, oldest first."""
        return list(self._writes)

    @property
    def last_written(self) -> bytes | None:
        return self._writes[-1] if self._writes else None

    def add_response(self, response: bytes) -> None:
        """Queue a chunk for the client to read."""
        self._incoming.put_nowait(bytes(response))

    def add_responses(self, *responses: bytes) -> None:
        for response in responses:
            self.add_response(response)

    def add_response_later(self, response: bytes, delay: float) -> None:
        """
        Deliver a chunk after ``delay`` seconds.

        Needs a running event loop. Deliveries still scheduled when the
        transport closes are dropped.
        """
        loop = asyncio.get_running_loop()
        self._timers.append(loop.call_later(delay, self.add_response, response))

    def set_response_callback(self, callback: ResponseCallback | None) -> None:
        """
        Answer writes with ``callback(data)``.

        A falsy return value means the device stays silent.
        """
        self._on_write = callback

    def disconnect(self) -> None:
        """Simulate an unplugged device: reads hit end of stream, writes fail."""
        self._connected = False
        self._incoming.put_nowait(_EOF)

    def fail(self, error: BaseException | None = None) -> None:
        """Raise ``error`` (a TransportError by default) from the next read."""
        self._incoming.put_nowait(error or TransportError("Simulated read failure"))

    def clear(self) -> None:
        """Forget recorded writes and drop anything not yet read."""
        self._writes.clear()
        self._pending.clear()
        while not self._incoming.empty():
            self._incoming.get_nowait()

    async def open(self) -> None:
        if self._is_open:
            raise TransportError("Mock transport already open")
        self._is_open = True

    async def close(self) -> None:
        if not self._is_open:
            return
        self._is_open = False
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
        # Wake a reader blocked on the queue
        self._incoming.put_nowait(_EOF)

    async def write(self, data: bytes) -> None:
        if not self._is_open:
            raise TransportError("Mock transport not open")
        if not self._connected:
            raise TransportError("Mock device disconnected")

        data = bytes(data)
        self._writes.append(data)

        if self._on_write is not None:
            answer = self._on_write(data)
            if answer:
                self.add_response(answer)

    async def read(self, max_size: int = ProtocolConstants.READ_CHUNK_SIZE) -> bytes:
        if not self._pending:
            if not self._is_open and self._incoming.empty():
                raise TransportError("Mock transport not open")

            item = await self._incoming.get()
            if item is _EOF:
                return b""
            if isinstance(item, BaseException):
                raise item
            self._pending.extend(item)

        chunk = bytes(self._pending[:max_size])
        del self._pending[:max_size]
        return chunk

    def discard_buffers(self) -> None:
        self._pending.clear()

    def assert_written(self, expected: bytes, index: int = -1) -> None:
        """Fail unless write number ``index`` equals ``expected``."""
        if not self._writes:
            raise AssertionError("Nothing was written to the mock transport")
        actual = self._writes[index]
        if actual != expected:
            raise AssertionError(f"Expected write {expected!r}, got {actual!r}")

    def assert_write_count(self, expected: int) -> None:
        actual = len(self._writes)
        if actual != expected:
            raise AssertionError(f"Expected {expected} writes, got {actual}")
