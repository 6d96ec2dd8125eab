"""
Transport contract used by the Improv client.

A transport is a reliable, ordered duplex byte stream. It knows nothing
about Improv: the client does all framing and never assumes that one
read returns one frame, so implementations may hand back bytes in
whatever chunks the underlying link produces.

Implementations:
- AsyncSerialTransport: USB-CDC or UART port via pyserial-asyncio
- MockTransport: in-memory stream for tests
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from improv_serial.protocol.constants import ProtocolConstants

if TYPE_CHECKING:
    from types import TracebackType


class AbstractTransport(ABC):
    """
    Base class for byte streams the client can drive.

    Usable as an async context manager, which opens on entry and closes
    on exit:

        async with AsyncSerialTransport("/dev/ttyACM0") as transport:
            client = ImprovSerialClient(transport)
    """

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True while reads and writes are possible."""

    @property
    @abstractmethod
    def port_name(self) -> str:
        """Human readable endpoint, used in logs and reprs."""

    @abstractmethod
    async def open(self) -> None:
        """Connect to the device. Raises TransportError on failure."""

    @abstractmethod
    async def close(self) -> None:
        """
        Release the link.

        Must be idempotent. A read blocked at the time of the call
        returns b"" instead of hanging.
        """

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """Send ``data`` in full. Raises TransportError when closed or broken."""

    @abstractmethod
    async def read(self, max_size: int = ProtocolConstants.READ_CHUNK_SIZE) -> bytes:
        """
        Wait for incoming bytes.

        Args:
            max_size: Largest chunk to return.

        Returns:
            At least one byte, or b"" once the stream has ended because the
            device went away or the transport was closed.

        Raises:
            TransportError: Not open, or the link failed mid-read.
        """

    @abstractmethod
    def discard_buffers(self) -> None:
        """Throw away bytes received but not yet read, such as boot logs."""

    async def __aenter__(self) -> AbstractTransport:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
