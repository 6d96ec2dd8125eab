"""
Transport layer for Improv serial communication.

This package provides transport implementations for talking to devices
over a reliable, ordered byte stream.

Available transports:
- AsyncSerialTransport: Async serial port using pyserial-asyncio
- MockTransport: Mock transport for testing without hardware

Example:
    >>> from improv_serial.transport import AsyncSerialTransport
    >>> async with AsyncSerialTransport("/dev/ttyACM0") as transport:
    ...     await transport.write(frame_data)
    ...     chunk = await transport.read()

Testing Example:
    >>> from improv_serial.transport import MockTransport
    >>> mock = MockTransport()
    >>> mock.add_response(state_frame)
"""

from improv_serial.transport.abc import AbstractTransport
from improv_serial.transport.mock import MockTransport
from improv_serial.transport.serial_async import AsyncSerialTransport

__all__ = [
    "AbstractTransport",
    "AsyncSerialTransport",
    "MockTransport",
]
