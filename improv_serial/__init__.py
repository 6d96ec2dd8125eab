"""
improv_serial - Python client for provisioning Wi-Fi devices over serial.

This library implements the client side of the Improv Wi-Fi serial protocol:
it identifies a device on a USB or UART link, lists the networks the device
can see, sends Wi-Fi credentials and reports the device's progress.

Example:
    >>> from improv_serial import ImprovSerialClient
    >>> from improv_serial.transport import AsyncSerialTransport
    >>>
    >>> async def main():
    ...     transport = AsyncSerialTransport("/dev/ttyACM0")
    ...     async with ImprovSerialClient(transport) as client:
    ...         info = await client.initialize()
    ...         networks = await client.scan()
    ...         url = await client.provision("HomeNet", "hunter22")
"""

from improv_serial.client import ImprovSerialClient
from improv_serial.exceptions import (
    BusyError,
    ChecksumError,
    DeviceError,
    DisconnectedError,
    FramingError,
    ImprovError,
    InvalidStateError,
    ParseError,
    ProtocolError,
    ProtocolViolationError,
    ScanUnsupportedError,
    TimeoutError,
    TransportError,
)
from improv_serial.models.records import DeviceInfo, SignalQuality, Ssid
from improv_serial.protocol.constants import ErrorState
from improv_serial.state import DeviceState, ErrorChange, StateChange
from improv_serial.transport import AbstractTransport, AsyncSerialTransport

__version__ = "0.1.0"
__all__ = [
    # Client
    "ImprovSerialClient",
    "DeviceState",
    "ErrorState",
    "StateChange",
    "ErrorChange",
    # Models
    "DeviceInfo",
    "Ssid",
    "SignalQuality",
    # Exceptions
    "ImprovError",
    "ProtocolError",
    "FramingError",
    "ChecksumError",
    "ParseError",
    "ProtocolViolationError",
    "BusyError",
    "TimeoutError",
    "DeviceError",
    "ScanUnsupportedError",
    "DisconnectedError",
    "InvalidStateError",
    "TransportError",
    # Transport
    "AbstractTransport",
    "AsyncSerialTransport",
    # Version
    "__version__",
]
