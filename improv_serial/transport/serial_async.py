"""
Serial port transport built on pyserial-asyncio.

Improv firmware listens on the board's USB-CDC or UART console, 8N1 with
no flow control. The baud rate defaults to 115200, which is what ESPHome
and most Arduino sketches configure.

Example:
    >>> async with AsyncSerialTransport("/dev/ttyACM0") as transport:
    ...     client = ImprovSerialClient(transport)
    ...     await client.initialize()
"""

from __future__ import annotations

import asyncio

import serial
import serial_asyncio

from improv_serial.exceptions import TransportError
from improv_serial.protocol.constants import ProtocolConstants
from improv_serial.transport.abc import AbstractTransport

# Raised by pyserial and the OS when the port vanishes under us
_PORT_ERRORS = (OSError, serial.SerialException)


class AsyncSerialTransport(AbstractTransport):
    """
    Serial port opened through ``serial_asyncio.open_serial_connection``.

    ``port`` can be a device path ("/dev/ttyUSB0", "COM5") or any pyserial
    URL such as ``socket://host:port`` or ``rfc2217://host:port``.
    """

    def __init__(
        self,
        port: str,
        baudrate: int = ProtocolConstants.DEFAULT_BAUD_RATE,
    ) -> None:
        self._port = port
        self._baudrate = baudrate
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._serial: serial.Serial | None = None

    @property
    def is_open(self) -> bool:
        writer = self._writer
        return writer is not None and self._reader is not None and not writer.is_closing()

    @property
    def port_name(self) -> str:
        return self._port

    @property
    def baudrate(self) -> int:
        return self._baudrate

    async def open(self) -> None:
        if self.is_open:
            return

        try:
            self._reader, self._writer = await serial_asyncio.open_serial_connection(
                url=self._port,
                baudrate=self._baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                xonxoff=False,
                rtscts=False,
                dsrdtr=False,
            )
        except _PORT_ERRORS as e:
            raise TransportError(f"Cannot open {self._port}: {e}") from e

        # pyserial-asyncio exposes the raw port for buffer resets
        self._serial = getattr(self._writer.transport, "serial", None)

    async def close(self) -> None:
        writer = self._writer
        self._reader = self._writer = None
        self._serial = None
        if writer is None:
            return

        writer.close()
        try:
            await writer.wait_closed()
        except _PORT_ERRORS:
            # Unplugged before we got to close it
            pass

    async def write(self, data: bytes) -> None:
        writer = self._writer
        if writer is None or not self.is_open:
            raise TransportError(f"{self._port} is not open")

        try:
            writer.write(data)
            await writer.drain()
        except _PORT_ERRORS as e:
            raise TransportError(f"Write to {self._port} failed: {e}") from e

    async def read(self, max_size: int = ProtocolConstants.READ_CHUNK_SIZE) -> bytes:
        reader = self._reader
        if reader is None:
            raise TransportError(f"{self._port} is not open")

        try:
            return await reader.read(max_size)
        except _PORT_ERRORS as e:
            raise TransportError(f"Read from {self._port} failed: {e}") from e

    def discard_buffers(self) -> None:
        """
        Reset the OS level input and output buffers.

        Bytes already pulled into the asyncio StreamReader are not touched;
        the frame decoder skips those as noise.
        """
        if self._serial is None:
            return
        try:
            self._serial.reset_input_buffer()
            self._serial.reset_output_buffer()
        except _PORT_ERRORS:
            pass

    def __repr__(self) -> str:
        status = "open" if self.is_open else "closed"
        return f"AsyncSerialTransport({self._port!r}, baudrate={self._baudrate}, {status})"
