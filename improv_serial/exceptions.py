"""
Exceptions raised by improv_serial.

Everything derives from ImprovError. Commands fail by raising one of these
from the awaited coroutine, exactly once per failure. DeviceError and its
subclass keep the wire error code, while DisconnectedError and
ProtocolViolationError mark a session that cannot continue.
"""

from __future__ import annotations

from typing import Final


class ImprovError(Exception):
    """Base class; catch this to handle any client failure."""


class ProtocolError(ImprovError):
    """The device sent bytes that do not follow the Improv serial protocol."""


class FramingError(ProtocolError):
    """
    A frame the decoder had to drop (bad version, corrupt header).

    The decoder logs it and resynchronizes on the next preamble; callers
    never see it raised.
    """


class ChecksumError(FramingError):
    """Trailing checksum byte differs from the sum of the frame, usually line noise."""

    def __init__(
        self,
        message: str = "Checksum validation failed",
        *,
        expected: int | None = None,
        received: int | None = None,
    ) -> None:
        super().__init__(message)
        self.expected = expected
        self.received = received

    def __str__(self) -> str:
        base = super().__str__()
        if self.expected is not None and self.received is not None:
            return f"{base} (expected 0x{self.expected:02X}, got 0x{self.received:02X})"
        return base


class ParseError(ProtocolError):
    """
    Record parsing error.

    Raised when the fields of an RPC result cannot be turned into a record,
    typically due to:
    - Missing required fields
    - Invalid field values (e.g. a non-numeric RSSI)
    """

    def __init__(
        self,
        message: str,
        *,
        record_type: str | None = None,
        fields: tuple[str, ...] | None = None,
    ) -> None:
        super().__init__(message)
        self.record_type = record_type
        self.fields = fields

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.record_type:
            parts.append(f"record_type={self.record_type}")
        if self.fields is not None:
            parts.append(f"fields={list(self.fields)!r}")
        return " ".join(parts)


class ProtocolViolationError(ProtocolError):
    """
    The device answered a command with a payload that cannot be interpreted.

    Fatal for the session: the client moves to the ERROR state and rejects
    further commands.
    """

    pass


class BusyError(ImprovError):
    """
    A command was issued while another one is still outstanding.

    The protocol has no request identifiers, so only a single RPC may be in
    flight. Receiving this error is a caller bug; nothing was written.
    """

    pass


class TimeoutError(ImprovError):  # noqa: A001 - intentionally shadows builtin
    """
    Communication timeout.

    Raised when the device does not answer (or does not reach the expected
    state) within the deadline. Recoverable: the caller may retry.
    """

    def __init__(
        self,
        message: str = "Communication timeout",
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        super().__init__(message)
        self.timeout_seconds = timeout_seconds

    def __str__(self) -> str:
        base = super().__str__()
        if self.timeout_seconds is not None:
            return f"{base} (after {self.timeout_seconds:.1f}s)"
        return base


class DeviceError(ImprovError):
    """
    Error state reported by the device.

    Raised when the device answers an outstanding command with an error
    state packet. The error_state attribute holds the reported code so a
    user interface can translate it.
    """

    def __init__(self, error_state: int, message: str | None = None) -> None:
        self.error_state = error_state
        self.message = message or error_message(error_state)
        super().__init__(f"Device error 0x{error_state:02X}: {self.message}")


class ScanUnsupportedError(DeviceError):
    """
    The device firmware does not implement the network scan command.

    Callers should fall back to manual SSID entry instead of retrying.
    """

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            ErrorState.UNKNOWN_RPC_COMMAND,
            message or "Device does not support scanning for networks",
        )


class DisconnectedError(ImprovError):
    """
    The transport terminated.

    Raised for commands that were outstanding when the connection was lost
    or closed, and for every command issued afterwards. Terminal for the
    session.
    """

    pass


class InvalidStateError(ImprovError):
    """
    Command issued in a session state that does not accept it.

    Raised before initialize() has completed, or once the session has
    entered the ERROR state.
    """

    pass


class TransportError(ImprovError):
    """
    Transport-level error.

    Raised for low-level transport issues:
    - Serial port cannot be opened
    - I/O errors
    - Reading or writing a closed port
    """

    pass


# Protocol modules import the classes above, so this import comes after them
from improv_serial.protocol.constants import ErrorState  # noqa: E402

# Worded as a user interface shows them
ERROR_MESSAGES: Final[dict[int, str]] = {
    ErrorState.NO_ERROR: "No error",
    ErrorState.INVALID_RPC: "Invalid RPC packet",
    ErrorState.UNKNOWN_RPC_COMMAND: "Unknown RPC command",
    ErrorState.UNABLE_TO_CONNECT: "Unable to connect",
    ErrorState.NOT_AUTHORIZED: "Not authorized",
    ErrorState.TIMEOUT: "Timeout",
}


def error_message(error_state: int) -> str:
    """
    Get a human-readable message for an error state.

    Args:
        error_state: Wire or client-side error state code.

    Returns:
        Message text, "Unknown error (N)" for unrecognized codes.
    """
    return ERROR_MESSAGES.get(error_state, f"Unknown error ({error_state})")
