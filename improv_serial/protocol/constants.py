"""
Improv Wi-Fi serial protocol constants.

Based on the public Improv Wi-Fi serial protocol definition (protocol
version 1).
"""

from __future__ import annotations

from enum import IntEnum
from typing import Final


class PacketType(IntEnum):
    """
    Packet type byte carried in every frame header.

    State and error packets are sent unsolicited by the device. RPC packets
    travel from client to device, RPC result packets from device to client.
    """

    CURRENT_STATE = 0x01
    """Device reports its lifecycle state (one data byte)."""

    ERROR_STATE = 0x02
    """Device reports its error state (one data byte)."""

    RPC = 0x03
    """RPC command sent to the device."""

    RPC_RESULT = 0x04
    """Result of an RPC command."""


class RpcCommand(IntEnum):
    """RPC opcodes understood by Improv serial firmware."""

    SEND_WIFI_SETTINGS = 0x01
    """Provision the device with an SSID and password."""

    REQUEST_CURRENT_STATE = 0x02
    """Ask the device to report its state (and redirect URL if provisioned)."""

    REQUEST_INFO = 0x03
    """Identify: firmware, version, chip family and device name."""

    REQUEST_WIFI_NETWORKS = 0x04
    """Scan for nearby networks, one result packet per network."""


class ImprovState(IntEnum):
    """
    Device state codes as carried in CURRENT_STATE packets.

    AUTHORIZATION_REQUIRED is only used by the BLE flavour of the protocol.
    """

    AUTHORIZATION_REQUIRED = 0x01
    READY = 0x02
    PROVISIONING = 0x03
    PROVISIONED = 0x04


class ErrorState(IntEnum):
    """
    Error codes as carried in ERROR_STATE packets.

    TIMEOUT and UNKNOWN_ERROR never appear on the wire; the client sets them
    itself to report a local failure through the same channel.
    """

    NO_ERROR = 0x00
    INVALID_RPC = 0x01
    UNKNOWN_RPC_COMMAND = 0x02
    UNABLE_TO_CONNECT = 0x03
    NOT_AUTHORIZED = 0x04
    TIMEOUT = 0xFE
    UNKNOWN_ERROR = 0xFF


class ProtocolConstants:
    """
    Improv serial protocol constants.

    Contains frame layout values, timing defaults and serial port settings
    used throughout the implementation.
    """

    # ===== Frame Layout =====

    PREAMBLE: Final[bytes] = b"IMPROV"
    """Fixed ASCII preamble at the start of every frame."""

    VERSION: Final[int] = 0x01
    """Supported protocol version."""

    HEADER_SIZE: Final[int] = 9
    """Preamble(6) + version(1) + type(1) + length(1)."""

    CHECKSUM_SIZE: Final[int] = 1
    """Trailing checksum byte."""

    MAX_PAYLOAD_SIZE: Final[int] = 255
    """Payload length is carried in a single byte."""

    MAX_FIELD_SIZE: Final[int] = 255
    """Each length-prefixed field carries at most 255 bytes."""

    LINE_TERMINATOR: Final[int] = 0x0A
    """Newline written after each outgoing frame."""

    # ===== Timing Constants (seconds) =====

    STARTUP_TIMEOUT: Final[float] = 1.0
    """Time allowed for the identify answer during initialize()."""

    DEFAULT_COMMAND_TIMEOUT: Final[float] = 5.0
    """Default RPC response timeout."""

    STATE_REQUEST_TIMEOUT: Final[float] = 5.0
    """Time allowed for the state report after REQUEST_CURRENT_STATE."""

    SCAN_TIMEOUT: Final[float] = 30.0
    """Time allowed for a complete network scan."""

    PROVISION_TIMEOUT: Final[float] = 30.0
    """Default time allowed to reach PROVISIONED."""

    PROVISION_RESULT_GRACE: Final[float] = 1.0
    """How long to wait for the redirect URL once PROVISIONED is reported."""

    # ===== Serial Port Configuration =====

    DEFAULT_BAUD_RATE: Final[int] = 115200
    """Default baud rate for USB-CDC serial links."""

    READ_CHUNK_SIZE: Final[int] = 1024
    """Maximum bytes requested from the transport per read."""
