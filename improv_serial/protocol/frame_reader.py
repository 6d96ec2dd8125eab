"""
Improv serial frame parsing and building.

This module handles conversion between the wire format and structured
frames. Every Improv serial frame has the same layout:

    [I][M][P][R][O][V][VERSION][TYPE][LENGTH][DATA...][CHECKSUM]

- Preamble: the 6 ASCII bytes "IMPROV"
- VERSION: protocol version, always 0x01
- TYPE: packet type (state, error, RPC, RPC result)
- LENGTH: number of DATA bytes (0-255)
- CHECKSUM: sum of every preceding byte, modulo 256

Wire Format Notes:
- All values are raw bytes; nothing is hex encoded
- The checksum covers the preamble as well as the header and data
- Devices usually terminate frames with a newline, and interleave frames
  with plain-text log output; neither is part of a frame
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from improv_serial.exceptions import ChecksumError, FramingError
from improv_serial.protocol.checksums import append_checksum, calculate_checksum
from improv_serial.protocol.constants import PacketType, ProtocolConstants


class FrameParseResult(Enum):
    """Outcome of reading one frame from the head of a buffer."""

    SUCCESS = auto()
    """A well formed frame with a matching checksum."""

    EMPTY_BUFFER = auto()
    """Nothing to look at."""

    INCOMPLETE_FRAME = auto()
    """Looks like a frame so far; wait for more bytes."""

    INVALID_PREAMBLE = auto()
    """Buffer does not start with the IMPROV preamble."""

    UNSUPPORTED_VERSION = auto()
    """Frame carries a protocol version this client does not speak."""

    INVALID_CHECKSUM = auto()
    """Trailing byte does not match the sum of the frame."""


@dataclass(frozen=True)
class Frame:
    """
    A successfully parsed protocol frame.

    Attributes:
        packet_type: The packet type byte (0x00-0xFF).
        payload: Frame data, exactly as many bytes as the length byte says.
        version: Protocol version byte.
    """

    packet_type: int
    payload: bytes
    version: int = ProtocolConstants.VERSION

    @property
    def packet(self) -> PacketType | int:
        """PacketType member, or the raw byte for unknown types."""
        try:
            return PacketType(self.packet_type)
        except ValueError:
            return self.packet_type

    @property
    def size(self) -> int:
        """Number of bytes the frame occupies on the wire."""
        return ProtocolConstants.HEADER_SIZE + len(self.payload) + ProtocolConstants.CHECKSUM_SIZE

    def to_bytes(self) -> bytes:
        """Serialize the frame to its wire format."""
        return build_frame(self.packet_type, self.payload, version=self.version)

    def __repr__(self) -> str:
        name = self.packet.name if isinstance(self.packet, PacketType) else f"0x{self.packet_type:02X}"
        if self.payload:
            return f"Frame({name}, payload={self.payload.hex()})"
        return f"Frame({name})"


@dataclass(frozen=True)
class FrameParseError:
    """Why the bytes at the start of a buffer are not a usable frame."""

    result: FrameParseResult
    message: str
    position: int = 0
    expected: int | None = None
    received: int | None = None

    def to_exception(self) -> FramingError:
        """The matching FramingError, ChecksumError for checksum mismatches."""
        if self.result == FrameParseResult.INVALID_CHECKSUM:
            return ChecksumError(expected=self.expected, received=self.received)
        return FramingError(self.message)


def build_frame(
    packet_type: int,
    payload: bytes = b"",
    *,
    version: int = ProtocolConstants.VERSION,
) -> bytes:
    """
    Build a complete protocol frame.

    Frame format: PREAMBLE + version + type + length + payload + checksum

    Args:
        packet_type: Packet type byte.
        payload: Frame data (at most 255 bytes).
        version: Protocol version byte.

    Returns:
        Complete frame bytes.

    Raises:
        ValueError: If the payload does not fit the one-byte length field.
    """
    if len(payload) > ProtocolConstants.MAX_PAYLOAD_SIZE:
        raise ValueError(
            f"Payload too large: {len(payload)} bytes "
            f"(max {ProtocolConstants.MAX_PAYLOAD_SIZE})"
        )
    header = ProtocolConstants.PREAMBLE + bytes([version, packet_type, len(payload)])
    return append_checksum(header + bytes(payload))


class FrameReader:
    """
    Improv serial frame parser.

    Parses a single frame from the start of a byte buffer. The parser is
    stateless and can be reused for multiple parse operations; incremental
    decoding of a stream is handled by FrameCodec on top of it.

    Example:
        >>> reader = FrameReader()
        >>> result, frame = reader.parse(build_frame(PacketType.CURRENT_STATE, b"\\x02"))
        >>> assert result == FrameParseResult.SUCCESS
        >>> assert frame.payload == b"\\x02"
    """

    def parse(
        self,
        buffer: bytes | bytearray | memoryview,
    ) -> tuple[FrameParseResult, Frame | FrameParseError]:
        """
        Parse a frame from the start of the input buffer.

        Args:
            buffer: Input buffer that should start with the preamble.

        Returns:
            Tuple of (result, frame_or_error):
            - On success: (SUCCESS, Frame)
            - On failure: (error_code, FrameParseError)
        """
        if not buffer:
            return FrameParseResult.EMPTY_BUFFER, FrameParseError(
                result=FrameParseResult.EMPTY_BUFFER,
                message="Buffer is empty",
            )

        preamble = ProtocolConstants.PREAMBLE
        prefix = bytes(buffer[: len(preamble)])
        if not preamble.startswith(prefix):
            return FrameParseResult.INVALID_PREAMBLE, FrameParseError(
                result=FrameParseResult.INVALID_PREAMBLE,
                message=f"Buffer does not start with preamble: {prefix!r}",
            )

        header_size = ProtocolConstants.HEADER_SIZE
        if len(buffer) < header_size:
            return FrameParseResult.INCOMPLETE_FRAME, FrameParseError(
                result=FrameParseResult.INCOMPLETE_FRAME,
                message=f"Buffer too small for header (need {header_size}, have {len(buffer)})",
                position=len(buffer),
            )

        version = buffer[6]
        packet_type = buffer[7]
        length = buffer[8]

        # Header(9) + DATA(length) + CS(1)
        expected_size = header_size + length + ProtocolConstants.CHECKSUM_SIZE
        if len(buffer) < expected_size:
            return FrameParseResult.INCOMPLETE_FRAME, FrameParseError(
                result=FrameParseResult.INCOMPLETE_FRAME,
                message=f"Incomplete frame (need {expected_size}, have {len(buffer)})",
                position=len(buffer),
            )

        # Validate checksum (covers everything from the preamble to the data)
        cs_pos = expected_size - 1
        expected_checksum = calculate_checksum(buffer[:cs_pos])
        received_checksum = buffer[cs_pos]
        if expected_checksum != received_checksum:
            return FrameParseResult.INVALID_CHECKSUM, FrameParseError(
                result=FrameParseResult.INVALID_CHECKSUM,
                message=f"Checksum mismatch: expected 0x{expected_checksum:02X}, got 0x{received_checksum:02X}",
                position=cs_pos,
                expected=expected_checksum,
                received=received_checksum,
            )

        if version != ProtocolConstants.VERSION:
            return FrameParseResult.UNSUPPORTED_VERSION, FrameParseError(
                result=FrameParseResult.UNSUPPORTED_VERSION,
                message=f"Unsupported protocol version {version}",
                position=6,
            )

        frame = Frame(
            packet_type=packet_type,
            payload=bytes(buffer[header_size:cs_pos]),
            version=version,
        )
        return FrameParseResult.SUCCESS, frame


DEFAULT_FRAME_READER = FrameReader()
"""Shared stateless reader instance."""


def parse_frame(
    buffer: bytes | bytearray | memoryview,
) -> tuple[FrameParseResult, Frame | FrameParseError]:
    """Parse one frame with the shared FrameReader."""
    return DEFAULT_FRAME_READER.parse(buffer)
