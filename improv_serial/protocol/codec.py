"""
Incremental Improv serial frame codec.

The serial link delivers bytes in arbitrary chunks: a frame may be split
across several reads, several frames may arrive in one read, and device
firmware freely mixes frames with plain-text log lines. FrameCodec keeps an
accumulation buffer between reads and turns the stream into validated
frames in arrival order.

Resynchronization:
- Bytes before a preamble are noise and are discarded
- A trailing partial preamble is retained for the next read
- A frame that fails validation is dropped one byte at a time, so the
  search for the next preamble starts inside the bad frame; a corrupted
  length byte can delay, but never swallow, the frame that follows
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from improv_serial.log import resolve_logger
from improv_serial.protocol.constants import ProtocolConstants
from improv_serial.protocol.frame_reader import (
    Frame,
    FrameParseResult,
    FrameReader,
)

if TYPE_CHECKING:
    from improv_serial.log import LoggerLike
    from improv_serial.protocol.commands import Command


class FrameCodec:
    """
    Encodes outgoing commands and decodes the incoming byte stream.

    Decoding is restartable across arbitrarily small reads (down to one byte
    at a time) without losing or duplicating frames.

    Attributes:
        dropped_frames: Number of frames discarded because they failed
            validation.

    Example:
        >>> codec = FrameCodec()
        >>> wire = codec.encode(Command.identify())
        >>> frames = []
        >>> for byte in wire:
        ...     frames.extend(codec.feed(bytes([byte])))
        >>> len(frames)
        1
    """

    def __init__(self, logger: LoggerLike | None = None) -> None:
        self._logger = resolve_logger(logger, __name__)
        self._reader = FrameReader()
        self._buffer = bytearray()
        self.dropped_frames = 0

    @property
    def buffered(self) -> int:
        """Number of bytes held back waiting for more data."""
        return len(self._buffer)

    def encode(self, command: Command) -> bytes:
        """
        Encode a command as a framed, checksummed byte sequence.

        The frame is followed by a newline so line-buffered firmware
        processes it immediately.

        Args:
            command: Command to encode.

        Returns:
            Bytes ready to be written to the transport.
        """
        return command.to_frame().to_bytes() + bytes([ProtocolConstants.LINE_TERMINATOR])

    def feed(self, data: bytes | bytearray | memoryview) -> list[Frame]:
        """
        Append newly received bytes and extract every complete frame.

        Args:
            data: Chunk of bytes as read from the transport.

        Returns:
            Validated frames in arrival order (possibly empty).
        """
        self._buffer.extend(data)
        frames: list[Frame] = []
        preamble = ProtocolConstants.PREAMBLE

        while self._buffer:
            start = self._buffer.find(preamble)
            if start < 0:
                self._discard_noise(len(self._buffer) - self._partial_preamble_length())
                break
            if start > 0:
                self._discard_noise(start)

            result, parsed = self._reader.parse(self._buffer)

            if result == FrameParseResult.SUCCESS:
                frames.append(parsed)
                del self._buffer[: parsed.size]
                continue

            if result == FrameParseResult.INCOMPLETE_FRAME:
                break

            # Corrupt frame: skip past this preamble and search again
            self.dropped_frames += 1
            self._logger.warning("Dropping frame: %s", parsed.to_exception())
            del self._buffer[:1]

        for frame in frames:
            self._logger.debug("Received %r", frame)
        return frames

    def reset(self) -> None:
        """Discard any partially received data."""
        self._buffer.clear()

    def _partial_preamble_length(self) -> int:
        """Length of the longest preamble prefix at the end of the buffer."""
        preamble = ProtocolConstants.PREAMBLE
        for size in range(min(len(preamble) - 1, len(self._buffer)), 0, -1):
            if self._buffer.endswith(preamble[:size]):
                return size
        return 0

    def _discard_noise(self, count: int) -> None:
        if count <= 0:
            return
        noise = bytes(self._buffer[:count])
        del self._buffer[:count]
        if noise.strip():
            self._logger.debug("Device output: %r", noise)
