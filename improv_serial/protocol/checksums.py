"""
8-bit additive checksum calculation.

The Improv serial protocol uses a simple additive checksum:
- Sum every byte of the frame before the checksum (preamble included)
- Keep only the lower 8 bits (modulo 256)
- Transmit as a single raw byte

The checksum is the last byte of the frame.
"""

from __future__ import annotations


def calculate_checksum(data: bytes | bytearray | memoryview) -> int:
    """
    Sum of all bytes, truncated to 8 bits.

    Args:
        data: Data to checksum (everything before the checksum byte).

    Returns:
        8-bit checksum value (0-255).

    Example:
        >>> calculate_checksum(b"IMPROV\\x01\\x01\\x01\\x02")
        226
    """
    return sum(data) & 0xFF


def append_checksum(data: bytes | bytearray) -> bytes:
    """Return ``data`` followed by its checksum byte."""
    return bytes(data) + bytes([calculate_checksum(data)])
