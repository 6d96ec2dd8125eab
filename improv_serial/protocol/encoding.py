"""
Length-prefixed field encoding for Improv RPC payloads.

RPC commands and RPC results share one payload layout:

    [OPCODE][TOTAL_LENGTH][LEN_1][FIELD_1...][LEN_2][FIELD_2...]...

- OPCODE: the RPC command byte
- TOTAL_LENGTH: number of bytes that follow (all fields with their prefixes)
- Each field is a one-byte length followed by that many UTF-8 bytes

For example, provisioning "Home" / "pw" is encoded as:
    01 08 04 'H' 'o' 'm' 'e' 02 'p' 'w'
"""

from __future__ import annotations

from collections.abc import Iterable

from improv_serial.exceptions import ProtocolError
from improv_serial.protocol.constants import ProtocolConstants


def encode_field(value: str | bytes) -> bytes:
    """
    Encode a single length-prefixed field.

    Args:
        value: Text (encoded as UTF-8) or raw bytes.

    Returns:
        Length byte followed by the field bytes.

    Raises:
        ValueError: If the encoded field is longer than 255 bytes.

    Example:
        >>> encode_field("Home")
        b'\\x04Home'
    """
    data = value.encode("utf-8") if isinstance(value, str) else bytes(value)
    if len(data) > ProtocolConstants.MAX_FIELD_SIZE:
        raise ValueError(
            f"Field too long: {len(data)} bytes (max {ProtocolConstants.MAX_FIELD_SIZE})"
        )
    return bytes([len(data)]) + data


def encode_fields(values: Iterable[str | bytes]) -> bytes:
    """
    Encode a sequence of length-prefixed fields back to back.

    Args:
        values: Fields to encode, in order.

    Returns:
        Concatenated encoded fields.
    """
    return b"".join(encode_field(value) for value in values)


def decode_fields(data: bytes | bytearray | memoryview) -> list[str]:
    """
    Decode consecutive length-prefixed fields.

    Invalid UTF-8 sequences are replaced rather than rejected; device names
    and SSIDs are not guaranteed to be valid text.

    Args:
        data: Encoded fields, exactly filling the buffer.

    Returns:
        Decoded field strings.

    Raises:
        ProtocolError: If a field's length runs past the end of the data.
    """
    fields: list[str] = []
    pos = 0
    while pos < len(data):
        length = data[pos]
        end = pos + 1 + length
        if end > len(data):
            raise ProtocolError(
                f"Field at offset {pos} declares {length} bytes, "
                f"only {len(data) - pos - 1} available"
            )
        fields.append(bytes(data[pos + 1 : end]).decode("utf-8", errors="replace"))
        pos = end
    return fields


def encode_rpc_payload(opcode: int, fields: Iterable[str | bytes] = ()) -> bytes:
    """
    Encode an RPC payload: opcode, total length, then fields.

    Args:
        opcode: RPC command byte.
        fields: Arguments (commands) or results (results).

    Returns:
        Payload bytes ready to be framed.

    Raises:
        ValueError: If the fields do not fit the one-byte length fields.
    """
    body = encode_fields(fields)
    # Frame length byte covers opcode(1) + total length(1) + body
    if len(body) > ProtocolConstants.MAX_PAYLOAD_SIZE - 2:
        raise ValueError(
            f"RPC data too long: {len(body)} bytes "
            f"(max {ProtocolConstants.MAX_PAYLOAD_SIZE - 2})"
        )
    return bytes([opcode, len(body)]) + body


def decode_rpc_payload(payload: bytes | bytearray | memoryview) -> tuple[int, list[str]]:
    """
    Decode an RPC payload into its opcode and fields.

    Args:
        payload: Frame payload of an RPC or RPC result packet.

    Returns:
        Tuple of (opcode, fields).

    Raises:
        ProtocolError: If the payload is truncated or its lengths disagree.
    """
    if len(payload) < 2:
        raise ProtocolError(f"RPC payload too short: {len(payload)} bytes")

    opcode = payload[0]
    total_length = payload[1]
    if 2 + total_length > len(payload):
        raise ProtocolError(
            f"RPC payload declares {total_length} data bytes, "
            f"only {len(payload) - 2} available"
        )
    return opcode, decode_fields(payload[2 : 2 + total_length])
