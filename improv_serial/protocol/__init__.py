"""
Protocol layer for Improv serial communication.

This module contains the low-level protocol handling:
- Packet types, RPC opcodes, state and error codes
- Checksum calculation and validation
- Length-prefixed field encoding
- Frame parsing and building
- RPC command and result types
- Incremental stream codec
"""

from improv_serial.protocol.checksums import append_checksum, calculate_checksum
from improv_serial.protocol.codec import FrameCodec
from improv_serial.protocol.commands import Command, RpcResult
from improv_serial.protocol.constants import (
    ErrorState,
    ImprovState,
    PacketType,
    ProtocolConstants,
    RpcCommand,
)
from improv_serial.protocol.encoding import (
    decode_fields,
    decode_rpc_payload,
    encode_field,
    encode_fields,
    encode_rpc_payload,
)
from improv_serial.protocol.frame_reader import (
    DEFAULT_FRAME_READER,
    Frame,
    FrameParseError,
    FrameParseResult,
    FrameReader,
    build_frame,
    parse_frame,
)

__all__ = [
    # Constants
    "PacketType",
    "RpcCommand",
    "ImprovState",
    "ErrorState",
    "ProtocolConstants",
    # Checksums
    "calculate_checksum",
    "append_checksum",
    # Encoding
    "encode_field",
    "encode_fields",
    "decode_fields",
    "encode_rpc_payload",
    "decode_rpc_payload",
    # Frame Parsing
    "Frame",
    "FrameReader",
    "FrameParseResult",
    "FrameParseError",
    "build_frame",
    "parse_frame",
    "DEFAULT_FRAME_READER",
    # Commands
    "Command",
    "RpcResult",
    # Codec
    "FrameCodec",
]
