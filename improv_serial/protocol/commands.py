"""
RPC command and result types.

Commands are the client's side of an RPC exchange; results are what the
device answers. Both share the payload layout from the encoding module.
"""

from __future__ import annotations

from dataclasses import dataclass

from improv_serial.exceptions import ProtocolError
from improv_serial.protocol.constants import PacketType, RpcCommand
from improv_serial.protocol.encoding import decode_rpc_payload, encode_rpc_payload
from improv_serial.protocol.frame_reader import Frame, build_frame


@dataclass(frozen=True)
class Command:
    """
    An RPC command to send to the device.

    Use the factory class methods rather than building instances by hand;
    they validate arguments for each opcode.

    Attributes:
        opcode: RPC command code.
        args: String arguments, encoded as length-prefixed UTF-8 fields.
    """

    opcode: RpcCommand
    args: tuple[str, ...] = ()

    @classmethod
    def identify(cls) -> Command:
        """Request device information."""
        return cls(RpcCommand.REQUEST_INFO)

    @classmethod
    def scan_networks(cls) -> Command:
        """Request the list of nearby Wi-Fi networks."""
        return cls(RpcCommand.REQUEST_WIFI_NETWORKS)

    @classmethod
    def request_current_state(cls) -> Command:
        """Ask the device to report its current state."""
        return cls(RpcCommand.REQUEST_CURRENT_STATE)

    @classmethod
    def provision(cls, ssid: str, password: str) -> Command:
        """
        Send Wi-Fi credentials.

        Args:
            ssid: Network name.
            password: Network password, empty for open networks.

        Raises:
            ValueError: If the credentials do not fit in a single frame.
        """
        command = cls(RpcCommand.SEND_WIFI_SETTINGS, (ssid, password))
        # Encode once so oversize credentials fail before anything is sent
        command.encode_payload()
        return command

    @classmethod
    def decode(cls, payload: bytes | bytearray | memoryview) -> Command:
        """
        Decode an RPC packet payload back into a command.

        Args:
            payload: Payload of an RPC frame.

        Raises:
            ProtocolError: If the payload is malformed or the opcode unknown.
        """
        opcode, fields = decode_rpc_payload(payload)
        try:
            rpc = RpcCommand(opcode)
        except ValueError:
            raise ProtocolError(f"Unknown RPC opcode 0x{opcode:02X}") from None
        return cls(rpc, tuple(fields))

    def encode_payload(self) -> bytes:
        """Encode the RPC payload (opcode, length and arguments)."""
        return encode_rpc_payload(self.opcode, self.args)

    def to_frame(self) -> Frame:
        """Wrap the command in an RPC frame."""
        return Frame(packet_type=PacketType.RPC, payload=self.encode_payload())

    def __repr__(self) -> str:
        # Never log credentials
        if self.opcode == RpcCommand.SEND_WIFI_SETTINGS and len(self.args) == 2:
            return f"Command({self.opcode.name}, ssid={self.args[0]!r}, password=***)"
        if self.args:
            return f"Command({self.opcode.name}, args={self.args!r})"
        return f"Command({self.opcode.name})"


@dataclass(frozen=True)
class RpcResult:
    """
    A decoded RPC result packet.

    Attributes:
        command: Opcode of the command this result answers.
        fields: Result strings; empty for acknowledgments and for the
            terminator of a multi-result answer.
    """

    command: int
    fields: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        """Check if the result carries no fields."""
        return not self.fields

    @classmethod
    def from_frame(cls, frame: Frame) -> RpcResult:
        """
        Decode the payload of an RPC result frame.

        Raises:
            ProtocolError: If the frame is not an RPC result or is malformed.
        """
        if frame.packet_type != PacketType.RPC_RESULT:
            raise ProtocolError(f"Not an RPC result frame: {frame!r}")
        opcode, fields = decode_rpc_payload(frame.payload)
        return cls(opcode, tuple(fields))

    def to_bytes(self) -> bytes:
        """
        Serialize as a complete RPC result frame.

        Used by device simulators; the client never sends results.
        """
        return build_frame(PacketType.RPC_RESULT, encode_rpc_payload(self.command, self.fields))
