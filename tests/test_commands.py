"""Tests for RPC payload encoding, commands and results."""

import pytest

from improv_serial.exceptions import ProtocolError
from improv_serial.protocol import (
    Command,
    Frame,
    PacketType,
    RpcCommand,
    RpcResult,
    decode_fields,
    decode_rpc_payload,
    encode_field,
    encode_rpc_payload,
)


class TestFieldEncoding:
    """Tests for length-prefixed fields."""

    def test_encode_field(self):
        """Test a single field."""
        assert encode_field("Home") == b"\x04Home"

    def test_encode_field_utf8(self):
        """Test that lengths count UTF-8 bytes."""
        assert encode_field("café") == b"\x05caf\xc3\xa9"

    def test_encode_field_too_long(self):
        """Test the 255 byte field limit."""
        with pytest.raises(ValueError):
            encode_field("x" * 256)

    def test_decode_fields(self):
        """Test decoding consecutive fields, including an empty one."""
        assert decode_fields(b"\x04Home\x00\x02pw") == ["Home", "", "pw"]

    def test_decode_fields_truncated(self):
        """Test a field length running past the data."""
        with pytest.raises(ProtocolError):
            decode_fields(b"\x05Home")

    def test_decode_fields_invalid_utf8(self):
        """Test that undecodable bytes are replaced."""
        assert decode_fields(b"\x02\xff\xfe") == ["\ufffd\ufffd"]


class TestRpcPayload:
    """Tests for RPC payload encoding."""

    def test_provision_payload(self):
        """Test the credentials layout."""
        assert encode_rpc_payload(0x01, ["Home", "pw"]) == b"\x01\x08\x04Home\x02pw"

    def test_decode_payload(self):
        """Test decoding opcode and fields."""
        assert decode_rpc_payload(b"\x01\x08\x04Home\x02pw") == (0x01, ["Home", "pw"])

    def test_decode_payload_too_short(self):
        """Test a payload without a length byte."""
        with pytest.raises(ProtocolError):
            decode_rpc_payload(b"\x01")

    def test_decode_payload_bad_total_length(self):
        """Test a total length larger than the data."""
        with pytest.raises(ProtocolError):
            decode_rpc_payload(b"\x03\x09\x04Home")

    def test_payload_too_large(self):
        """Test data that cannot fit in one frame."""
        with pytest.raises(ValueError):
            encode_rpc_payload(0x01, ["x" * 200, "y" * 60])


class TestCommand:
    """Tests for Command."""

    def test_factories(self):
        """Test opcodes chosen by the factories."""
        assert Command.identify().opcode == RpcCommand.REQUEST_INFO
        assert Command.scan_networks().opcode == RpcCommand.REQUEST_WIFI_NETWORKS
        assert Command.request_current_state().opcode == RpcCommand.REQUEST_CURRENT_STATE
        assert Command.provision("Home", "pw").args == ("Home", "pw")

    def test_provision_rejects_oversize_credentials(self):
        """Test that oversize credentials fail before encoding a frame."""
        with pytest.raises(ValueError):
            Command.provision("x" * 256, "pw")

    def test_to_frame(self):
        """Test wrapping a command in an RPC frame."""
        frame = Command.provision("Home", "pw").to_frame()
        assert frame.packet == PacketType.RPC
        assert frame.payload == b"\x01\x08\x04Home\x02pw"

    def test_decode(self):
        """Test decoding a command payload."""
        command = Command.decode(b"\x01\x08\x04Home\x02pw")
        assert command == Command.provision("Home", "pw")

    def test_decode_unknown_opcode(self):
        """Test decoding an opcode the client does not know."""
        with pytest.raises(ProtocolError):
            Command.decode(b"\x7f\x00")

    def test_repr_hides_password(self):
        """Test that credentials never appear in logs."""
        text = repr(Command.provision("Home", "hunter22"))
        assert "Home" in text
        assert "hunter22" not in text


class TestRpcResult:
    """Tests for RpcResult."""

    def test_from_frame(self):
        """Test decoding a result frame."""
        frame = Frame(PacketType.RPC_RESULT, b"\x01\x14\x13http://192.168.1.42")
        result = RpcResult.from_frame(frame)
        assert result.command == RpcCommand.SEND_WIFI_SETTINGS
        assert result.fields == ("http://192.168.1.42",)
        assert not result.is_empty

    def test_empty_result(self):
        """Test the scan terminator."""
        result = RpcResult.from_frame(Frame(PacketType.RPC_RESULT, b"\x04\x00"))
        assert result.is_empty

    def test_from_wrong_frame_type(self):
        """Test that state frames are not results."""
        with pytest.raises(ProtocolError):
            RpcResult.from_frame(Frame(PacketType.CURRENT_STATE, b"\x02"))

    def test_to_bytes(self):
        """Test serializing a result as a device would."""
        wire = RpcResult(RpcCommand.REQUEST_WIFI_NETWORKS).to_bytes()
        assert wire[:10] == b"IMPROV\x01\x04\x02\x04"
