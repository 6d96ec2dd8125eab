"""Tests for frame parsing and the incremental codec."""

import logging

import pytest

from improv_serial.exceptions import ChecksumError, FramingError
from improv_serial.protocol import (
    Command,
    FrameCodec,
    FrameParseResult,
    FrameReader,
    PacketType,
    ProtocolConstants,
    RpcCommand,
    RpcResult,
    build_frame,
)

READY_REPORT = b"IMPROV\x01\x01\x01\x02\xe2"


class TestBuildFrame:
    """Tests for build_frame."""

    def test_state_frame_bytes(self):
        """Test exact wire bytes of a state report."""
        assert build_frame(PacketType.CURRENT_STATE, b"\x02") == READY_REPORT

    def test_empty_payload(self):
        """Test a frame without data."""
        frame = build_frame(PacketType.RPC_RESULT)
        assert frame[8] == 0
        assert len(frame) == 10

    def test_payload_too_large_raises(self):
        """Test that payloads over 255 bytes are rejected."""
        with pytest.raises(ValueError):
            build_frame(PacketType.RPC, bytes(256))


class TestFrameReader:
    """Tests for FrameReader."""

    @pytest.fixture
    def reader(self):
        """Create a FrameReader instance."""
        return FrameReader()

    def test_parse_success(self, reader):
        """Test parsing a complete frame."""
        result, frame = reader.parse(READY_REPORT)
        assert result == FrameParseResult.SUCCESS
        assert frame.packet == PacketType.CURRENT_STATE
        assert frame.payload == b"\x02"
        assert frame.size == len(READY_REPORT)

    def test_parse_ignores_trailing_bytes(self, reader):
        """Test that data after the frame is not part of it."""
        result, frame = reader.parse(READY_REPORT + b"\nIMPR")
        assert result == FrameParseResult.SUCCESS
        assert frame.size == len(READY_REPORT)

    def test_parse_empty(self, reader):
        """Test parsing an empty buffer."""
        result, _ = reader.parse(b"")
        assert result == FrameParseResult.EMPTY_BUFFER

    def test_parse_incomplete_header(self, reader):
        """Test parsing a truncated header."""
        result, _ = reader.parse(READY_REPORT[:7])
        assert result == FrameParseResult.INCOMPLETE_FRAME

    def test_parse_incomplete_data(self, reader):
        """Test parsing a frame missing its checksum."""
        result, _ = reader.parse(READY_REPORT[:-1])
        assert result == FrameParseResult.INCOMPLETE_FRAME

    def test_parse_bad_preamble(self, reader):
        """Test parsing data that is not a frame."""
        result, _ = reader.parse(b"booting...")
        assert result == FrameParseResult.INVALID_PREAMBLE

    def test_parse_bad_checksum(self, reader):
        """Test checksum mismatch detection."""
        corrupted = READY_REPORT[:-1] + b"\x00"
        result, error = reader.parse(corrupted)
        assert result == FrameParseResult.INVALID_CHECKSUM
        assert "0xE2" in error.message
        assert error.expected == 0xE2
        assert error.received == 0x00

    def test_parse_unsupported_version(self, reader):
        """Test rejecting another protocol version."""
        frame = build_frame(PacketType.CURRENT_STATE, b"\x02", version=2)
        result, error = reader.parse(frame)
        assert result == FrameParseResult.UNSUPPORTED_VERSION
        exc = error.to_exception()
        assert type(exc) is FramingError
        assert "version 2" in str(exc)

    def test_checksum_failure_as_exception(self, reader):
        """Test that a checksum mismatch maps to ChecksumError."""
        _, error = reader.parse(READY_REPORT[:-1] + b"\x00")
        exc = error.to_exception()
        assert isinstance(exc, ChecksumError)
        assert str(exc) == "Checksum validation failed (expected 0xE2, got 0x00)"


class TestFrameCodec:
    """Tests for FrameCodec."""

    @pytest.fixture
    def codec(self):
        """Create a FrameCodec instance."""
        return FrameCodec()

    def test_encode_identify(self, codec):
        """Test the identify command on the wire."""
        wire = codec.encode(Command.identify())
        assert wire.startswith(b"IMPROV\x01\x03\x02\x03\x00")
        assert wire.endswith(b"\n")

    def test_decode_single_frame(self, codec):
        """Test decoding one frame in one chunk."""
        frames = codec.feed(READY_REPORT)
        assert len(frames) == 1
        assert frames[0].payload == b"\x02"
        assert codec.buffered == 0

    def test_decode_byte_at_a_time(self, codec):
        """Test that frames survive arbitrary chunking."""
        wire = READY_REPORT + b"\n" + RpcResult(RpcCommand.REQUEST_INFO, ("a", "b", "c", "d")).to_bytes()
        frames = []
        for byte in wire:
            frames.extend(codec.feed(bytes([byte])))
        assert [f.packet for f in frames] == [PacketType.CURRENT_STATE, PacketType.RPC_RESULT]

    def test_decode_several_frames_in_one_chunk(self, codec):
        """Test that every frame in a chunk is returned in order."""
        wire = build_frame(PacketType.CURRENT_STATE, b"\x03") + build_frame(PacketType.CURRENT_STATE, b"\x04")
        frames = codec.feed(wire)
        assert [f.payload for f in frames] == [b"\x03", b"\x04"]

    def test_skips_log_output(self, codec):
        """Test that plain-text output around frames is discarded."""
        frames = codec.feed(b"[I][wifi]: starting\r\n" + READY_REPORT + b"\n[D] done\n")
        assert len(frames) == 1
        assert codec.buffered == 0

    def test_keeps_partial_preamble(self, codec):
        """Test that a preamble split across reads is not lost."""
        assert codec.feed(b"noise IMP") == []
        assert codec.buffered == 3
        frames = codec.feed(READY_REPORT[3:])
        assert len(frames) == 1

    def test_resyncs_after_corrupt_frame(self, codec):
        """Test that a corrupt frame is dropped and the next one decoded."""
        corrupted = READY_REPORT[:-1] + b"\x00"
        good = build_frame(PacketType.CURRENT_STATE, b"\x04")
        frames = codec.feed(corrupted + good)
        assert [f.payload for f in frames] == [b"\x04"]
        assert codec.dropped_frames == 1

    def test_resyncs_after_corrupt_payload_byte(self, codec):
        """Test that a flipped payload byte only costs that frame."""
        damaged = bytearray(RpcResult(RpcCommand.REQUEST_INFO, ("ESPHome", "2024.6.0")).to_bytes())
        damaged[ProtocolConstants.HEADER_SIZE + 3] ^= 0x20
        good = build_frame(PacketType.CURRENT_STATE, b"\x03")

        frames = codec.feed(bytes(damaged) + b"\n" + good)

        assert [f.payload for f in frames] == [b"\x03"]
        assert codec.dropped_frames == 1
        assert codec.buffered == 0

    def test_logs_dropped_frame(self, codec, caplog):
        """Test that a dropped frame is reported with its reason."""
        with caplog.at_level(logging.WARNING):
            codec.feed(READY_REPORT[:-1] + b"\x00")
        assert "Dropping frame: Checksum validation failed" in caplog.text

    def test_corrupt_length_does_not_swallow_next_frame(self, codec):
        """Test recovery when a length byte claims more data than follows."""
        # Length 0xFF with no data, followed by a valid frame
        broken = b"IMPROV\x01\x01\xff"
        good = build_frame(PacketType.CURRENT_STATE, b"\x02")
        frames = codec.feed(broken + good)
        assert frames == []
        # Once the bogus length is satisfied, the checksum fails and the
        # decoder finds the real frame inside the consumed bytes
        frames = codec.feed(bytes(255))
        assert [f.payload for f in frames] == [b"\x02"]

    def test_reset(self, codec):
        """Test discarding a partial frame."""
        codec.feed(READY_REPORT[:5])
        codec.reset()
        assert codec.buffered == 0
