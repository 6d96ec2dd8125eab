"""Tests for MockTransport."""

import asyncio

import pytest

from improv_serial.exceptions import TransportError
from improv_serial.transport.mock import MockTransport


class TestMockTransport:
    """Tests for MockTransport class."""

    @pytest.fixture
    def transport(self):
        """Fresh, closed transport."""
        return MockTransport()

    @pytest.mark.asyncio
    async def test_open_close(self, transport):
        """Test the open flag follows open() and close()."""
        assert not transport.is_open
        await transport.open()
        assert transport.is_open
        await transport.close()
        assert not transport.is_open

    @pytest.mark.asyncio
    async def test_double_open_raises(self, transport):
        """Test that a second open() is rejected."""
        await transport.open()
        with pytest.raises(TransportError):
            await transport.open()

    @pytest.mark.asyncio
    async def test_write_records_data(self, transport):
        """Test that every write is recorded."""
        await transport.open()
        await transport.write(b"hello")
        await transport.write(b"world")
        assert transport.written_data == [b"hello", b"world"]
        assert transport.last_written == b"world"

    @pytest.mark.asyncio
    async def test_write_when_closed_raises(self, transport):
        """Test writing before open()."""
        with pytest.raises(TransportError):
            await transport.write(b"test")

    @pytest.mark.asyncio
    async def test_read_chunks_in_order(self, transport):
        """Test that queued chunks are read in FIFO order."""
        await transport.open()
        transport.add_responses(b"one", b"two")
        assert await transport.read() == b"one"
        assert await transport.read() == b"two"

    @pytest.mark.asyncio
    async def test_read_respects_max_size(self, transport):
        """Test splitting a chunk across reads."""
        await transport.open()
        transport.add_response(b"hello world")
        assert await transport.read(5) == b"hello"
        assert await transport.read(6) == b" world"

    @pytest.mark.asyncio
    async def test_read_waits_for_data(self, transport):
        """Test that read blocks until bytes arrive."""
        await transport.open()
        transport.add_response_later(b"late", 0.05)
        assert await asyncio.wait_for(transport.read(), timeout=1.0) == b"late"

    @pytest.mark.asyncio
    async def test_disconnect(self, transport):
        """Test simulated device loss."""
        await transport.open()
        transport.disconnect()
        assert await transport.read() == b""
        with pytest.raises(TransportError):
            await transport.write(b"x")

    @pytest.mark.asyncio
    async def test_close_wakes_reader(self, transport):
        """Test that closing ends a pending read."""
        await transport.open()
        reader = asyncio.create_task(transport.read())
        await asyncio.sleep(0)
        await transport.close()
        assert await asyncio.wait_for(reader, timeout=1.0) == b""

    @pytest.mark.asyncio
    async def test_fail(self, transport):
        """Test a simulated read failure."""
        await transport.open()
        transport.fail()
        with pytest.raises(TransportError):
            await transport.read()

    @pytest.mark.asyncio
    async def test_response_callback(self, transport):
        """Test answers generated from written bytes."""
        await transport.open()
        transport.set_response_callback(lambda data: data.upper())
        await transport.write(b"ping")
        assert await transport.read() == b"PING"

    @pytest.mark.asyncio
    async def test_clear(self, transport):
        """Test dropping history and unread bytes."""
        await transport.open()
        await transport.write(b"test")
        transport.add_response(b"stale")
        transport.clear()
        assert transport.written_data == []
        transport.add_response(b"fresh")
        assert await transport.read() == b"fresh"

    @pytest.mark.asyncio
    async def test_discard_buffers(self, transport):
        """Test discarding a partially read chunk."""
        await transport.open()
        transport.add_responses(b"buffered data", b"next")
        await transport.read(4)
        transport.discard_buffers()
        assert await transport.read() == b"next"

    @pytest.mark.asyncio
    async def test_context_manager(self):
        """Test async with opens and closes."""
        async with MockTransport() as transport:
            assert transport.is_open
        assert not transport.is_open

    @pytest.mark.asyncio
    async def test_assert_helpers(self, transport):
        """Test assert_written and assert_write_count."""
        await transport.open()
        await transport.write(b"a")
        await transport.write(b"b")
        transport.assert_written(b"b")
        transport.assert_written(b"a", 0)
        transport.assert_write_count(2)
        with pytest.raises(AssertionError):
            transport.assert_written(b"wrong")
        with pytest.raises(AssertionError):
            transport.assert_write_count(3)

    @pytest.mark.asyncio
    async def test_silent_callback(self, transport):
        """Test a callback that chooses not to answer."""
        await transport.open()
        transport.set_response_callback(lambda data: None)
        await transport.write(b"ping")
        transport.add_response(b"later")
        assert await transport.read() == b"later"

    @pytest.mark.asyncio
    async def test_close_drops_scheduled_responses(self, transport):
        """Test that delayed chunks never arrive after close()."""
        await transport.open()
        transport.add_response_later(b"late", 0.02)
        await transport.close()
        await asyncio.sleep(0.05)

        await transport.open()
        transport.add_response(b"fresh")
        # Only the end-of-stream marker from close() precedes it
        assert await transport.read() == b""
        assert await transport.read() == b"fresh"
