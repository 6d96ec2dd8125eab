"""Shared fixtures for client-level tests."""

import pytest

from fake_device import FakeImprovDevice
from improv_serial import ImprovSerialClient
from improv_serial.transport.mock import MockTransport


@pytest.fixture
def mock_transport():
    """Create a MockTransport instance."""
    return MockTransport()


@pytest.fixture
def device(mock_transport):
    """Attach a simulated Improv device to the mock transport."""
    return FakeImprovDevice(mock_transport)


@pytest.fixture
def client(mock_transport, device):
    """Create a client with short timeouts, talking to the simulated device."""
    return ImprovSerialClient(
        mock_transport,
        timeout=0.5,
        startup_timeout=0.3,
        state_timeout=0.3,
        scan_timeout=0.5,
    )
