"""
Data models for Improv protocol records.

This module contains Pydantic models representing the data handed to
callers:

- Device identity (DeviceInfo)
- Scanned networks (Ssid) and their signal classification
"""

from improv_serial.models.records import DeviceInfo, SignalQuality, Ssid

__all__ = [
    # Records
    "DeviceInfo",
    "Ssid",
    # Enums
    "SignalQuality",
]
