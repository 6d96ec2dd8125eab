"""
Pydantic models for Improv protocol records.

This module defines the data structures handed to callers, implemented as
immutable Pydantic models with validation.

Design principles:
- All models are frozen (immutable) by default
- Field names follow Python conventions, not the wire field order
- Optional device information is None when the firmware omits it
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SignalQuality(str, Enum):
    """Coarse signal strength classes used to pick a Wi-Fi icon."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    WEAK = "weak"


class DeviceInfo(BaseModel):
    """
    Device identity reported in answer to the identify command.

    Parsed once during initialize() and never modified afterwards.

    Example:
        >>> info = DeviceInfo(
        ...     firmware="ESPHome", version="2024.6.0",
        ...     chip_family="ESP32-C3", name="kitchen-sensor",
        ... )
        >>> info.os_name is None
        True
    """

    model_config = ConfigDict(frozen=True)

    firmware: str = Field(description="Firmware name")
    version: str = Field(description="Firmware version")
    chip_family: str = Field(description="Hardware chip or variant")
    name: str = Field(description="Device name")
    os_name: str | None = Field(default=None, description="Operating system name")
    os_version: str | None = Field(default=None, description="Operating system version")

    @field_validator("os_name", "os_version")
    @classmethod
    def empty_as_none(cls, v: str | None) -> str | None:
        """Firmware sends empty fields for values it does not know."""
        return v or None

    def __str__(self) -> str:
        return f"{self.name} ({self.firmware} {self.version} on {self.chip_family})"


class Ssid(BaseModel):
    """
    A Wi-Fi network found by a scan.

    Example:
        >>> network = Ssid(name="HomeNet", rssi=-58, secured=True)
        >>> network.signal_quality
        <SignalQuality.GOOD: 'good'>
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Network name")
    rssi: int = Field(ge=-128, le=127, description="Signal strength in dBm")
    secured: bool = Field(description="Whether the network requires a password")

    @property
    def signal_quality(self) -> SignalQuality:
        """Classify the signal strength."""
        if self.rssi >= -50:
            return SignalQuality.EXCELLENT
        if self.rssi >= -60:
            return SignalQuality.GOOD
        if self.rssi >= -70:
            return SignalQuality.FAIR
        return SignalQuality.WEAK

    def __str__(self) -> str:
        lock = "secured" if self.secured else "open"
        return f"{self.name} ({self.rssi} dBm, {lock})"
