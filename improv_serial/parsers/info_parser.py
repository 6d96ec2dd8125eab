"""
Device information record parser.

The identify command (REQUEST_INFO) is answered with a single RPC result
whose fields are, in order:

    firmware, version, chip family, device name[, os name[, os version]]

Firmware older than the OS fields sends only the first four.
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import ValidationError

from improv_serial.exceptions import ParseError
from improv_serial.models.records import DeviceInfo

# Field positions in the identify result
FIELD_FIRMWARE = 0
FIELD_VERSION = 1
FIELD_CHIP_FAMILY = 2
FIELD_NAME = 3
FIELD_OS_NAME = 4
FIELD_OS_VERSION = 5

REQUIRED_FIELD_COUNT = 4


def parse_device_info(fields: Sequence[str]) -> DeviceInfo:
    """
    Parse the fields of an identify result.

    Args:
        fields: Decoded RPC result fields.

    Returns:
        DeviceInfo with optional OS fields set when present.

    Raises:
        ParseError: If fewer than four fields were received.

    Example:
        >>> info = parse_device_info(["ESPHome", "2024.6.0", "ESP32", "kitchen"])
        >>> info.name
        'kitchen'
    """
    if len(fields) < REQUIRED_FIELD_COUNT:
        raise ParseError(
            f"Device info needs {REQUIRED_FIELD_COUNT} fields, got {len(fields)}",
            record_type="DeviceInfo",
            fields=tuple(fields),
        )

    try:
        return DeviceInfo(
            firmware=fields[FIELD_FIRMWARE],
            version=fields[FIELD_VERSION],
            chip_family=fields[FIELD_CHIP_FAMILY],
            name=fields[FIELD_NAME],
            os_name=fields[FIELD_OS_NAME] if len(fields) > FIELD_OS_NAME else None,
            os_version=fields[FIELD_OS_VERSION] if len(fields) > FIELD_OS_VERSION else None,
        )
    except ValidationError as e:
        raise ParseError(str(e), record_type="DeviceInfo", fields=tuple(fields)) from e
