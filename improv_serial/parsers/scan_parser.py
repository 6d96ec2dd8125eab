"""
Wi-Fi scan record parser.

Each scan result packet carries records of three fields:

    name, rssi (decimal text, e.g. "-61"), secured ("YES" or "NO")

Firmware sends one record per packet; several records back to back in one
packet are accepted too. An empty result ends the scan and is handled by
the caller, not here.
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import ValidationError

from improv_serial.exceptions import ParseError
from improv_serial.models.records import Ssid

RECORD_FIELD_COUNT = 3

_SECURED_VALUES = {"YES": True, "NO": False}


def parse_ssid(name: str, rssi: str, secured: str) -> Ssid:
    """
    Parse one scan record.

    Args:
        name: Network name.
        rssi: Signal strength as decimal text.
        secured: "YES" or "NO" (case-insensitive).

    Returns:
        Parsed Ssid.

    Raises:
        ParseError: If rssi is not a number in range or secured is unknown.
    """
    fields = (name, rssi, secured)
    try:
        rssi_value = int(rssi.strip())
    except ValueError:
        raise ParseError(f"Invalid RSSI {rssi!r}", record_type="Ssid", fields=fields) from None

    flag = _SECURED_VALUES.get(secured.strip().upper())
    if flag is None:
        raise ParseError(f"Invalid secured flag {secured!r}", record_type="Ssid", fields=fields)

    try:
        return Ssid(name=name, rssi=rssi_value, secured=flag)
    except ValidationError as e:
        raise ParseError(str(e), record_type="Ssid", fields=fields) from e


def parse_scan_records(fields: Sequence[str]) -> list[Ssid]:
    """
    Parse every record in a scan result packet.

    Args:
        fields: Decoded RPC result fields (a multiple of three).

    Returns:
        Records in packet order.

    Raises:
        ParseError: If the field count is not a multiple of three or a
            record is invalid.

    Example:
        >>> [s.name for s in parse_scan_records(["HomeNet", "-58", "YES"])]
        ['HomeNet']
    """
    if len(fields) % RECORD_FIELD_COUNT:
        raise ParseError(
            f"Scan result has {len(fields)} fields, expected a multiple of {RECORD_FIELD_COUNT}",
            record_type="Ssid",
            fields=tuple(fields),
        )
    return [
        parse_ssid(*fields[i : i + RECORD_FIELD_COUNT])
        for i in range(0, len(fields), RECORD_FIELD_COUNT)
    ]
