"""
Parsers for Improv RPC result records.

This package converts the decoded string fields of RPC results into
structured Python objects:

1. **Info Parser**: Device identity from the identify command
2. **Scan Parser**: Wi-Fi network records from the scan command

Example:
    >>> from improv_serial.parsers import parse_scan_records
    >>> networks = parse_scan_records(["HomeNet", "-58", "YES"])
    >>> networks[0].secured
    True
"""

from improv_serial.parsers.info_parser import parse_device_info
from improv_serial.parsers.scan_parser import parse_scan_records, parse_ssid

__all__ = [
    "parse_device_info",
    "parse_scan_records",
    "parse_ssid",
]
