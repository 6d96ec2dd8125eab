"""
Wi-Fi network scan aggregation.

The device answers a scan request with one RPC result per network found,
followed by an empty result. The aggregator collects the records into a
single list while the request stays pending, so no other command can be
interleaved with a running scan.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from improv_serial.exceptions import BusyError, DeviceError, ParseError, ScanUnsupportedError
from improv_serial.log import resolve_logger
from improv_serial.parsers.scan_parser import parse_scan_records
from improv_serial.protocol.commands import Command
from improv_serial.protocol.constants import ErrorState, ProtocolConstants

if TYPE_CHECKING:
    from improv_serial.dispatcher import RpcDispatcher
    from improv_serial.log import LoggerLike
    from improv_serial.models.records import Ssid
    from improv_serial.protocol.commands import RpcResult


class ScanAggregator:
    """
    Runs network scans and merges the streamed results.

    Networks are deduplicated by name, keeping the first record received.
    Records that fail to parse are logged and skipped.

    Example:
        >>> scanner = ScanAggregator(dispatcher)
        >>> for network in await scanner.scan():
        ...     print(network)
        HomeNet (-58 dBm, secured)
    """

    def __init__(
        self,
        dispatcher: RpcDispatcher,
        *,
        timeout: float = ProtocolConstants.SCAN_TIMEOUT,
        logger: LoggerLike | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._timeout = timeout
        self._logger = resolve_logger(logger, __name__)
        self._records: dict[str, Ssid] | None = None

    @property
    def in_progress(self) -> bool:
        """Check if a scan is collecting results."""
        return self._records is not None

    async def scan(self, timeout: float | None = None) -> list[Ssid]:
        """
        Scan for nearby networks.

        Args:
            timeout: Seconds to wait for the complete list (default: the
                aggregator's scan timeout).

        Returns:
            Networks in the order the device reported them.

        Raises:
            BusyError: If a scan or another command is outstanding.
            ScanUnsupportedError: If the firmware has no scan command.
            TimeoutError: If the list did not complete in time.
            DisconnectedError: If the session ended during the scan.
        """
        command = Command.scan_networks()
        if self.in_progress:
            raise BusyError("A network scan is already in progress")
        self._dispatcher.check_available(command)

        self._records = {}
        self._logger.debug("Scanning for networks")
        try:
            await self._dispatcher.send(
                command,
                self._timeout if timeout is None else timeout,
                accept=self._accept,
            )
        except DeviceError as e:
            if e.error_state == ErrorState.UNKNOWN_RPC_COMMAND:
                self._logger.info("Device does not support network scans")
                raise ScanUnsupportedError() from e
            raise
        else:
            networks = list(self._records.values())
            self._logger.info("Scan found %d networks", len(networks))
            return networks
        finally:
            self._records = None

    def _accept(self, result: RpcResult) -> bool:
        if result.is_empty:
            return True

        try:
            networks = parse_scan_records(result.fields)
        except ParseError as e:
            self._logger.warning("Skipping malformed scan record: %s", e)
            return False

        records = self._records
        if records is None:
            return False
        for network in networks:
            if network.name in records:
                self._logger.debug("Ignoring duplicate network %r", network.name)
                continue
            records[network.name] = network
        return False
