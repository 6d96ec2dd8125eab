"""
Improv Wi-Fi serial client.

This module provides the main client interface for provisioning Wi-Fi
credentials onto a device over a serial link using the Improv protocol.

The client drives the device lifecycle:
    CONNECTING -> initialize() -> READY
    READY -> provision() -> PROVISIONING -> PROVISIONED
    any state -> close() -> CLOSED
    any state -> transport lost -> DISCONNECTED

A background reader task decodes the incoming byte stream and feeds every
frame to the dispatcher, which resolves the outstanding command and updates
the state machine. Commands are issued one at a time.

Example:
    >>> from improv_serial import ImprovSerialClient
    >>> from improv_serial.transport import AsyncSerialTransport
    >>>
    >>> async def main():
    ...     client = ImprovSerialClient(AsyncSerialTransport("/dev/ttyACM0"))
    ...     info = await client.initialize()
    ...     print(f"Found {info}")
    ...     for network in await client.scan():
    ...         print(network)
    ...     url = await client.provision("HomeNet", "hunter22")
    ...     await client.close()
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Callable

from improv_serial.dispatcher import RpcDispatcher
from improv_serial.exceptions import (
    ImprovError,
    InvalidStateError,
    ParseError,
    ProtocolViolationError,
    TimeoutError,
    TransportError,
)
from improv_serial.log import resolve_logger
from improv_serial.parsers.info_parser import parse_device_info
from improv_serial.protocol.codec import FrameCodec
from improv_serial.protocol.commands import Command
from improv_serial.protocol.constants import ErrorState, ProtocolConstants
from improv_serial.provision import ProvisionFlow, cancel_task, redirect_url
from improv_serial.scan import ScanAggregator
from improv_serial.state import DeviceState, EventChannel, StateMachine

if TYPE_CHECKING:
    from types import TracebackType

    from improv_serial.log import LoggerLike
    from improv_serial.models.records import DeviceInfo, Ssid
    from improv_serial.state import ErrorChange, StateChange
    from improv_serial.transport.abc import AbstractTransport


class ImprovSerialClient:
    """
    Client for provisioning Improv Wi-Fi devices over serial.

    The client owns a transport for its whole lifetime: it opens it in
    initialize() if needed and closes it in close(), on a failed handshake,
    or when the device goes away.

    Attributes:
        state: Current device lifecycle state.
        error: Last error state, None until one is reported.
        info: Device information from the identify handshake.
        next_url: Redirect URL reported by a provisioned device.
        transport: The underlying transport layer.

    Example:
        >>> client = ImprovSerialClient(transport, timeout=5.0)
        >>> unsubscribe = client.on_state_changed(lambda c: print(c.state.name))
        >>> await client.initialize()
        READY
        >>> await client.provision("HomeNet", "hunter22")
        PROVISIONING
        PROVISIONED
        'http://192.168.1.42'
    """

    def __init__(
        self,
        transport: AbstractTransport,
        *,
        timeout: float = ProtocolConstants.DEFAULT_COMMAND_TIMEOUT,
        startup_timeout: float = ProtocolConstants.STARTUP_TIMEOUT,
        state_timeout: float = ProtocolConstants.STATE_REQUEST_TIMEOUT,
        scan_timeout: float = ProtocolConstants.SCAN_TIMEOUT,
        logger: LoggerLike | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            transport: Transport to the device; opened by initialize().
            timeout: Default command timeout in seconds.
            startup_timeout: Seconds to wait for the identify answer.
            state_timeout: Seconds to wait for a requested state report.
            scan_timeout: Seconds to wait for a complete network list.
            logger: Logger to use instead of the module loggers.
        """
        self._transport = transport
        self._startup_timeout = startup_timeout
        self._state_timeout = state_timeout
        self._logger = resolve_logger(logger, __name__)

        self._codec = FrameCodec(logger)
        self._state_machine = StateMachine(logger)
        self._dispatcher = RpcDispatcher(
            transport,
            self._state_machine,
            codec=self._codec,
            timeout=timeout,
            logger=logger,
        )
        self._scanner = ScanAggregator(self._dispatcher, timeout=scan_timeout, logger=logger)
        self._provisioner = ProvisionFlow(self._dispatcher, self._state_machine, logger=logger)
        self._disconnected: EventChannel[str] = EventChannel("disconnect", logger)

        self._info: DeviceInfo | None = None
        self._next_url: str | None = None
        self._reader_task: asyncio.Task[None] | None = None

        self._state_machine.state_changed.subscribe(self._on_state_changed)

    @property
    def state(self) -> DeviceState:
        """Get the current device lifecycle state."""
        return self._state_machine.state

    @property
    def error(self) -> ErrorState | int | None:
        """Get the last error state."""
        return self._state_machine.error

    @property
    def info(self) -> DeviceInfo | None:
        """Get the device information, None before initialize()."""
        return self._info

    @property
    def next_url(self) -> str | None:
        """Get the redirect URL reported by the provisioned device."""
        return self._next_url

    @property
    def is_provisioned(self) -> bool:
        """Check if the device reported PROVISIONED."""
        return self._state_machine.state is DeviceState.PROVISIONED

    @property
    def transport(self) -> AbstractTransport:
        """Get the underlying transport."""
        return self._transport

    def on_state_changed(self, listener: Callable[[StateChange], None]) -> Callable[[], None]:
        """
        Subscribe to lifecycle transitions.

        Returns:
            A callable that removes the listener.
        """
        return self._state_machine.state_changed.subscribe(listener)

    def on_error_changed(self, listener: Callable[[ErrorChange], None]) -> Callable[[], None]:
        """
        Subscribe to error state updates, including repeated codes.

        Returns:
            A callable that removes the listener.
        """
        return self._state_machine.error_changed.subscribe(listener)

    def on_disconnect(self, listener: Callable[[str], None]) -> Callable[[], None]:
        """
        Subscribe to the loss of the transport.

        The listener is called at most once, with the reason. Closing the
        client does not count as a disconnect.

        Returns:
            A callable that removes the listener.
        """
        return self._disconnected.subscribe(listener)

    async def initialize(self) -> DeviceInfo:
        """
        Open the link and perform the identify handshake.

        Sends the identify command, then asks the device for its current
        state. A device that is already provisioned reports its redirect
        URL, available as next_url afterwards.

        Returns:
            The device information.

        Raises:
            InvalidStateError: If initialize() was already called.
            TransportError: If the transport cannot be opened.
            TimeoutError: If the device does not answer (not an Improv device).
            ProtocolViolationError: If the identify answer is malformed.
            DisconnectedError: If the device goes away during the handshake.
        """
        if self._reader_task is not None or self.state is not DeviceState.CONNECTING:
            raise InvalidStateError(
                f"Cannot initialize: client is in {self.state.name} state"
            )

        if not self._transport.is_open:
            self._logger.debug("Opening transport %s", self._transport.port_name)
            await self._transport.open()
        self._transport.discard_buffers()

        self._reader_task = asyncio.create_task(
            self._read_loop(), name=f"improv-reader-{self._transport.port_name}"
        )

        try:
            result = await self._dispatcher.send(Command.identify(), self._startup_timeout)
            try:
                self._info = parse_device_info(result.fields)
            except ParseError as e:
                raise ProtocolViolationError(f"Invalid device information: {e}") from e
            self._logger.info("Detected %s", self._info)

            try:
                await self.request_current_state()
            except TimeoutError:
                self._logger.warning("Device did not report its state, assuming READY")

        except ImprovError as e:
            self._logger.error("Improv serial handshake failed: %s", e)
            self._state_machine.fail(f"Handshake failed: {e}")
            await self._shutdown()
            raise

        self._state_machine.mark_ready()
        return self._info

    async def request_current_state(self, timeout: float | None = None) -> DeviceState:
        """
        Ask the device to report its state.

        The device answers with a state report; a provisioned device also
        answers the request with its redirect URL.

        Args:
            timeout: Seconds to wait for the report (default: state_timeout).

        Returns:
            The reported state.

        Raises:
            InvalidStateError: If the client is not initialized.
            BusyError: If another command is outstanding.
            TimeoutError: If no state report arrives in time.
            DisconnectedError: If the session ended.
        """
        self._ensure_initialized()
        command = Command.request_current_state()
        self._dispatcher.check_available(command)

        effective_timeout = self._state_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        reported: asyncio.Future[DeviceState] = loop.create_future()

        def on_report(state: DeviceState) -> None:
            if not reported.done():
                reported.set_result(state)

        unsubscribe = self._state_machine.state_reported.subscribe(on_report)
        request = asyncio.ensure_future(self._dispatcher.send(command, effective_timeout))

        deadline = loop.time() + effective_timeout
        try:
            while not reported.done():
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                waiting = {reported} if request.done() else {reported, request}
                await asyncio.wait(waiting, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
                if not reported.done() and request.done() and request.exception() is not None:
                    raise request.exception()

            if not reported.done():
                self._logger.warning("No state report within %.1fs", effective_timeout)
                self._state_machine.set_error(ErrorState.TIMEOUT)
                raise TimeoutError("Device did not report its state", timeout_seconds=effective_timeout)

            state = reported.result()
            if state is DeviceState.PROVISIONED:
                grace = min(ProtocolConstants.PROVISION_RESULT_GRACE, max(0.0, deadline - loop.time()))
                await asyncio.wait({request}, timeout=grace)
                if request.done() and not request.cancelled() and request.exception() is None:
                    self._next_url = redirect_url(request.result())
                self._logger.info("Device is provisioned (redirect URL: %s)", self._next_url)
            return state

        finally:
            unsubscribe()
            await cancel_task(request)

    async def scan(self) -> list[Ssid]:
        """
        Scan for Wi-Fi networks visible to the device.

        Returns:
            Networks in the order reported, deduplicated by name.

        Raises:
            InvalidStateError: If the client is not initialized.
            BusyError: If a scan or another command is outstanding.
            ScanUnsupportedError: If the firmware cannot scan.
            TimeoutError: If the scan did not complete in time.
            DisconnectedError: If the session ended.
        """
        self._ensure_initialized()
        return await self._scanner.scan()

    async def provision(
        self,
        ssid: str,
        password: str,
        timeout: float = ProtocolConstants.PROVISION_TIMEOUT,
    ) -> str | None:
        """
        Send Wi-Fi credentials and wait for the device to join.

        Args:
            ssid: Network name.
            password: Network password, empty for open networks.
            timeout: Seconds to wait for the device to report PROVISIONED.

        Returns:
            The redirect URL, or None if the device did not send one.

        Raises:
            InvalidStateError: If the client is not initialized.
            ValueError: If the credentials do not fit in a frame.
            BusyError: If another command is outstanding.
            DeviceError: If the device could not join the network.
            TimeoutError: If provisioning did not complete in time.
            DisconnectedError: If the session ended.
        """
        self._ensure_initialized()
        url = await self._provisioner.provision(ssid, password, timeout)
        if url is not None:
            self._next_url = url
        return url

    async def close(self) -> None:
        """
        Close the session and release the transport.

        Any outstanding command fails with DisconnectedError. Safe to call
        multiple times.
        """
        if self.state is DeviceState.CLOSED:
            return

        self._logger.debug("Closing client")
        self._state_machine.close()
        await self._shutdown()

    def _ensure_initialized(self) -> None:
        if self._state_machine.is_terminal:
            raise self._dispatcher.terminal_error()
        if self._info is None:
            raise InvalidStateError("Client is not initialized")

    async def _read_loop(self) -> None:
        reason = "Transport reached end of stream"
        try:
            while True:
                chunk = await self._transport.read()
                if not chunk:
                    break
                for frame in self._codec.feed(chunk):
                    self._dispatcher.handle_frame(frame)
        except TransportError as e:
            reason = f"Read failed: {e}"
        except Exception as e:
            self._logger.exception("Unexpected error in the reader task")
            reason = f"Reader stopped: {e!r}"

        if not self._state_machine.is_terminal:
            self._logger.warning("Device disconnected: %s", reason)
            self._state_machine.mark_disconnected(reason)
        await self._release_transport()

    async def _shutdown(self) -> None:
        task = self._reader_task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self._release_transport()

    async def _release_transport(self) -> None:
        if not self._transport.is_open:
            return
        try:
            await self._transport.close()
        except TransportError as e:
            self._logger.warning("Error closing transport: %s", e)

    def _on_state_changed(self, change: StateChange) -> None:
        if change.state is DeviceState.DISCONNECTED:
            self._disconnected.publish(change.reason or "Device disconnected")

    async def __aenter__(self) -> ImprovSerialClient:
        """Async context manager entry - opens the transport."""
        if not self._transport.is_open:
            await self._transport.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit - closes the session."""
        await self.close()

    def __repr__(self) -> str:
        device = self._info.name if self._info else None
        return (
            f"ImprovSerialClient(port={self._transport.port_name!r}, "
            f"state={self.state.name}, device={device!r})"
        )
