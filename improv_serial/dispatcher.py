"""
Single in-flight RPC dispatcher.

The Improv serial protocol carries no request identifiers, so the client may
have at most one RPC outstanding: a result is matched to whatever command is
pending by opcode alone. The dispatcher holds that one slot, which is either
Idle or a Pending request:

    Idle --send()--> Pending --result / device error / timeout--> Idle

A Pending request always resolves exactly once, with a result or an error.
Results that arrive when nothing is pending (late answers to a request that
already timed out, or results for a different opcode) are logged and
discarded.

The dispatcher also routes unsolicited state and error packets to the state
machine, and fails the pending request when the session ends.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Union

from improv_serial.exceptions import (
    BusyError,
    DeviceError,
    DisconnectedError,
    ImprovError,
    InvalidStateError,
    ProtocolError,
    ProtocolViolationError,
    TimeoutError,
    TransportError,
)
from improv_serial.log import resolve_logger
from improv_serial.protocol.codec import FrameCodec
from improv_serial.protocol.commands import Command, RpcResult
from improv_serial.protocol.constants import ErrorState, PacketType, ProtocolConstants
from improv_serial.state import TERMINAL_STATES, DeviceState, StateChange

if TYPE_CHECKING:
    from improv_serial.log import LoggerLike
    from improv_serial.protocol.frame_reader import Frame
    from improv_serial.state import StateMachine
    from improv_serial.transport.abc import AbstractTransport


ResultFilter = Callable[[RpcResult], bool]
"""Decides whether a matching result completes the request (True) or is
one of several results still being collected (False)."""


def _first_result(result: RpcResult) -> bool:
    return True


@dataclass(frozen=True)
class Idle:
    """No command is outstanding."""


@dataclass
class Pending:
    """
    The one outstanding command.

    Attributes:
        command: Command that was written.
        deadline: Event loop time after which the request times out.
        future: Resolved with the completing RpcResult, or failed.
        accept: Filter applied to every result with a matching opcode.
    """

    command: Command
    deadline: float
    future: asyncio.Future[RpcResult]
    accept: ResultFilter


RequestSlot = Union[Idle, Pending]

IDLE = Idle()


class RpcDispatcher:
    """
    Writes commands and correlates incoming packets with them.

    Example:
        >>> dispatcher = RpcDispatcher(transport, state_machine)
        >>> result = await dispatcher.send(Command.identify(), timeout=1.0)
        >>> result.fields
        ('ESPHome', '2024.6.0', 'ESP32-C3', 'kitchen-sensor')
    """

    def __init__(
        self,
        transport: AbstractTransport,
        state_machine: StateMachine,
        *,
        codec: FrameCodec | None = None,
        timeout: float = ProtocolConstants.DEFAULT_COMMAND_TIMEOUT,
        logger: LoggerLike | None = None,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            transport: Open transport commands are written to.
            state_machine: Receives state and error reports.
            codec: Frame codec used to encode commands.
            timeout: Default command timeout in seconds.
            logger: Logger to use instead of the module logger.
        """
        self._transport = transport
        self._state_machine = state_machine
        self._codec = codec or FrameCodec(logger)
        self._timeout = timeout
        self._logger = resolve_logger(logger, __name__)
        self._slot: RequestSlot = IDLE
        state_machine.state_changed.subscribe(self._on_state_changed)

    @property
    def slot(self) -> RequestSlot:
        """Get the request slot (Idle or Pending)."""
        return self._slot

    @property
    def is_busy(self) -> bool:
        """Check if a command is outstanding."""
        return isinstance(self._slot, Pending)

    @property
    def timeout(self) -> float:
        """Get the default command timeout in seconds."""
        return self._timeout

    def check_available(self, command: Command) -> None:
        """
        Check that a command could be sent right now.

        Raises:
            DisconnectedError: If the session was disconnected or closed.
            InvalidStateError: If the session failed.
            BusyError: If another command is outstanding.
        """
        if self._state_machine.is_terminal:
            raise self.terminal_error()

        slot = self._slot
        if isinstance(slot, Pending):
            raise BusyError(f"Cannot send {command!r}: {slot.command!r} is still pending")

    def terminal_error(self) -> ImprovError:
        """Build the error reported for commands in a terminal state."""
        state = self._state_machine.state
        reason = self._state_machine.reason
        if state is DeviceState.ERROR:
            return InvalidStateError(f"Session failed: {reason}")
        if state is DeviceState.CLOSED:
            return DisconnectedError("Client closed")
        return DisconnectedError(f"Device disconnected: {reason}")

    async def send(
        self,
        command: Command,
        timeout: float | None = None,
        *,
        accept: ResultFilter | None = None,
    ) -> RpcResult:
        """
        Write a command and wait for the result that completes it.

        Args:
            command: Command to send.
            timeout: Seconds to wait for completion (default: dispatcher
                timeout).
            accept: Filter for commands answered by several results.

        Returns:
            The result that completed the request.

        Raises:
            BusyError: If another command is outstanding; nothing is written.
            DisconnectedError: If the session ended or the write failed.
            InvalidStateError: If the session failed.
            DeviceError: If the device reported an error state.
            ProtocolViolationError: If the result could not be decoded.
            TimeoutError: If the request did not complete in time.
        """
        self.check_available(command)

        loop = asyncio.get_running_loop()
        effective_timeout = self._timeout if timeout is None else timeout
        pending = Pending(
            command=command,
            deadline=loop.time() + effective_timeout,
            future=loop.create_future(),
            accept=accept or _first_result,
        )
        self._slot = pending
        self._logger.debug("Sending %r", command)

        try:
            try:
                await self._transport.write(self._codec.encode(command))
            except TransportError as e:
                self._release(pending)
                self._logger.error("Write of %r failed: %s", command, e)
                self._state_machine.mark_disconnected(f"Write failed: {e}")
                raise DisconnectedError(f"Write failed: {e}") from e

            remaining = max(0.0, pending.deadline - loop.time())
            return await asyncio.wait_for(pending.future, timeout=remaining)

        except asyncio.TimeoutError:
            self._release(pending)
            self._logger.warning(
                "No answer to %r within %.1fs", command, effective_timeout
            )
            self._state_machine.set_error(ErrorState.TIMEOUT)
            raise TimeoutError(
                f"No answer to {command.opcode.name}",
                timeout_seconds=effective_timeout,
            ) from None

        finally:
            self._release(pending)

    def handle_frame(self, frame: Frame) -> None:
        """
        Route one decoded frame.

        Args:
            frame: Validated frame from the codec.
        """
        packet_type = frame.packet_type

        if packet_type == PacketType.CURRENT_STATE:
            if not frame.payload:
                self._logger.warning("Ignoring state packet without data")
                return
            self._state_machine.apply_report(frame.payload[0])

        elif packet_type == PacketType.ERROR_STATE:
            if not frame.payload:
                self._logger.warning("Ignoring error packet without data")
                return
            code = frame.payload[0]
            self._state_machine.set_error(code)
            if code != ErrorState.NO_ERROR and self._fail_pending(DeviceError(code)):
                self._logger.warning("Device rejected the pending command (0x%02X)", code)

        elif packet_type == PacketType.RPC_RESULT:
            self._handle_result(frame)

        else:
            self._logger.debug("Ignoring %r", frame)

    def shutdown(self, error: ImprovError) -> bool:
        """
        Fail the outstanding command, if any.

        Args:
            error: Error the pending send() raises.

        Returns:
            True if a command was outstanding.
        """
        return self._fail_pending(error)

    def _handle_result(self, frame: Frame) -> None:
        slot = self._slot
        if not isinstance(slot, Pending):
            self._logger.warning("Discarding RPC result with no pending command: %r", frame)
            return

        try:
            result = RpcResult.from_frame(frame)
        except ProtocolError as e:
            self._violation(slot, e)
            return

        if result.command != slot.command.opcode:
            self._logger.warning(
                "Discarding result for command 0x%02X while %s is pending",
                result.command,
                slot.command.opcode.name,
            )
            return

        try:
            done = slot.accept(result)
        except ProtocolError as e:
            self._violation(slot, e)
            return

        if done:
            self._slot = IDLE
            if not slot.future.done():
                slot.future.set_result(result)

    def _violation(self, slot: Pending, error: ProtocolError) -> None:
        message = f"Malformed result for {slot.command.opcode.name}: {error}"
        self._logger.error("%s", message)
        self._fail_pending(ProtocolViolationError(message))
        self._state_machine.fail(message)

    def _fail_pending(self, error: ImprovError) -> bool:
        slot = self._slot
        if not isinstance(slot, Pending):
            return False
        self._slot = IDLE
        if not slot.future.done():
            slot.future.set_exception(error)
        return True

    def _release(self, pending: Pending) -> None:
        if self._slot is pending:
            self._slot = IDLE

    def _on_state_changed(self, change: StateChange) -> None:
        if change.state in TERMINAL_STATES and self.is_busy:
            self._logger.debug("Failing pending command: session is %s", change.state.name)
            self._fail_pending(self.terminal_error())

    def __repr__(self) -> str:
        slot = self._slot
        if isinstance(slot, Pending):
            return f"RpcDispatcher(pending={slot.command!r})"
        return "RpcDispatcher(idle)"
