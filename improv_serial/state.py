"""
Device lifecycle state machine.

The state machine owns the session's current DeviceState and last reported
ErrorState. It is mutated only from the client's single event-processing
path (decoded frames and command outcomes) and exposes read access plus
subscription channels:

    CONNECTING -> READY -> PROVISIONING -> PROVISIONED
         |          |           |              |
         +----------+-----------+--------------+--> ERROR / DISCONNECTED / CLOSED

State reports from the device drive the non-terminal transitions in
whatever order the device sends them (a failed provisioning attempt goes
back from PROVISIONING to READY). ERROR, DISCONNECTED and CLOSED are
terminal: once reached, state reports are ignored.

Error state is tracked independently of the lifecycle state: a device can
report an error without changing state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Callable, Generic, TypeVar

from improv_serial.log import resolve_logger
from improv_serial.protocol.constants import ErrorState, ImprovState

if TYPE_CHECKING:
    from improv_serial.log import LoggerLike

T = TypeVar("T")


class DeviceState(Enum):
    """Device lifecycle states as seen by the client."""

    CONNECTING = auto()
    """Transport open, identify handshake not yet complete."""

    READY = auto()
    """Device is ready to accept credentials."""

    PROVISIONING = auto()
    """Device is trying to join the network."""

    PROVISIONED = auto()
    """Device joined the network."""

    ERROR = auto()
    """Handshake failed or the device violated the protocol."""

    DISCONNECTED = auto()
    """Transport terminated unexpectedly."""

    CLOSED = auto()
    """Client was closed by its owner."""


TERMINAL_STATES: frozenset[DeviceState] = frozenset({
    DeviceState.ERROR,
    DeviceState.DISCONNECTED,
    DeviceState.CLOSED,
})
"""States that end the session; no commands are accepted afterwards."""

_REPORTED_STATES: dict[int, DeviceState] = {
    ImprovState.READY: DeviceState.READY,
    ImprovState.PROVISIONING: DeviceState.PROVISIONING,
    ImprovState.PROVISIONED: DeviceState.PROVISIONED,
}


@dataclass(frozen=True)
class StateChange:
    """Published on every lifecycle transition."""

    previous: DeviceState
    state: DeviceState
    reason: str | None = None


@dataclass(frozen=True)
class ErrorChange:
    """Published on every error state update, even if the code repeats."""

    previous: ErrorState | int | None
    error: ErrorState | int


class EventChannel(Generic[T]):
    """
    A named list of listeners for one kind of notification.

    Listeners are called synchronously, in subscription order, from the
    event-processing path. A listener that raises is logged and does not
    prevent delivery to the others.

    Example:
        >>> channel = EventChannel("state-changed")
        >>> unsubscribe = channel.subscribe(print)
        >>> channel.publish("READY")
        READY
        >>> unsubscribe()
    """

    def __init__(self, name: str, logger: LoggerLike | None = None) -> None:
        self._name = name
        self._logger = resolve_logger(logger, __name__)
        self._listeners: list[Callable[[T], None]] = []

    @property
    def name(self) -> str:
        """Channel name, used in log messages."""
        return self._name

    def subscribe(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """
        Register a listener.

        Args:
            listener: Called with each published event.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: T) -> None:
        """Deliver an event to every current listener."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                self._logger.exception("Listener for %s failed", self._name)

    def __len__(self) -> int:
        return len(self._listeners)


class StateMachine:
    """
    Owns the session's DeviceState and ErrorState.

    Attributes:
        state_changed: Channel receiving a StateChange per transition.
        error_changed: Channel receiving an ErrorChange per error update.
        state_reported: Channel receiving the DeviceState of every valid
            state report, whether or not it changed the state.
    """

    def __init__(self, logger: LoggerLike | None = None) -> None:
        self._logger = resolve_logger(logger, __name__)
        self._state = DeviceState.CONNECTING
        self._error: ErrorState | int | None = None
        self._reason: str | None = None
        self.state_changed: EventChannel[StateChange] = EventChannel("state-changed", logger)
        self.error_changed: EventChannel[ErrorChange] = EventChannel("error-changed", logger)
        self.state_reported: EventChannel[DeviceState] = EventChannel("state-reported", logger)

    @property
    def state(self) -> DeviceState:
        """Get the current lifecycle state."""
        return self._state

    @property
    def error(self) -> ErrorState | int | None:
        """Get the last error state, None if none was reported yet."""
        return self._error

    @property
    def reason(self) -> str | None:
        """Get the reason given for the last terminal transition."""
        return self._reason

    @property
    def is_terminal(self) -> bool:
        """Check if the session has ended."""
        return self._state in TERMINAL_STATES

    def apply_report(self, code: int) -> None:
        """
        Apply a state report received from the device.

        Args:
            code: ImprovState byte from a CURRENT_STATE packet.
        """
        if self.is_terminal:
            self._logger.debug("Ignoring state report 0x%02X in %s", code, self._state.name)
            return

        state = _REPORTED_STATES.get(code)
        if state is None:
            self._logger.warning("Ignoring unsupported device state 0x%02X", code)
            return

        self._transition(state)
        self.state_reported.publish(state)

    def set_error(self, code: int) -> None:
        """
        Record an error state and publish it.

        Args:
            code: ErrorState byte from an ERROR_STATE packet, or a
                client-side ErrorState.
        """
        try:
            error: ErrorState | int = ErrorState(code)
        except ValueError:
            error = code

        previous = self._error
        self._error = error
        if error != ErrorState.NO_ERROR:
            self._logger.info("Device error state: %s", getattr(error, "name", f"0x{code:02X}"))
        self.error_changed.publish(ErrorChange(previous=previous, error=error))

    def mark_ready(self) -> None:
        """Move from CONNECTING to READY once the handshake succeeded."""
        if self._state is DeviceState.CONNECTING:
            self._transition(DeviceState.READY)

    def fail(self, reason: str) -> None:
        """Enter the ERROR state unless the session already ended."""
        if not self.is_terminal:
            self._transition(DeviceState.ERROR, reason)

    def mark_disconnected(self, reason: str) -> None:
        """Enter the DISCONNECTED state unless the session already ended."""
        if not self.is_terminal:
            self._transition(DeviceState.DISCONNECTED, reason)

    def close(self) -> None:
        """Enter the CLOSED state."""
        if self._state is not DeviceState.CLOSED:
            self._transition(DeviceState.CLOSED, "Client closed")

    def _transition(self, state: DeviceState, reason: str | None = None) -> None:
        if state is self._state:
            return

        previous = self._state
        self._state = state
        if reason is not None:
            self._reason = reason
            self._logger.info("State %s -> %s (%s)", previous.name, state.name, reason)
        else:
            self._logger.info("State %s -> %s", previous.name, state.name)
        self.state_changed.publish(StateChange(previous=previous, state=state, reason=reason))

    def __repr__(self) -> str:
        error = getattr(self._error, "name", self._error)
        return f"StateMachine(state={self._state.name}, error={error})"
