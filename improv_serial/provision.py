"""
Wi-Fi provisioning flow.

Provisioning succeeds when the device reports PROVISIONED. The redirect URL
arrives separately, in the RPC result that answers the credentials; firmware
sends it right after the state report, and some firmware never sends it.
The flow waits for both within one deadline and gives the result a short
grace period once the state report has arrived.

A failed attempt does not end the session: the device reports an error
(typically UNABLE_TO_CONNECT) and goes back to READY, and the pending
request fails with that DeviceError.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from improv_serial.exceptions import TimeoutError
from improv_serial.log import resolve_logger
from improv_serial.protocol.commands import Command
from improv_serial.protocol.constants import ErrorState, ProtocolConstants
from improv_serial.state import TERMINAL_STATES, DeviceState

if TYPE_CHECKING:
    from improv_serial.dispatcher import RpcDispatcher
    from improv_serial.log import LoggerLike
    from improv_serial.protocol.commands import RpcResult
    from improv_serial.state import StateChange, StateMachine


async def cancel_task(task: asyncio.Future[RpcResult]) -> None:
    """Cancel a request task and wait for it to finish."""
    if not task.done():
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
    elif not task.cancelled():
        # Mark the outcome as retrieved
        task.exception()


def redirect_url(result: RpcResult) -> str | None:
    """Extract the redirect URL from a provisioning or state result."""
    return result.fields[0] if result.fields and result.fields[0] else None


class ProvisionFlow:
    """
    Sends Wi-Fi credentials and waits for the device to join the network.

    Example:
        >>> flow = ProvisionFlow(dispatcher, state_machine)
        >>> await flow.provision("HomeNet", "hunter22")
        'http://192.168.1.42'
    """

    def __init__(
        self,
        dispatcher: RpcDispatcher,
        state_machine: StateMachine,
        *,
        result_grace: float = ProtocolConstants.PROVISION_RESULT_GRACE,
        logger: LoggerLike | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._state_machine = state_machine
        self._result_grace = result_grace
        self._logger = resolve_logger(logger, __name__)

    async def provision(
        self,
        ssid: str,
        password: str,
        timeout: float = ProtocolConstants.PROVISION_TIMEOUT,
    ) -> str | None:
        """
        Provision the device.

        Args:
            ssid: Network name.
            password: Network password, empty for open networks.
            timeout: Seconds to wait for the device to report PROVISIONED.

        Returns:
            The redirect URL, or None if the device did not send one.

        Raises:
            ValueError: If the credentials do not fit in a frame.
            BusyError: If another command is outstanding.
            DeviceError: If the device could not join the network.
            TimeoutError: If the device did not reach PROVISIONED in time.
            DisconnectedError: If the session ended while provisioning.
        """
        command = Command.provision(ssid, password)
        self._dispatcher.check_available(command)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        outcome: asyncio.Future[DeviceState] = loop.create_future()

        def settle(state: DeviceState) -> None:
            if not outcome.done():
                outcome.set_result(state)

        def on_report(state: DeviceState) -> None:
            # Repeats count: a re-provisioned device may never leave PROVISIONED
            if state is DeviceState.PROVISIONED:
                settle(state)

        def on_state_changed(change: StateChange) -> None:
            if change.state in TERMINAL_STATES:
                settle(change.state)

        unsubscribers = [
            self._state_machine.state_reported.subscribe(on_report),
            self._state_machine.state_changed.subscribe(on_state_changed),
        ]
        request = asyncio.ensure_future(self._dispatcher.send(command, timeout))
        self._logger.info("Provisioning network %r", ssid)

        try:
            while not outcome.done():
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                waiting = {outcome} if request.done() else {outcome, request}
                await asyncio.wait(waiting, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
                if not outcome.done() and request.done() and request.exception() is not None:
                    raise request.exception()

            if not outcome.done():
                await cancel_task(request)
                self._logger.warning("Device did not finish provisioning within %.1fs", timeout)
                self._state_machine.set_error(ErrorState.TIMEOUT)
                raise TimeoutError("Provisioning did not complete", timeout_seconds=timeout)

            if outcome.result() is not DeviceState.PROVISIONED:
                raise self._dispatcher.terminal_error()

            if not request.done():
                grace = min(self._result_grace, max(0.0, deadline - loop.time()))
                await asyncio.wait({request}, timeout=grace)

            url = None
            if request.done() and not request.cancelled():
                if request.exception() is None:
                    url = redirect_url(request.result())
                else:
                    self._logger.warning(
                        "Provisioned, but the result was not delivered: %s", request.exception()
                    )
            else:
                self._logger.debug("Provisioned without a redirect URL")

            self._logger.info("Device provisioned (redirect URL: %s)", url)
            return url

        finally:
            for unsubscribe in unsubscribers:
                unsubscribe()
            await cancel_task(request)
