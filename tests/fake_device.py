"""Simulated Improv serial firmware for client tests."""

from __future__ import annotations

from collections.abc import Sequence

from improv_serial.protocol import (
    Command,
    ErrorState,
    Frame,
    FrameParseResult,
    ImprovState,
    PacketType,
    RpcCommand,
    RpcResult,
    build_frame,
    encode_rpc_payload,
    parse_frame,
)
from improv_serial.transport.mock import MockTransport

DEFAULT_INFO = ("ESPHome", "2024.6.0", "ESP32-C3", "kitchen-sensor")
DEFAULT_NETWORKS = (
    ("HomeNet", "-58", "YES"),
    ("Guest", "-71", "NO"),
)
DEFAULT_URL = "http://192.168.1.42"


def state_frame(state: int) -> bytes:
    return build_frame(PacketType.CURRENT_STATE, bytes([state])) + b"\n"


def error_frame(code: int) -> bytes:
    return build_frame(PacketType.ERROR_STATE, bytes([code])) + b"\n"


def result_frame(command: int, *fields: str) -> bytes:
    return RpcResult(command, fields).to_bytes() + b"\n"


def state_packet(state: int) -> Frame:
    return Frame(PacketType.CURRENT_STATE, bytes([state]))


def error_packet(code: int) -> Frame:
    return Frame(PacketType.ERROR_STATE, bytes([code]))


def result_packet(command: int, *fields: str) -> Frame:
    return Frame(PacketType.RPC_RESULT, encode_rpc_payload(command, fields))


def decode_command(data: bytes) -> Command:
    """Decode bytes the client wrote back into a command."""
    result, frame = parse_frame(data.rstrip(b"\n"))
    assert result == FrameParseResult.SUCCESS, frame
    assert frame.packet_type == PacketType.RPC
    return Command.decode(frame.payload)


class FakeImprovDevice:
    """
    Answers client commands the way Improv serial firmware does.

    Attach to a MockTransport; every write is decoded and answered through
    the transport's response callback. Provisioning outcomes are delivered
    after provision_delay seconds. With acknowledge_first the credentials are
    answered by an empty result at once; with report_provisioning off the
    device goes straight to the outcome without a PROVISIONING report.
    """

    def __init__(
        self,
        transport: MockTransport,
        *,
        info: Sequence[str] | None = DEFAULT_INFO,
        state: int = ImprovState.READY,
        networks: Sequence[Sequence[str]] = DEFAULT_NETWORKS,
        supports_scan: bool = True,
        finish_scan: bool = True,
        redirect_url: str = DEFAULT_URL,
        join_result: bool | None = True,
        send_provision_result: bool = True,
        provision_delay: float = 0.05,
        boot_log: bytes = b"",
        report_state: bool = True,
        report_provisioning: bool = True,
        acknowledge_first: bool = False,
    ) -> None:
        self.transport = transport
        self.info = info
        self.state = state
        self.networks = networks
        self.supports_scan = supports_scan
        self.finish_scan = finish_scan
        self.redirect_url = redirect_url
        self.join_result = join_result
        self.send_provision_result = send_provision_result
        self.provision_delay = provision_delay
        self.boot_log = boot_log
        self.report_state = report_state
        self.report_provisioning = report_provisioning
        self.acknowledge_first = acknowledge_first
        self.received: list[Command] = []
        self.credentials: tuple[str, ...] | None = None
        transport.set_response_callback(self.handle)

    @property
    def received_opcodes(self) -> list[RpcCommand]:
        return [command.opcode for command in self.received]

    def handle(self, data: bytes) -> bytes | None:
        command = decode_command(data)
        self.received.append(command)
        if command.opcode == RpcCommand.REQUEST_INFO:
            return self._identify()
        if command.opcode == RpcCommand.REQUEST_CURRENT_STATE:
            return self._current_state()
        if command.opcode == RpcCommand.REQUEST_WIFI_NETWORKS:
            return self._scan()
        if command.opcode == RpcCommand.SEND_WIFI_SETTINGS:
            return self._provision(command)
        return error_frame(ErrorState.UNKNOWN_RPC_COMMAND)

    def _identify(self) -> bytes | None:
        if self.info is None:
            return None
        return self.boot_log + result_frame(RpcCommand.REQUEST_INFO, *self.info)

    def _current_state(self) -> bytes | None:
        if not self.report_state:
            return None
        response = state_frame(self.state)
        if self.state == ImprovState.PROVISIONED:
            response += result_frame(RpcCommand.REQUEST_CURRENT_STATE, self.redirect_url)
        return response

    def _scan(self) -> bytes:
        if not self.supports_scan:
            return error_frame(ErrorState.UNKNOWN_RPC_COMMAND)
        response = b"".join(
            result_frame(RpcCommand.REQUEST_WIFI_NETWORKS, *network) for network in self.networks
        )
        if self.finish_scan:
            response += result_frame(RpcCommand.REQUEST_WIFI_NETWORKS)
        return response

    def _provision(self, command: Command) -> bytes:
        self.credentials = command.args
        now = error_frame(ErrorState.NO_ERROR)
        if self.report_provisioning:
            self.state = ImprovState.PROVISIONING
            now += state_frame(ImprovState.PROVISIONING)
        if self.acknowledge_first:
            # Empty result right away, outcome reported later
            now += result_frame(RpcCommand.SEND_WIFI_SETTINGS)

        if self.join_result is True:
            self.state = ImprovState.PROVISIONED
            later = state_frame(ImprovState.PROVISIONED)
            if self.send_provision_result and not self.acknowledge_first:
                later += result_frame(RpcCommand.SEND_WIFI_SETTINGS, self.redirect_url)
            self.transport.add_response_later(later, self.provision_delay)
        elif self.join_result is False:
            self.state = ImprovState.READY
            later = error_frame(ErrorState.UNABLE_TO_CONNECT) + state_frame(ImprovState.READY)
            self.transport.add_response_later(later, self.provision_delay)

        return now
