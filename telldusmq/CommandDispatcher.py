"""
telldusmq bridge between telldusd and an MQTT broker

(C) 2025

module CommandDispatcher

Sends device commands to the telldusd client socket. Every command
uses its own short-lived connection: write the request, read one
answer, close. Radio commands are fire and forget, so nothing here is
retried; the outcome is logged and returned to the caller.
"""

# std libraries
import socket
import logging
from dataclasses import dataclass
from typing import Optional

# external libraries
pass

# personal libraries
from . import TelldusCore
from .TelldusCore import DIM, LEARN, TURNOFF, TURNON
from .TelldusEvent import BrokerCommand
from .ConnectionSupervisor import SocketHandle

LOGGER = logging.getLogger(__name__)

RESPONSE_BUFFER_SIZE = 1024
DEFAULT_TIMEOUT = 5.0

# used in log lines, e.g. "Tellstick turn on: Success (0)"
METHOD_LABELS = {
    TURNOFF: "turn off",
    TURNON: "turn on",
    LEARN: "learn",
    DIM: "dim",
}


@dataclass
class CommandResult:
    """Outcome of one dispatched command.

    Attributes:
        method: Canonical method that was requested.
        code: telldusd result code, TELLSTICK_SUCCESS on success.
        message: Human readable text for the code.
        sent: False when the request never reached the daemon.
    """
    method: str
    code: int
    message: str
    sent: bool

    @property
    def ok(self) -> bool:
        return self.sent and self.code == TelldusCore.TELLSTICK_SUCCESS


class CommandDispatcher:
    """Builds telldusd requests and exchanges them over the client socket.

    Attributes:
        socket_path (str): Path of the daemon client socket.
        handle (SocketHandle): Event connection state; no command is sent
            while the daemon is not connected.
        timeout (float): Bound for connect, write and read.
    """

    def __init__(self, socket_path: str, handle: SocketHandle, timeout: float = DEFAULT_TIMEOUT):
        self.socket_path = socket_path
        self.handle = handle
        self.timeout = timeout

    def build_request(self, command: BrokerCommand) -> Optional[str]:
        """Daemon request for a canonical command, None for unknown methods."""
        function = TelldusCore.DAEMON_FUNCTIONS.get(command.method)
        if function is None:
            return None
        if command.method == DIM:
            return TelldusCore.get_message_level(function, command.device_id, command.level)
        return TelldusCore.get_message(function, command.device_id)

    def dispatch(self, command: BrokerCommand) -> Optional[CommandResult]:
        """Send a command whose method is already canonical.

        Returns:
            The CommandResult, or None if the method is unknown.
        """
        request = self.build_request(command)
        if request is None:
            LOGGER.warning(f"Unknown tellstick method: {command.method}")
            return None

        if self.handle.is_connected():
            code = self.exchange(request)
            sent = code != TelldusCore.TELLSTICK_ERROR_CONNECTING_SERVICE
            message = TelldusCore.get_result_message(code)
        else:
            code = TelldusCore.TELLSTICK_ERROR_CONNECTING_SERVICE
            sent = False
            message = "no connection to telldusd"

        result = CommandResult(command.method, code, message, sent)
        label = METHOD_LABELS[command.method]
        if result.ok:
            LOGGER.info(f"Tellstick {label}: {message} ({code})")
        else:
            LOGGER.error(f"Tellstick {label}: {message} ({code})")
        return result

    def exchange(self, request: str) -> int:
        """Write one request and parse the daemon's answer.

        Socket errors are not raised, they are turned into result codes.
        """
        try:
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        except OSError as ex:
            LOGGER.error(f"Cannot create client socket: {ex!r}")
            return TelldusCore.TELLSTICK_ERROR_CONNECTING_SERVICE

        try:
            sock.settimeout(self.timeout)
            try:
                sock.connect(self.socket_path)
            except OSError as ex:
                LOGGER.error(f"Cannot connect to '{self.socket_path}': {ex!r}")
                return TelldusCore.TELLSTICK_ERROR_CONNECTING_SERVICE
            try:
                LOGGER.debug(f"Sending '{request}' to {self.socket_path}")
                sock.sendall(request.encode("ascii"))
                response = sock.recv(RESPONSE_BUFFER_SIZE)
            except OSError as ex:
                LOGGER.error(f"Error talking to '{self.socket_path}': {ex!r}")
                return TelldusCore.TELLSTICK_ERROR_COMMUNICATING_SERVICE
        finally:
            sock.close()

        LOGGER.debug(f"telldusd answered {response!r}")
        return TelldusCore.get_int_from_result(response.decode("ascii", errors="replace"))
