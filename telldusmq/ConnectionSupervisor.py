"""
telldusmq bridge between telldusd and an MQTT broker

(C) 2025

module ConnectionSupervisor

Keeps the connection to the telldusd event socket alive. The daemon is a
local peer that may be restarted at any time, so every failure simply
leads to a new dial after a fixed delay, for as long as the bridge runs.
"""

# std libraries
import socket
import logging
from threading import Event, Lock, Thread
from typing import Optional

# external libraries
pass

# personal libraries
from .RawEventParser import RawEventParser

LOGGER = logging.getLogger(__name__)

READ_BUFFER_SIZE = 1024
DEFAULT_RETRY_DELAY = 5.0
DEFAULT_CONNECT_TIMEOUT = 5.0


class SocketHandle:
    """The current event socket, shared between threads.

    Only the supervisor sets or clears the socket; the command dispatcher
    asks `is_connected()` before it talks to the daemon.
    """

    def __init__(self):
        self._lock = Lock()
        self._sock: Optional[socket.socket] = None

    def set(self, sock: socket.socket):
        with self._lock:
            self._sock = sock

    def clear(self) -> Optional[socket.socket]:
        """Forget the socket and return it so the caller can close it."""
        with self._lock:
            sock, self._sock = self._sock, None
        return sock

    def get(self) -> Optional[socket.socket]:
        with self._lock:
            return self._sock

    def is_connected(self) -> bool:
        with self._lock:
            return self._sock is not None


class ConnectionSupervisor:
    """Read loop over the telldusd event socket with endless reconnect.

    Attributes:
        socket_path (str): Path of the daemon event socket.
        parser (RawEventParser): Receives every buffer read.
        handle (SocketHandle): Published connection state.
        retry_delay (float): Seconds to wait between two dial attempts.
        read_timeout (Optional[float]): Treat a silent socket as lost after
            this many seconds; None waits forever, the daemon only writes
            when something happens on the radio.
        connect_timeout (float): Bound for the dial itself.
        attempts (int): Number of dial attempts so far.
    """

    def __init__(self, socket_path: str, parser: RawEventParser, handle: SocketHandle,
                 retry_delay: float = DEFAULT_RETRY_DELAY,
                 read_timeout: Optional[float] = None,
                 connect_timeout: float = DEFAULT_CONNECT_TIMEOUT):
        self.socket_path = socket_path
        self.parser = parser
        self.handle = handle
        self.retry_delay = retry_delay
        self.read_timeout = read_timeout
        self.connect_timeout = connect_timeout
        self.attempts = 0
        self.stop_event = Event()
        self._thread = None

    def start(self):
        self.stop_event.clear()
        self._thread = Thread(target=self.run, name="telldus-events", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        self.stop_event.set()
        sock = self.handle.clear()
        if sock is not None:
            # unblocks a recv() waiting in the read loop
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError as ex:
                LOGGER.debug(f"error shutting down socket: {ex!r}")
            _close(sock)
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self):
        """Dial, read until failure, wait, repeat until stopped."""
        while not self.stop_event.is_set():
            err = self.connect_and_read()
            if self.stop_event.is_set():
                break
            LOGGER.error(f"Telldusd connection error: {err!r}: Please verify that "
                         f"'{self.socket_path}' is readable. Retry in {self.retry_delay:g} sec ..")
            self.stop_event.wait(self.retry_delay)
        LOGGER.info("Telldusd event reader stopped")

    def connect_and_read(self) -> Exception:
        """One connection lifetime. Returns the error that ended it."""
        LOGGER.info("Connecting to Telldusd Events Socket")
        self.attempts += 1
        try:
            sock = self.dial()
        except OSError as ex:
            return ex

        self.handle.set(sock)
        self.parser.reset()
        try:
            return self.read_loop(sock)
        finally:
            self.handle.clear()
            _close(sock)

    def dial(self) -> socket.socket:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.settimeout(self.connect_timeout)
            sock.connect(self.socket_path)
            sock.settimeout(self.read_timeout)
        except OSError:
            _close(sock)
            raise
        return sock

    def read_loop(self, sock: socket.socket) -> Exception:
        while not self.stop_event.is_set():
            try:
                data = sock.recv(READ_BUFFER_SIZE)
            except socket.timeout as ex:
                LOGGER.warning(f"read timeout: {ex!r}")
                return ex
            except OSError as ex:
                LOGGER.warning(f"read error: {ex!r}")
                return ex
            if not data:
                return ConnectionResetError("telldusd closed the event socket")
            self.parser.feed(data)
        return ConnectionAbortedError("event reader stopped")


def _close(sock: socket.socket):
    try:
        sock.close()
    except OSError as ex:
        LOGGER.debug(f"error closing socket: {ex!r}")
