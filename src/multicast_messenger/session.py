"""A joined multicast session and its teardown."""

import socket
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from .config import STOP_JOIN_TIMEOUT, Endpoint
from .errors import JoinFailure, ReceiveFailure, SocketBindFailure
from .interfaces import NetworkInterfaceDescriptor
from .network import SocketFactory, shutdown_and_close
from .protocol import InboundMessage
from .receiver import ReceiveLoop
from .wakelock import WakeResource


class SessionState(Enum):
    """Lifecycle of the messenger's session slot."""
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"


class MulticastSession:
    """
    Everything acquired between a successful start and its stop.

    The session owns the receive socket, the interface it joined on, the wake
    resource (if one was needed) and the receive loop. ``close`` releases all
    of them and is safe to call on a partially opened session.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        interface: NetworkInterfaceDescriptor,
        sockets: SocketFactory,
        deliver: Callable[["MulticastSession", InboundMessage], None],
        on_failure: Callable[["MulticastSession", ReceiveFailure], None],
        wake_resource: Optional[WakeResource] = None,
    ):
        self.endpoint = endpoint
        self.interface: Optional[NetworkInterfaceDescriptor] = interface
        self.wake_resource = wake_resource
        self._sockets = sockets
        self._deliver = deliver
        self._on_failure = on_failure
        self._sock: Optional[socket.socket] = None
        self._joined = False
        self._loop: Optional[ReceiveLoop] = None
        # Set when the owner asks for the stop, as opposed to a receive failure
        self.stop_requested = False

    @property
    def alive(self) -> bool:
        return self._loop is not None and self._loop.alive

    def open(self) -> None:
        """
        Bind, join the group on the session's interface and start receiving.

        Raises:
            SocketBindFailure: If the receive socket cannot be bound
            JoinFailure: If the group cannot be joined on the interface
        """
        group, port = self.endpoint.group, self.endpoint.port
        try:
            self._sock = self._sockets.open_receiver(self.endpoint)
        except OSError as exc:
            raise SocketBindFailure(f"cannot bind port {port}: {exc}") from exc

        # Join on the selected interface, not whatever the OS picks by default
        try:
            self._sockets.join(self._sock, group, self.interface.address)
        except OSError as exc:
            raise JoinFailure(
                f"cannot join {group} on {self.interface.name}: {exc}"
            ) from exc
        self._joined = True
        logger.debug(
            "[Multicast/Session] joined {} on interface {}", self.endpoint, self.interface.name
        )

        self._loop = ReceiveLoop(
            self._sock,
            lambda message: self._deliver(self, message),
            lambda failure: self._on_failure(self, failure),
            name=f"MulticastReceiver-{port}",
        )
        self._loop.start()

    def close(self, join_timeout: float = STOP_JOIN_TIMEOUT) -> None:
        """Tear the session down. Every step runs even if an earlier one fails."""
        if self._loop is not None:
            self._loop.signal_stop()

        if self._sock is not None and self._joined:
            try:
                self._sockets.leave(self._sock, self.endpoint.group, self.interface.address)
                logger.debug(
                    "[Multicast/Session] left multicast group on interface {}",
                    self.interface.name,
                )
            except OSError as exc:
                logger.error("[Multicast/Session] error leaving multicast group: {}", exc)
            self._joined = False

        if self._sock is not None:
            try:
                shutdown_and_close(self._sock)
                logger.debug("[Multicast/Session] socket closed")
            except OSError as exc:
                logger.error("[Multicast/Session] error closing socket: {}", exc)
            self._sock = None

        if self._loop is not None:
            if not self._loop.join(timeout=join_timeout):
                logger.warning(
                    "[Multicast/Session] receiver thread did not exit within {}s", join_timeout
                )
            self._loop = None

        if self.wake_resource is not None:
            try:
                self.wake_resource.release()
                logger.debug("[Multicast/Session] wake resource released")
            except Exception as exc:
                logger.error("[Multicast/Session] error releasing wake resource: {}", exc)
            self.wake_resource = None

        self.interface = None
