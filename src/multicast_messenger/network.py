"""Cross-platform UDP multicast sockets bound to an explicit interface."""

import socket
import struct
import sys
from typing import Optional

from loguru import logger

from .config import MULTICAST_TTL, RECEIVE_POLL_INTERVAL, Endpoint


def membership_request(group: str, interface_address: str) -> bytes:
    """Build an ``ip_mreq`` naming the group and the local interface address."""
    return struct.pack("4s4s", socket.inet_aton(group), socket.inet_aton(interface_address))


class SocketFactory:
    """
    Creates and configures the sockets a session uses.

    The messenger only talks to sockets through this class, so tests can swap
    in a double that records calls instead of touching the network.
    """

    def open_receiver(
        self, endpoint: Endpoint, timeout: Optional[float] = RECEIVE_POLL_INTERVAL
    ) -> socket.socket:
        """
        Create a socket bound to the endpoint's port for receiving.

        Args:
            endpoint: Group and port to receive on
            timeout: Socket timeout in seconds (None for blocking)

        Returns:
            Bound receiver socket, not yet joined to the group
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            # Allow multiple processes to bind to the same port
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if hasattr(socket, "SO_REUSEPORT"):
                try:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
                except OSError:
                    pass

            # Linux filters on the bound group address; macOS and Windows
            # need the wildcard address.
            if sys.platform in ("darwin", "win32"):
                sock.bind(("", endpoint.port))
            else:
                sock.bind((endpoint.group, endpoint.port))

            if timeout is not None:
                sock.settimeout(timeout)
        except OSError:
            sock.close()
            raise
        return sock

    def join(self, sock: socket.socket, group: str, interface_address: str) -> None:
        """Join the group on the interface owning ``interface_address``."""
        sock.setsockopt(
            socket.IPPROTO_IP,
            socket.IP_ADD_MEMBERSHIP,
            membership_request(group, interface_address),
        )

    def leave(self, sock: socket.socket, group: str, interface_address: str) -> None:
        """Drop group membership on the same interface it was joined on."""
        sock.setsockopt(
            socket.IPPROTO_IP,
            socket.IP_DROP_MEMBERSHIP,
            membership_request(group, interface_address),
        )

    def open_sender(self, interface_address: Optional[str] = None) -> socket.socket:
        """
        Create a socket for sending multicast datagrams.

        Args:
            interface_address: Local address of the outgoing interface. If None
                the OS default route is used.

        Returns:
            Configured multicast sender socket
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, MULTICAST_TTL)
            # Deliver to listeners on this host too
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_LOOP, 1)
        except OSError:
            sock.close()
            raise

        if interface_address is not None:
            try:
                sock.setsockopt(
                    socket.IPPROTO_IP,
                    socket.IP_MULTICAST_IF,
                    socket.inet_aton(interface_address),
                )
            except OSError as exc:
                logger.warning(
                    "[Multicast/Send] could not bind sender to {}, using default route: {}",
                    interface_address,
                    exc,
                )
        return sock


def shutdown_and_close(sock: socket.socket) -> None:
    """
    Close a socket, waking any thread blocked receiving on it.

    Closing alone does not interrupt a blocked ``recvfrom`` on Linux, but
    ``shutdown`` does, even for unconnected UDP sockets.
    """
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass  # ENOTCONN is expected for UDP
    sock.close()
