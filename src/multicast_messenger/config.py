"""Multicast endpoint configuration and service tunables."""

import ipaddress
from dataclasses import dataclass

# Defaults used by the command-line host; the library takes both explicitly.
DEFAULT_GROUP = "239.0.0.1"
DEFAULT_PORT = 30004

BUFFER_SIZE = 1024  # receive buffer, larger datagrams are truncated
MULTICAST_TTL = 1  # Stay on local network
STOP_JOIN_TIMEOUT = 1.0  # seconds to wait for the receive thread on stop
RECEIVE_POLL_INTERVAL = 0.5  # socket timeout between liveness checks

SYSTEM_SENDER = "System"


def validate_port(port: int) -> int:
    """Return port unchanged if it fits in 16 bits, else raise ValueError."""
    if isinstance(port, bool) or not isinstance(port, int):
        raise ValueError(f"Port must be an integer, got {port!r}")
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"Port out of range: {port}")
    return port


def validate_group(group: str) -> str:
    """Return group unchanged if it is an IPv4 multicast literal."""
    try:
        address = ipaddress.IPv4Address(group)
    except ValueError:
        raise ValueError(f"Not an IPv4 address: {group!r}")
    if not address.is_multicast:
        raise ValueError(f"{group} is not a multicast address (224.0.0.0/4)")
    return group


@dataclass(frozen=True)
class Endpoint:
    """A multicast group and UDP port pair."""
    group: str
    port: int

    def __post_init__(self) -> None:
        validate_group(self.group)
        validate_port(self.port)

    def __str__(self) -> str:
        return f"{self.group}:{self.port}"
