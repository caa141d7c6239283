"""Exceptions raised inside the service.

These never reach the host through a background thread: the messenger catches
them at the boundary and reports them through the listener's ``on_error``.
"""


class MulticastError(Exception):
    """Base class for multicast service failures."""


class NoInterfaceAvailable(MulticastError):
    """No up, non-loopback, multicast-capable interface with an address."""


class SocketBindFailure(MulticastError):
    """The receive socket could not be created or bound."""


class JoinFailure(MulticastError):
    """Joining the multicast group on the selected interface failed."""


class ReceiveFailure(MulticastError):
    """The receive socket failed while the session was still live."""


class SendFailure(MulticastError):
    """A single datagram could not be sent."""


class EmptyPayload(MulticastError, ValueError):
    """Outbound message was empty or whitespace only."""


class InvalidHexFormat(MulticastError, ValueError):
    """Hex input is not a whitespace-separated list of byte tokens."""
