"""Multicast Messenger - LAN text and hex messaging over UDP multicast."""

__version__ = "0.1.0"

from .config import Endpoint
from .interfaces import InterfaceSelector, LinkType, NetworkInterfaceDescriptor
from .listener import MessageListener, QueueDispatcher, call_inline
from .messenger import MulticastMessenger
from .protocol import InboundMessage, OutboundRequest, hex_decode, hex_encode, looks_like_text
from .validators import check_hex_format, check_sync_frame

__all__ = [
    "MulticastMessenger",
    "Endpoint",
    "InterfaceSelector",
    "LinkType",
    "NetworkInterfaceDescriptor",
    "MessageListener",
    "QueueDispatcher",
    "call_inline",
    "InboundMessage",
    "OutboundRequest",
    "hex_encode",
    "hex_decode",
    "looks_like_text",
    "check_hex_format",
    "check_sync_frame",
    "__version__",
]
