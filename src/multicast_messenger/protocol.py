"""Payload handling for the multicast wire format.

Datagrams carry no envelope: a payload is either raw UTF-8 text or raw binary
that was typed in as hex. Receivers tell the two apart heuristically.
"""

import string
from dataclasses import dataclass

from .errors import InvalidHexFormat

HEX_PREFIX = "[HEX] "
TEXT_THRESHOLD = 0.8
_WHITESPACE_CONTROLS = frozenset("\n\r\t")


@dataclass(frozen=True)
class InboundMessage:
    """A decoded datagram from a peer."""
    text: str
    sender: str


@dataclass(frozen=True)
class OutboundRequest:
    """One datagram to transmit."""
    payload: bytes
    is_hex: bool
    display: str

    @property
    def notification(self) -> str:
        """Text reported to the listener once the datagram is sent."""
        prefix = "Sent HEX: " if self.is_hex else "Sent: "
        return prefix + self.display


def hex_encode(data: bytes) -> str:
    """Encode bytes as space-separated uppercase hex, e.g. ``"55 AA 02"``."""
    return " ".join(f"{byte:02X}" for byte in data)


def hex_decode(text: str) -> bytes:
    """
    Decode whitespace-separated hex byte tokens.

    Tokens may be one or two hex digits in either case, so ``"5 aa"`` decodes
    to ``b"\\x05\\xaa"``. Blank input decodes to ``b""``.

    Raises:
        InvalidHexFormat: If any token is not a byte
    """
    result = bytearray()
    for token in text.split():
        if len(token) > 2:
            raise InvalidHexFormat(f"Token {token!r} is longer than one byte")
        if not all(char in string.hexdigits for char in token):
            raise InvalidHexFormat(f"Token {token!r} is not hexadecimal")
        result.append(int(token, 16))
    return bytes(result)


def _is_printable(char: str) -> bool:
    return " " <= char <= "~" or char in _WHITESPACE_CONTROLS


def looks_like_text(data: bytes) -> bool:
    """
    Decide whether a payload should be shown as text.

    The payload must decode as UTF-8 and at least 80% of the decoded characters
    must be printable ASCII or newline/carriage return/tab. Empty payloads count
    as text.
    """
    try:
        decoded = data.decode("utf-8")
    except UnicodeDecodeError:
        return False

    printable = sum(1 for char in decoded if _is_printable(char))
    return printable >= len(decoded) * TEXT_THRESHOLD


def render_payload(data: bytes) -> str:
    """Render a received payload as text, or as a ``[HEX]`` dump if binary."""
    if looks_like_text(data):
        return data.decode("utf-8")
    return HEX_PREFIX + hex_encode(data)
