"""Pluggable checks applied to hex input before it is sent.

A validator is any callable taking the raw hex text and raising
:class:`InvalidHexFormat` when the input is unacceptable.
"""

from typing import Callable

from .errors import InvalidHexFormat
from .protocol import hex_decode

HexValidator = Callable[[str], None]

FRAME_HEADER = ("55", "AA")
FRAME_MIN_TOKENS = 7


def check_hex_format(text: str) -> None:
    """Accept any non-empty whitespace-separated list of 1-2 digit hex bytes."""
    if not hex_decode(text):
        raise InvalidHexFormat("No hex bytes given")


def check_sync_frame(text: str) -> None:
    """
    Validate a ``55 AA`` sync frame.

    A frame has at least seven byte tokens, starts with the literal tokens
    ``55 AA`` (uppercase, two digits each) and ends with a checksum byte equal
    to the sum of every byte between the header and the checksum. Body tokens
    may be in either case. The sum is not reduced modulo 256, so frames whose
    body sums past 0xFF are rejected.
    """
    data = hex_decode(text)
    if len(data) < FRAME_MIN_TOKENS:
        raise InvalidHexFormat(
            f"Frame needs at least {FRAME_MIN_TOKENS} bytes, got {len(data)}"
        )
    if tuple(text.split()[:2]) != FRAME_HEADER:
        raise InvalidHexFormat("Frame must start with 55 AA")

    body_sum = sum(data[2:-1])
    if body_sum != data[-1]:
        raise InvalidHexFormat(
            f"Frame checksum mismatch: expected {body_sum:#04x}, got {data[-1]:#04x}"
        )
