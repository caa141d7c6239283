"""Wake resource abstraction.

Some platforms power down the WiFi radio's multicast filter unless a lock is
held. The service never implements such a lock itself: the host injects a
provider, and the service only acquires it before joining over WiFi and
releases it after leaving.
"""

from typing import Protocol


class WakeResource(Protocol):
    def release(self) -> None:
        ...


class WakeResourceProvider(Protocol):
    def acquire(self) -> WakeResource:
        ...


class NullWakeResource:
    """Resource handed out where no platform lock exists."""

    def __init__(self) -> None:
        self.held = True

    def release(self) -> None:
        self.held = False


class NullWakeProvider:
    """Default provider for hosts that keep multicast reception on anyway."""

    def acquire(self) -> NullWakeResource:
        return NullWakeResource()
