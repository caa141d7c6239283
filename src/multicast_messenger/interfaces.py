"""Network interface discovery and selection for multicast."""

import ipaddress
import socket
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

import psutil
from loguru import logger

WIFI_PREFIXES = ("wlan", "wifi")
ETHERNET_PREFIXES = ("eth", "en", "rmnet", "rndis", "usb")


class LinkType(Enum):
    """Coarse link classification, derived from the interface name."""
    ETHERNET = "Ethernet"
    WIFI = "WiFi"
    OTHER = "Other"


# Lower value wins.
LINK_PRIORITY = {
    LinkType.ETHERNET: 0,
    LinkType.WIFI: 1,
    LinkType.OTHER: 2,
}


@dataclass(frozen=True)
class NetworkInterfaceDescriptor:
    """Read-only snapshot of a host interface taken during discovery."""
    name: str
    link_type: LinkType
    is_up: bool
    supports_multicast: bool
    has_address: bool
    address: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.name} ({self.link_type.value})"


def classify_name(name: str) -> LinkType:
    """
    Guess the link type from an interface name.

    This is a naming-convention heuristic (``wlan0``, ``eth0``, ``enp3s0``,
    ``rmnet_data0``...), not authoritative hardware metadata.
    """
    lowered = name.lower()
    if lowered.startswith(WIFI_PREFIXES):
        return LinkType.WIFI
    if lowered.startswith(ETHERNET_PREFIXES):
        return LinkType.ETHERNET
    return LinkType.OTHER


def _flags(stats) -> Optional[set]:
    # psutil only reports flags on Linux, BSD and macOS
    raw = getattr(stats, "flags", "") if stats is not None else ""
    if not raw:
        return None
    return set(raw.split(","))


class InterfaceSelector:
    """
    Enumerates host interfaces and picks one to join the group on.

    Selection priority is Ethernet > WiFi > Other. Within a class the first
    interface in discovery order wins.
    """

    def discover(self) -> List[NetworkInterfaceDescriptor]:
        """
        Find interfaces usable for multicast.

        Interfaces that are down, loopback, not multicast-capable or without an
        IPv4 address are skipped.

        Returns:
            Usable interfaces in discovery order, empty if none qualify
        """
        try:
            addrs = psutil.net_if_addrs()
            stats = psutil.net_if_stats()
        except (psutil.Error, OSError, RuntimeError) as exc:
            logger.error("[Multicast/Interfaces] enumeration failed: {}", exc)
            return []

        candidates = []
        for name, entries in addrs.items():
            descriptor = self._describe(name, entries, stats.get(name))
            if descriptor is not None:
                candidates.append(descriptor)

        logger.info(
            "[Multicast/Interfaces] found {} multicast-enabled interface(s)",
            len(candidates),
        )
        return candidates

    def _describe(self, name, entries, stats) -> Optional[NetworkInterfaceDescriptor]:
        ipv4 = [entry.address for entry in entries if entry.family == socket.AF_INET]
        flags = _flags(stats)

        is_up = bool(stats is not None and stats.isup)
        if not is_up:
            logger.trace("[Multicast/Interfaces] skipping {} (not up)", name)
            return None

        if flags is not None:
            is_loopback = "loopback" in flags
            supports_multicast = "multicast" in flags
        else:
            is_loopback = any(ipaddress.ip_address(ip).is_loopback for ip in ipv4)
            supports_multicast = True

        if is_loopback:
            logger.trace("[Multicast/Interfaces] skipping {} (loopback)", name)
            return None
        if not supports_multicast:
            logger.trace("[Multicast/Interfaces] skipping {} (no multicast)", name)
            return None
        if not ipv4:
            logger.trace("[Multicast/Interfaces] skipping {} (no IP address)", name)
            return None

        descriptor = NetworkInterfaceDescriptor(
            name=name,
            link_type=classify_name(name),
            is_up=is_up,
            supports_multicast=supports_multicast,
            has_address=True,
            address=ipv4[0],
        )
        logger.debug("[Multicast/Interfaces] usable interface: {} {}", descriptor, ipv4[0])
        return descriptor

    @staticmethod
    def classify(descriptor: NetworkInterfaceDescriptor) -> LinkType:
        """Classify an interface by its name. See :func:`classify_name`."""
        return classify_name(descriptor.name)

    def select(
        self, candidates: Sequence[NetworkInterfaceDescriptor]
    ) -> Optional[NetworkInterfaceDescriptor]:
        """
        Pick the preferred interface.

        Args:
            candidates: Interfaces in discovery order

        Returns:
            The selected interface, or None if candidates is empty
        """
        if not candidates:
            logger.warning("[Multicast/Interfaces] no interfaces available for selection")
            return None

        # min() keeps the first of equal keys, so discovery order breaks ties
        selected = min(candidates, key=lambda c: LINK_PRIORITY[self.classify(c)])
        logger.info(
            "[Multicast/Interfaces] selected {} out of {} candidate(s)",
            selected,
            len(candidates),
        )
        return selected

    def needs_wake_resource(self, candidates: Sequence[NetworkInterfaceDescriptor]) -> bool:
        """True if any candidate is WiFi, whose radio may drop multicast when idle."""
        return any(self.classify(c) is LinkType.WIFI for c in candidates)
