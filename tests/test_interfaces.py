"""Tests for the interfaces module."""

import socket
from types import SimpleNamespace

import psutil
import pytest

from conftest import make_interface
from multicast_messenger.interfaces import InterfaceSelector, LinkType, classify_name

MULTICAST_FLAGS = "up,broadcast,running,multicast"


def ipv4(address):
    return SimpleNamespace(family=socket.AF_INET, address=address)


def ipv6(address):
    return SimpleNamespace(family=socket.AF_INET6, address=address)


def stats(isup=True, flags=MULTICAST_FLAGS):
    return SimpleNamespace(isup=isup, flags=flags)


@pytest.fixture
def fake_host(monkeypatch):
    """Patch psutil with the given interface tables."""

    def install(addrs, if_stats):
        monkeypatch.setattr(psutil, "net_if_addrs", lambda: addrs)
        monkeypatch.setattr(psutil, "net_if_stats", lambda: if_stats)

    return install


@pytest.mark.parametrize(
    "name, expected",
    [
        ("wlan0", LinkType.WIFI),
        ("WiFi", LinkType.WIFI),
        ("eth0", LinkType.ETHERNET),
        ("enp3s0", LinkType.ETHERNET),
        ("en0", LinkType.ETHERNET),
        ("rmnet_data0", LinkType.ETHERNET),
        ("rndis0", LinkType.ETHERNET),
        ("usb0", LinkType.ETHERNET),
        ("docker0", LinkType.OTHER),
        ("tun0", LinkType.OTHER),
    ],
)
def test_classify_name(name, expected):
    """Interface names are classified by prefix."""
    assert classify_name(name) is expected


def test_classify_descriptor():
    """classify() looks at the descriptor's name."""
    assert InterfaceSelector.classify(make_interface("wlan1")) is LinkType.WIFI


def test_select_prefers_ethernet():
    """Ethernet wins over WiFi regardless of order."""
    selector = InterfaceSelector()
    wifi, eth = make_interface("wlan0"), make_interface("eth0")
    assert selector.select([wifi, eth]) is eth


def test_select_wifi_over_other():
    """WiFi wins when there is no Ethernet."""
    selector = InterfaceSelector()
    other, wifi = make_interface("tun0"), make_interface("wlan0")
    assert selector.select([other, wifi]) is wifi


def test_select_other_as_last_resort():
    """Other interfaces are used when nothing better exists."""
    selector = InterfaceSelector()
    other = make_interface("tun0")
    assert selector.select([other]) is other


def test_select_first_within_class():
    """The first discovered interface of the winning class is chosen."""
    selector = InterfaceSelector()
    first, second = make_interface("eth1"), make_interface("eth0")
    assert selector.select([make_interface("wlan0"), first, second]) is first


def test_select_empty():
    """An empty candidate list selects nothing."""
    assert InterfaceSelector().select([]) is None


def test_needs_wake_resource():
    """A wake resource is needed only when a WiFi interface is present."""
    selector = InterfaceSelector()
    assert selector.needs_wake_resource([make_interface("eth0"), make_interface("wlan0")])
    assert not selector.needs_wake_resource([make_interface("eth0"), make_interface("tun0")])
    assert not selector.needs_wake_resource([])


def test_discover_filters_unusable_interfaces(fake_host):
    """Down, loopback, non-multicast and address-less interfaces are skipped."""
    fake_host(
        {
            "lo": [ipv4("127.0.0.1")],
            "eth0": [ipv4("192.168.1.10"), ipv6("fe80::1")],
            "eth1": [ipv4("10.0.0.2")],
            "wlan0": [ipv4("192.168.1.11")],
            "tun0": [ipv4("10.8.0.1")],
            "eth2": [ipv6("fe80::2")],
        },
        {
            "lo": stats(flags="up,loopback,running"),
            "eth0": stats(),
            "eth1": stats(isup=False),
            "wlan0": stats(),
            "tun0": stats(flags="up,pointopoint,running,noarp"),
            "eth2": stats(),
        },
    )

    candidates = InterfaceSelector().discover()

    assert [c.name for c in candidates] == ["eth0", "wlan0"]
    eth0 = candidates[0]
    assert eth0.address == "192.168.1.10"
    assert eth0.link_type is LinkType.ETHERNET
    assert eth0.is_up and eth0.supports_multicast and eth0.has_address


def test_discover_without_flags(fake_host):
    """Without interface flags, multicast is assumed and loopback comes from the address."""
    fake_host(
        {
            "Loopback Pseudo-Interface 1": [ipv4("127.0.0.1")],
            "Ethernet": [ipv4("192.168.1.10")],
        },
        {
            "Loopback Pseudo-Interface 1": stats(flags=""),
            "Ethernet": stats(flags=""),
        },
    )

    candidates = InterfaceSelector().discover()

    assert [c.name for c in candidates] == ["Ethernet"]


def test_discover_missing_stats(fake_host):
    """An interface with no stats entry is treated as down."""
    fake_host({"eth0": [ipv4("192.168.1.10")]}, {})
    assert InterfaceSelector().discover() == []


def test_discover_enumeration_error(monkeypatch):
    """An enumeration error yields an empty list instead of raising."""

    def broken():
        raise OSError("no netlink")

    monkeypatch.setattr(psutil, "net_if_addrs", broken)
    assert InterfaceSelector().discover() == []


def test_discover_access_denied(monkeypatch):
    """psutil's own errors are contained the same way."""

    def denied():
        raise psutil.AccessDenied()

    monkeypatch.setattr(psutil, "net_if_stats", denied)
    assert InterfaceSelector().discover() == []
