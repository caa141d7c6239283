"""Test doubles shared by the messenger tests."""

import queue
import threading
import time

import pytest

from multicast_messenger.interfaces import (
    InterfaceSelector,
    NetworkInterfaceDescriptor,
    classify_name,
)


def make_interface(name: str, address: str = "192.168.1.10") -> NetworkInterfaceDescriptor:
    return NetworkInterfaceDescriptor(
        name=name,
        link_type=classify_name(name),
        is_up=True,
        supports_multicast=True,
        has_address=True,
        address=address,
    )


def wait_for(predicate, timeout: float = 2.0) -> bool:
    """Poll until predicate() is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class FakeSocket:
    """
    In-memory socket. recvfrom_into blocks until a datagram is queued.

    Closing it wakes the blocked receive with EBADF, or with ``late_datagram``
    if one is set, mimicking a packet that lands just as the socket closes.
    """

    def __init__(self, late_datagram=None, send_error=None):
        self._inbox = queue.Queue()
        self.late_datagram = late_datagram
        self.send_error = send_error
        self.closed = False
        self.sent = []

    def inject(self, data: bytes, sender: str = "192.168.1.20") -> None:
        self._inbox.put((data, (sender, 40000)))

    def fail(self, error: OSError) -> None:
        self._inbox.put(error)

    def recvfrom_into(self, buffer):
        item = self._inbox.get()
        if isinstance(item, Exception):
            raise item
        data, addr = item
        nbytes = min(len(data), len(buffer))
        buffer[:nbytes] = data[:nbytes]
        return nbytes, addr

    def sendto(self, data, addr):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((data, addr))
        return len(data)

    def shutdown(self, how):
        pass

    def close(self):
        if self.closed:
            return
        self.closed = True
        if self.late_datagram is not None:
            self._inbox.put((self.late_datagram, ("192.168.1.20", 40000)))
        else:
            self._inbox.put(OSError(9, "Bad file descriptor"))


class FakeSocketFactory:
    """Records every socket operation instead of touching the network."""

    def __init__(self):
        self.receivers = []  # (endpoint, FakeSocket)
        self.senders = []  # (interface_address, FakeSocket)
        self.joined = []
        self.left = []
        self.bind_error = None
        self.join_error = None
        self.send_error = None
        self.late_datagram = None

    @property
    def invoked(self) -> bool:
        return bool(self.receivers or self.senders or self.joined or self.left)

    @property
    def receiver(self) -> FakeSocket:
        return self.receivers[-1][1]

    def open_receiver(self, endpoint, timeout=None):
        if self.bind_error is not None:
            raise self.bind_error
        sock = FakeSocket(late_datagram=self.late_datagram)
        self.receivers.append((endpoint, sock))
        return sock

    def join(self, sock, group, interface_address):
        if self.join_error is not None:
            raise self.join_error
        self.joined.append((group, interface_address))

    def leave(self, sock, group, interface_address):
        self.left.append((group, interface_address))

    def open_sender(self, interface_address=None):
        sock = FakeSocket(send_error=self.send_error)
        self.senders.append((interface_address, sock))
        return sock


class FakeSelector(InterfaceSelector):
    """Selector with a fixed discovery result."""

    def __init__(self, candidates):
        self.candidates = list(candidates)

    def discover(self):
        return list(self.candidates)


class RecordingWakeProvider:
    def __init__(self):
        self.acquired = 0
        self.released = 0

    def acquire(self):
        self.acquired += 1
        return self

    def release(self):
        self.released += 1


class RecordingListener:
    def __init__(self):
        self.messages = []
        self.errors = []
        self._lock = threading.Lock()

    def on_message(self, text, sender):
        with self._lock:
            self.messages.append((text, sender))

    def on_error(self, text):
        with self._lock:
            self.errors.append(text)

    def peer_messages(self):
        with self._lock:
            return [m for m in self.messages if m[1] != "System"]

    def system_messages(self):
        with self._lock:
            return [text for text, sender in self.messages if sender == "System"]


@pytest.fixture
def sockets():
    return FakeSocketFactory()


@pytest.fixture
def wake():
    return RecordingWakeProvider()


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def ethernet():
    return make_interface("eth0", "192.168.1.10")


@pytest.fixture
def wifi():
    return make_interface("wlan0", "192.168.1.11")
