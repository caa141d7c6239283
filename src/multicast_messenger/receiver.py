"""Background receive loop for a joined multicast socket."""

import socket
import threading
from typing import Callable, Optional

from loguru import logger

from .config import BUFFER_SIZE
from .errors import ReceiveFailure
from .protocol import InboundMessage, render_payload


class ReceiveLoop:
    """
    Receives datagrams on a dedicated thread until stopped.

    The liveness flag is the only session state read here without the
    messenger's lock. It is checked after every receive returns, so a datagram
    that arrives while the session is being torn down is dropped silently.

    Args:
        sock: Joined receiver socket
        deliver: Called with each decoded message
        on_failure: Called once if the socket fails while still live
        name: Thread name
    """

    def __init__(
        self,
        sock: socket.socket,
        deliver: Callable[[InboundMessage], None],
        on_failure: Callable[[ReceiveFailure], None],
        name: str = "MulticastReceiver",
        buffer_size: int = BUFFER_SIZE,
    ):
        self._sock = sock
        self._deliver = deliver
        self._on_failure = on_failure
        self._buffer_size = buffer_size
        self._alive = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.name = name

    @property
    def alive(self) -> bool:
        """True until stop is signalled."""
        return self._alive.is_set()

    def start(self) -> None:
        """Set the liveness flag and launch the receive thread."""
        self._alive.set()
        self._thread = threading.Thread(target=self._run, daemon=True, name=self.name)
        self._thread.start()

    def signal_stop(self) -> None:
        """Clear the liveness flag. Must happen before the socket is closed."""
        self._alive.clear()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the receive thread to exit.

        Returns:
            True if the thread has exited (or was never started, or is the
            calling thread), False if the timeout expired first
        """
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return True
        thread.join(timeout=timeout)
        return not thread.is_alive()

    def _run(self) -> None:
        """Background thread: receive, decode and deliver datagrams."""
        scratch = bytearray(self._buffer_size)
        logger.debug("[Multicast/Receive] receiver thread started")

        while self._alive.is_set():
            try:
                nbytes, addr = self._sock.recvfrom_into(scratch)
            except socket.timeout:
                continue
            except OSError as exc:
                if self._alive.is_set():
                    logger.error("[Multicast/Receive] error receiving: {}", exc)
                    self._on_failure(ReceiveFailure(str(exc)))
                break

            if not self._alive.is_set():
                logger.debug("[Multicast/Receive] dropping datagram received during shutdown")
                break

            payload = bytes(scratch[:nbytes])
            message = InboundMessage(text=render_payload(payload), sender=addr[0])
            logger.debug(
                "[Multicast/Receive] {} bytes from {}: {}", nbytes, message.sender, message.text
            )
            try:
                self._deliver(message)
            except Exception as exc:
                logger.error("[Multicast/Receive] error delivering message: {}", exc)

        logger.debug("[Multicast/Receive] receiver thread stopped")
