"""Listener capability and callback dispatch.

The service reports everything through two callbacks, ``on_message(text,
sender)`` and ``on_error(text)``. Callbacks are handed to a dispatcher, which
decides which thread runs them: GUI hosts post them to their UI thread, simple
hosts run them inline.
"""

import queue
from typing import Callable, Optional, Protocol

Callback = Callable[[], None]
Dispatcher = Callable[[Callback], None]
MessageHandler = Callable[[str, str], None]  # (text, sender) -> None
ErrorHandler = Callable[[str], None]  # (text) -> None


class MessageListener(Protocol):
    def on_message(self, text: str, sender: str) -> None:
        ...

    def on_error(self, text: str) -> None:
        ...


def call_inline(callback: Callback) -> None:
    """Run the callback on the calling thread."""
    callback()


class QueueDispatcher:
    """
    Queues callbacks for a host thread to run.

    Example:
        dispatcher = QueueDispatcher()
        messenger = MulticastMessenger(group, port, dispatch=dispatcher)
        messenger.start()
        while running:
            dispatcher.run_pending(timeout=1.0)
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue[Callback]" = queue.Queue()

    def __call__(self, callback: Callback) -> None:
        self._queue.put(callback)

    def run_pending(self, timeout: Optional[float] = None) -> int:
        """
        Run every queued callback on the current thread.

        Args:
            timeout: Seconds to wait for the first callback (None blocks)

        Returns:
            Number of callbacks run
        """
        try:
            callback = self._queue.get(timeout=timeout)
        except queue.Empty:
            return 0

        count = 0
        while True:
            callback()
            count += 1
            try:
                callback = self._queue.get_nowait()
            except queue.Empty:
                return count

    def pending(self) -> int:
        """Approximate number of queued callbacks."""
        return self._queue.qsize()
