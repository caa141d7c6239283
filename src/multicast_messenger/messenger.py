"""MulticastMessenger: start/stop, send and listener callbacks for one group."""

import threading
from typing import List, Optional

from loguru import logger

from .config import BUFFER_SIZE, SYSTEM_SENDER, Endpoint, validate_group, validate_port
from .errors import EmptyPayload, InvalidHexFormat, MulticastError, NoInterfaceAvailable, SendFailure
from .interfaces import InterfaceSelector, NetworkInterfaceDescriptor
from .listener import (
    Dispatcher,
    ErrorHandler,
    MessageHandler,
    MessageListener,
    call_inline,
)
from .network import SocketFactory
from .protocol import InboundMessage, OutboundRequest, hex_decode
from .session import MulticastSession, SessionState
from .validators import HexValidator, check_hex_format
from .wakelock import NullWakeProvider, WakeResourceProvider

HEX_USAGE = "Use space-separated hex bytes (e.g., '55 AA 02 6B DA')"


class MulticastMessenger:
    """
    UDP multicast messenger bound to one group.

    At most one session is active at a time. ``start`` and ``stop`` are
    serialised by a single lock; received messages arrive on a background
    thread and are handed to the dispatcher; every ``send`` runs on its own
    short-lived thread.

    Example:
        messenger = MulticastMessenger("239.0.0.1", 30004)

        @messenger.on_message
        def handle(text, sender):
            print(f"[{sender}]: {text}")

        messenger.start()
        messenger.send("Hello!")
        # ... later ...
        messenger.stop()
    """

    def __init__(
        self,
        group: str,
        port: int,
        listener: Optional[MessageListener] = None,
        dispatch: Dispatcher = call_inline,
        selector: Optional[InterfaceSelector] = None,
        sockets: Optional[SocketFactory] = None,
        wake_provider: Optional[WakeResourceProvider] = None,
        hex_validator: HexValidator = check_hex_format,
    ):
        """
        Initialize the messenger. Nothing touches the network until start().

        Args:
            group: IPv4 multicast group, fixed for the messenger's lifetime
            port: UDP port, can be changed with set_port() between sessions
            listener: Object with on_message(text, sender) and on_error(text)
            dispatch: Runs listener callbacks on the thread the host requires
            selector: Interface discovery and selection policy
            sockets: Socket factory
            wake_provider: Supplies the wake resource held over WiFi
            hex_validator: Extra check applied to send_hex() input
        """
        self.group = validate_group(group)
        self._port = validate_port(port)
        self._listener = listener
        self._message_handlers: List[MessageHandler] = []
        self._error_handlers: List[ErrorHandler] = []
        self._dispatch = dispatch
        self._selector = selector or InterfaceSelector()
        self._sockets = sockets or SocketFactory()
        self._wake_provider = wake_provider or NullWakeProvider()
        self._hex_validator = hex_validator
        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._session: Optional[MulticastSession] = None

    # -- listener registration ------------------------------------------------

    def set_listener(self, listener: Optional[MessageListener]) -> None:
        """Replace the listener object (None to detach it)."""
        self._listener = listener

    def on_message(self, handler: MessageHandler) -> MessageHandler:
        """
        Register a message handler (can be used as decorator).

        Args:
            handler: Function that takes (text, sender) arguments

        Returns:
            The handler (for decorator use)
        """
        self._message_handlers.append(handler)
        return handler

    def on_error(self, handler: ErrorHandler) -> ErrorHandler:
        """Register an error handler taking (text). Usable as a decorator."""
        self._error_handlers.append(handler)
        return handler

    # -- configuration ----------------------------------------------------------

    @property
    def port(self) -> int:
        """Configured port. The running session keeps the port it started with."""
        return self._port

    def set_port(self, port: int) -> None:
        """Set the port used by the next start()."""
        self._port = validate_port(port)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def selected_interface(self) -> Optional[NetworkInterfaceDescriptor]:
        """Interface the active session joined on, None when not listening."""
        with self._lock:
            return self._session.interface if self._session is not None else None

    def is_listening(self) -> bool:
        with self._lock:
            return self._session is not None and self._session.alive

    def get_info(self) -> str:
        """Summarise group, port and (while listening) the interface in use."""
        with self._lock:
            session = self._session
            port = session.endpoint.port if session is not None else self._port
            lines = [f"Group: {self.group}", f"Port: {port}"]
            if session is not None and session.interface is not None:
                lines.append(f"Interface: {session.interface}")
        return "\n".join(lines)

    # -- lifecycle ----------------------------------------------------------------

    def start(self) -> bool:
        """
        Join the group on the best interface and start receiving.

        Returns:
            True if listening (including when already listening), False if the
            session could not be started. Failures are also reported through
            on_error.
        """
        with self._lock:
            if self._state is SessionState.ACTIVE:
                logger.warning("[Multicast] already listening")
                return True

            self._state = SessionState.STARTING
            endpoint = Endpoint(self.group, self._port)
            try:
                session = self._open_session(endpoint)
            except Exception as exc:
                logger.error("[Multicast] error starting multicast listener: {}", exc)
                self._state = SessionState.IDLE
                self._emit_error(f"Failed to start listening: {exc}")
                return False

            self._session = session
            self._state = SessionState.ACTIVE
            logger.info("[Multicast] listening on {} via {}", endpoint, session.interface)
            self._emit_message(
                f"Started listening on {endpoint} via {session.interface.link_type.value}"
            )
            return True

    def _open_session(self, endpoint: Endpoint) -> MulticastSession:
        logger.info("[Multicast] discovering multicast-enabled network interfaces...")
        candidates = self._selector.discover()
        interface = self._selector.select(candidates)
        if interface is None:
            raise NoInterfaceAvailable(
                "No multicast-capable network interfaces found. "
                "Please check WiFi/Ethernet connection."
            )
        logger.info("[Multicast] using interface: {}", interface)

        wake_resource = None
        if self._selector.needs_wake_resource(candidates):
            wake_resource = self._wake_provider.acquire()
            logger.debug("[Multicast] wake resource acquired (WiFi interface detected)")
        else:
            logger.debug("[Multicast] wake resource not needed (no WiFi interface)")

        # From here on session.close() releases whatever was acquired
        session = MulticastSession(
            endpoint,
            interface,
            self._sockets,
            deliver=self._deliver,
            on_failure=self._handle_receive_failure,
            wake_resource=wake_resource,
        )
        try:
            session.open()
        except Exception:
            session.close()
            raise
        return session

    def stop(self) -> None:
        """Leave the group and release the session. A no-op when not listening."""
        with self._lock:
            if self._state is not SessionState.ACTIVE:
                logger.warning("[Multicast] not listening")
                return
            logger.debug("[Multicast] stopping multicast listener")
            self._session.stop_requested = True
            self._teardown()
            self._emit_message("Stopped listening")

    def _teardown(self) -> None:
        self._state = SessionState.STOPPING
        session, self._session = self._session, None
        try:
            if session is not None:
                session.close()
        finally:
            self._state = SessionState.IDLE

    def _handle_receive_failure(self, session: MulticastSession, failure: MulticastError) -> None:
        """Receive thread: report the failure, then tear its session down."""
        text = f"Error receiving: {failure}"

        # Dropped if stop() wins the race before a queueing dispatcher runs it
        def report_unless_stopped() -> None:
            if not session.stop_requested:
                self._notify_error(text)

        self._dispatch(report_unless_stopped)
        with self._lock:
            if self._session is not session:
                return
            self._teardown()
            self._emit_message("Stopped listening")

    # -- sending ------------------------------------------------------------------

    def send(self, text: str) -> Optional[threading.Thread]:
        """
        Send a text message to the group.

        Args:
            text: Message text, sent as UTF-8

        Returns:
            The sending thread, or None if the message was rejected
        """
        if not text or not text.strip():
            self._reject(EmptyPayload("Message cannot be empty"))
            return None
        request = OutboundRequest(payload=text.encode("utf-8"), is_hex=False, display=text)
        return self._spawn_send(request)

    def send_hex(self, hex_text: str) -> Optional[threading.Thread]:
        """
        Send raw bytes typed as hex, e.g. ``"55 AA 02 6B DA"``.

        Returns:
            The sending thread, or None if the input was rejected
        """
        if not hex_text or not hex_text.strip():
            self._reject(EmptyPayload("Hex message cannot be empty"))
            return None
        try:
            self._hex_validator(hex_text)
            payload = hex_decode(hex_text)
        except InvalidHexFormat as exc:
            self._reject(InvalidHexFormat(f"Invalid hex format ({exc}). {HEX_USAGE}"))
            return None
        request = OutboundRequest(payload=payload, is_hex=True, display=hex_text.strip())
        return self._spawn_send(request)

    def _reject(self, error: MulticastError) -> None:
        logger.warning("[Multicast/Send] rejected: {}", error)
        self._emit_error(str(error))

    def _spawn_send(self, request: OutboundRequest) -> threading.Thread:
        with self._lock:
            session = self._session
            if session is not None and session.interface is not None:
                endpoint = session.endpoint
                interface_address = session.interface.address
            else:
                endpoint = Endpoint(self.group, self._port)
                interface_address = None

        if len(request.payload) > BUFFER_SIZE:
            logger.warning(
                "[Multicast/Send] {} byte payload exceeds the {} byte receive buffer",
                len(request.payload),
                BUFFER_SIZE,
            )

        thread = threading.Thread(
            target=self._transmit,
            args=(request, endpoint, interface_address),
            daemon=True,
            name="MulticastSender",
        )
        thread.start()
        return thread

    def _transmit(
        self, request: OutboundRequest, endpoint: Endpoint, interface_address: Optional[str]
    ) -> None:
        """Send thread: one datagram on a throwaway socket."""
        sock = None
        try:
            sock = self._sockets.open_sender(interface_address)
            if interface_address is not None:
                logger.debug("[Multicast/Send] sending on interface {}", interface_address)
            sock.sendto(request.payload, (endpoint.group, endpoint.port))
        except Exception as exc:
            failure = SendFailure(str(exc))
            logger.error("[Multicast/Send] error sending message: {}", failure)
            self._emit_error(f"Failed to send: {failure}")
            return
        finally:
            if sock is not None:
                sock.close()

        logger.debug(
            "[Multicast/Send] sent {} ({} bytes) to {}",
            request.display,
            len(request.payload),
            endpoint,
        )
        self._emit_message(request.notification)

    # -- callbacks ----------------------------------------------------------------

    def _deliver(self, session: MulticastSession, message: InboundMessage) -> None:
        # Re-checked when the callback runs, since a queueing dispatcher may
        # run it after the session has been stopped.
        def deliver_if_live() -> None:
            if session.alive:
                self._notify_message(message.text, message.sender)

        self._dispatch(deliver_if_live)

    def _emit_message(self, text: str, sender: str = SYSTEM_SENDER) -> None:
        self._dispatch(lambda: self._notify_message(text, sender))

    def _emit_error(self, text: str) -> None:
        self._dispatch(lambda: self._notify_error(text))

    def _notify_message(self, text: str, sender: str) -> None:
        handlers: List[MessageHandler] = list(self._message_handlers)
        if self._listener is not None:
            handlers.insert(0, self._listener.on_message)
        for handler in handlers:
            try:
                handler(text, sender)
            except Exception as exc:
                logger.error("[Multicast] error in message handler: {}", exc)

    def _notify_error(self, text: str) -> None:
        handlers: List[ErrorHandler] = list(self._error_handlers)
        if self._listener is not None:
            handlers.insert(0, self._listener.on_error)
        for handler in handlers:
            try:
                handler(text)
            except Exception as exc:
                logger.error("[Multicast] error in error handler: {}", exc)

    def __enter__(self) -> "MulticastMessenger":
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.stop()
