"""Command-line interface for multicast-messenger."""

import argparse
import os
import sys
import time
from datetime import datetime

from loguru import logger

from .config import DEFAULT_GROUP, DEFAULT_PORT
from .interfaces import InterfaceSelector
from .listener import QueueDispatcher
from .messenger import MulticastMessenger
from .validators import check_hex_format, check_sync_frame

SEND_WAIT = 2.0  # seconds to wait for a one-shot send to finish


def format_timestamp(ts: float) -> str:
    """Format a timestamp for display."""
    return datetime.fromtimestamp(ts).strftime("%H:%M:%S")


def configure_logging(args: argparse.Namespace) -> None:
    """Route loguru output to stderr at the level chosen on the command line."""
    if args.trace:
        level = "TRACE"
    elif args.verbose:
        level = "DEBUG"
    else:
        level = "WARNING"
    logger.remove()
    logger.add(sys.stderr, level=level)


def print_message(text: str, sender: str) -> None:
    print(f"[{format_timestamp(time.time())}] {sender}: {text}")


def print_error(text: str) -> None:
    print(f"[{format_timestamp(time.time())}] [Error]: {text}")


def build_messenger(args: argparse.Namespace, dispatcher: QueueDispatcher) -> MulticastMessenger:
    validator = check_sync_frame if getattr(args, "frame", False) else check_hex_format
    messenger = MulticastMessenger(
        args.group, args.port, dispatch=dispatcher, hex_validator=validator
    )
    messenger.on_message(print_message)
    messenger.on_error(print_error)
    return messenger


def cmd_send(args: argparse.Namespace, hex_mode: bool = False) -> int:
    """Send one message and exit."""
    dispatcher = QueueDispatcher()
    messenger = build_messenger(args, dispatcher)
    sender = messenger.send_hex(args.message) if hex_mode else messenger.send(args.message)
    if sender is not None:
        sender.join(timeout=SEND_WAIT)
    dispatcher.run_pending(timeout=0)
    return 0 if sender is not None else 1


def cmd_send_hex(args: argparse.Namespace) -> int:
    return cmd_send(args, hex_mode=True)


def cmd_listen(args: argparse.Namespace) -> int:
    """Listen for messages until Ctrl+C."""
    dispatcher = QueueDispatcher()
    messenger = build_messenger(args, dispatcher)

    if not messenger.start():
        dispatcher.run_pending(timeout=0)
        return 1
    print("Listening... (Ctrl+C to stop)")

    try:
        # The main thread plays the part of a UI thread: every callback runs here
        while messenger.is_listening():
            dispatcher.run_pending(timeout=1.0)
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        messenger.stop()
        dispatcher.run_pending(timeout=0)
    return 0


def cmd_interfaces(args: argparse.Namespace) -> int:
    """List multicast-capable interfaces and the one start() would pick."""
    selector = InterfaceSelector()
    candidates = selector.discover()
    if not candidates:
        print("No multicast-capable interfaces found.")
        return 1

    selected = selector.select(candidates)
    print(f"Found {len(candidates)} interface(s):")
    for candidate in candidates:
        marker = "*" if candidate == selected else " "
        print(f" {marker} {candidate}  {candidate.address}")
    if selector.needs_wake_resource(candidates):
        print("A WiFi interface is present; a wake resource would be held.")
    return 0


def cmd_interactive(args: argparse.Namespace) -> int:
    """Interactive REPL mode."""
    dispatcher = QueueDispatcher()
    messenger = build_messenger(args, dispatcher)

    if not messenger.start():
        dispatcher.run_pending(timeout=0)
        return 1
    dispatcher.run_pending(timeout=0)
    print("Commands: /hex <bytes>, /info, /quit")
    print("Type a message and press Enter to send.\n")

    try:
        while True:
            try:
                line = input("> ")
            except EOFError:
                break

            line = line.strip()
            if line == "/quit":
                break
            elif line == "/info":
                print(messenger.get_info())
            elif line.startswith("/hex"):
                messenger.send_hex(line[len("/hex"):])
            elif line.startswith("/"):
                print(f"Unknown command: {line}")
            elif line:
                messenger.send(line)

            # Give sends a moment to report back before the next prompt
            dispatcher.run_pending(timeout=0.2)

    except KeyboardInterrupt:
        pass

    print("\nStopping...")
    messenger.stop()
    dispatcher.run_pending(timeout=0)
    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="multicast-messenger",
        description="LAN messaging over UDP multicast",
    )
    parser.add_argument(
        "--group",
        default=os.environ.get("MULTICAST_GROUP", DEFAULT_GROUP),
        help=f"Multicast group (default: $MULTICAST_GROUP or {DEFAULT_GROUP})",
    )
    parser.add_argument(
        "--port",
        type=int,
        # argparse applies type= to string defaults, so a bad value is a usage error
        default=os.environ.get("MULTICAST_PORT", str(DEFAULT_PORT)),
        help=f"UDP port (default: $MULTICAST_PORT or {DEFAULT_PORT})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--trace", action="store_true", help="Trace logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    send_parser = subparsers.add_parser("send", help="Send a text message and exit")
    send_parser.add_argument("message", help="Message to send")
    send_parser.set_defaults(func=cmd_send)

    hex_parser = subparsers.add_parser("send-hex", help="Send hex bytes and exit")
    hex_parser.add_argument("message", help="Hex bytes, e.g. '55 AA 02 6B DA'")
    hex_parser.add_argument(
        "--frame",
        action="store_true",
        help="Require a 55 AA frame with a trailing checksum byte",
    )
    hex_parser.set_defaults(func=cmd_send_hex)

    listen_parser = subparsers.add_parser("listen", help="Listen for messages")
    listen_parser.set_defaults(func=cmd_listen)

    interfaces_parser = subparsers.add_parser(
        "interfaces", help="List multicast-capable interfaces"
    )
    interfaces_parser.set_defaults(func=cmd_interfaces)

    interactive_parser = subparsers.add_parser(
        "interactive", help="Interactive REPL mode"
    )
    interactive_parser.add_argument(
        "--frame",
        action="store_true",
        help="Require a 55 AA frame for /hex messages",
    )
    interactive_parser.set_defaults(func=cmd_interactive)

    args = parser.parse_args()
    configure_logging(args)

    try:
        sys.exit(args.func(args))
    except ValueError as exc:
        parser.error(str(exc))


if __name__ == "__main__":
    main()
