#!/usr/bin/env python3
"""
resp-client Command Line Front End

Usage:
    resp-client                           # Interactive prompt against 127.0.0.1:6379
    resp-client --port 6380               # Custom port
    resp-client SET name John             # Run one command and exit
    resp-client --demo                    # Run the demo command sequence
    resp-client --debug                   # Enable debug logging

Interactive commands:
    <COMMAND> [ARGS...]   - Send any command (quote arguments containing spaces)
    help                  - Show this help
    status                - Show connection status and counters
    reconnect             - Reconnect to the server
    exit                  - Exit the client

Environment Variables:
    RESP_CLIENT_HOST, RESP_CLIENT_PORT, RESP_CLIENT_MAX_CONNECT_ATTEMPTS,
    RESP_CLIENT_CONNECT_RETRY_INTERVAL, RESP_CLIENT_COMMAND_TIMEOUT,
    RESP_CLIENT_DEBUG
"""

import argparse
import asyncio
import logging
import shlex
import signal
import sys
import threading
from typing import Any, List

from .client import RespClient
from .config.settings import settings
from .exceptions import RespClientError, ResponseError, TransportError
from .protocol.values import ErrorReply

logger = logging.getLogger(__name__)

HELP_TEXT = """
Send any command as you would to redis-cli, e.g.:
  SET name John
  GET name
  HSET user:1 age 30
  ZADD scores 1.5 alice

Client Commands:
----------------
  help                      Show this help message
  status                    Show connection status and counters
  reconnect                 Reconnect to the server
  exit                      Exit the client
"""


def parse_args(argv: List[str] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="resp-client: asynchronous RESP key-value client",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument("--host", type=str, default=settings.HOST, help="Server host")
    parser.add_argument("--port", type=int, default=settings.PORT, help="Server port")
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=settings.MAX_CONNECT_ATTEMPTS,
        help="Connection attempts before giving up",
    )
    parser.add_argument(
        "--retry-interval",
        type=float,
        default=settings.CONNECT_RETRY_INTERVAL,
        help="Seconds between connection attempts",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.COMMAND_TIMEOUT,
        help="Seconds to wait for each reply (default: wait forever)",
    )
    parser.add_argument("--demo", action="store_true", help="Run the demo command sequence")
    parser.add_argument("--debug", action="store_true", default=settings.DEBUG, help="Enable debug logging")
    parser.add_argument("command", nargs="*", help="Command to run once, e.g. GET name")

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def format_reply(value: Any, indent: int = 0) -> str:
    """
    Render a reply the way redis-cli does.

    Examples:
        >>> format_reply(b"John")
        '"John"'
        >>> format_reply(3)
        '(integer) 3'
        >>> print(format_reply([b"a", [b"b", None]]))
        1) "a"
        2) 1) "b"
           2) (nil)
    """
    if value is None:
        return "(nil)"
    if isinstance(value, ErrorReply):
        return f"(error) {value.message}"
    if isinstance(value, int):
        return f"(integer) {value}"
    if isinstance(value, bytes):
        return '"' + value.decode("utf-8", "replace") + '"'
    if isinstance(value, list):
        if not value:
            return "(empty array)"
        width = len(str(len(value)))
        lines = []
        for index, item in enumerate(value, 1):
            prefix = f"{index:>{width}}) "
            pad = "" if index == 1 else " " * indent
            lines.append(pad + prefix + format_reply(item, indent + len(prefix)))
        return "\n".join(lines)
    return str(value)


async def run_command(client: RespClient, words: List[str]) -> bool:
    """Execute one command and print its reply. Returns False on error reply."""
    try:
        reply = await client.execute(*words)
    except ResponseError as exc:
        print(f"(error) {exc.message}")
        return False
    print(format_reply(reply))
    return True


async def run_demo(client: RespClient) -> None:
    """Exercise a handful of commands against the server."""
    print("SET Response:", format_reply(await client.set("name", "John")))
    print("GET Response:", format_reply(await client.execute("GET", "name")))

    await client.geoadd("locations", "-73.935242", "40.730610", "New York")
    await client.geoadd("locations", "-118.243683", "34.052235", "Los Angeles")
    geohash = await client.geohash("locations", "New York", "Los Angeles")
    print("GEOHASH Response:\n" + format_reply(geohash))

    await client.hset("user:1", "age", "30")
    await client.hincrby("user:1", "age", 2)
    print("New Age:", format_reply(await client.hget("user:1", "age")))
    print("HGETALL Response:\n" + format_reply(await client.hgetall("user:1")))


def read_line(prompt: str) -> asyncio.Future:
    """
    Prompt for one line of input on a daemon thread.

    A daemon thread (rather than the loop's default executor) lets a
    pending prompt be abandoned on Ctrl-C without delaying exit.

    Returns:
        Future resolved with the line, or failed with EOFError at end of input.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def settle(line, error):
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(line)

    def worker():
        line, error = None, None
        try:
            line = input(prompt)
        except Exception as exc:
            error = exc
        try:
            loop.call_soon_threadsafe(settle, line, error)
        except RuntimeError:
            # The loop closed while the prompt was open
            pass

    threading.Thread(target=worker, name="resp-client-input", daemon=True).start()
    return future


async def run_interactive(client: RespClient) -> None:
    """Read commands from stdin until exit or EOF."""
    prompt = f"{client.host}:{client.port}> "
    print("Type 'help' for available commands, 'exit' to quit.")

    while True:
        try:
            line = await read_line(prompt)
        except EOFError:
            print()
            return

        try:
            words = shlex.split(line)
        except ValueError as exc:
            print(f"Invalid input: {exc}")
            continue
        if not words:
            continue

        keyword = words[0].lower()
        if keyword in ("exit", "quit"):
            return
        if keyword == "help":
            print(HELP_TEXT)
            continue
        if keyword == "status":
            for key, value in client.get_stats().items():
                print(f"  {key}: {value}")
            continue
        if keyword == "reconnect":
            await client.close()
            try:
                await client.connect()
                print("Reconnected")
            except RespClientError as exc:
                print(f"Reconnect failed: {exc}")
            continue

        try:
            await run_command(client, words)
        except TransportError as exc:
            print(f"Connection error: {exc} (type 'reconnect' to try again)")
        except RespClientError as exc:
            print(f"Error: {exc}")


async def run(args: argparse.Namespace) -> int:
    """Connect, run the selected mode, and close the client."""
    client = RespClient(
        host=args.host,
        port=args.port,
        max_connect_attempts=args.max_attempts,
        connect_retry_interval=args.retry_interval,
        command_timeout=args.timeout,
    )

    # Setup signal handlers for graceful shutdown (Unix only)
    main_task = asyncio.current_task()
    loop = asyncio.get_running_loop()
    signals = (signal.SIGTERM, signal.SIGINT) if sys.platform != 'win32' else ()
    for sig in signals:
        loop.add_signal_handler(sig, main_task.cancel)

    try:
        await client.connect()
        if args.demo:
            await run_demo(client)
            return 0
        if args.command:
            return 0 if await run_command(client, args.command) else 1
        await run_interactive(client)
        return 0
    except asyncio.CancelledError:
        logger.info("Interrupted, shutting down")
        return 130
    except RespClientError as exc:
        logger.error(f"Error: {exc}")
        return 1
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)
        await client.close()


def main(argv: List[str] = None) -> None:
    """Main entry point for the client."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
