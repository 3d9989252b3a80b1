"""
Command Dispatcher

Serializes commands from any number of concurrent callers onto one
connection. RESP replies carry no request id, so replies are matched to
requests purely by order: exactly one command is on the wire at a time,
and the next one is written only after the previous reply has arrived.

Two tasks do the work, both on the client's event loop:
- the send loop takes requests off the FIFO queue, writes each frame and
  waits for its reply
- the read loop feeds every inbound chunk into one RespParser and hands
  each complete value to the request currently in flight

Failure handling:
- error reply ('-'): fails that request only
- EOF, socket error, malformed reply: fails the in-flight request and
  every queued request, then refuses new ones until restarted
- per-command timeout: fails that request, re-establishes the connection
  and carries on with the queued requests, none of which were written yet
"""

import asyncio
import logging
from typing import Any, Optional

from ..exceptions import (
    CommandTimeoutError,
    ConnectionExhaustedError,
    ProtocolError,
    ResponseError,
    TransportError,
)
from ..protocol.encoder import encode_command
from ..protocol.parser import RespParser
from ..protocol.values import CommandRequest, CommandState, ErrorReply
from .connection import Connection

logger = logging.getLogger(__name__)


class CommandDispatcher:
    """
    FIFO, one-at-a-time command pipeline over a Connection.

    Usage:
        dispatcher = CommandDispatcher(connection)
        await connection.connect()
        dispatcher.start()
        value = await dispatcher.submit("GET", "key")
        await dispatcher.stop()

    Attributes:
        connection: The Connection commands are written to
        command_timeout: Default seconds to wait for a reply (None = forever)
        encoding: Text encoding for str arguments
    """

    def __init__(
            self,
            connection: Connection,
            command_timeout: Optional[float] = None,
            encoding: str = None,
    ):
        self.connection = connection
        self.command_timeout = command_timeout
        self.encoding = encoding

        self._parser = RespParser()
        self._queue: Optional[asyncio.Queue] = None
        self._in_flight: Optional[CommandRequest] = None
        self._reply: Optional[asyncio.Future] = None
        self._send_task: Optional[asyncio.Task] = None
        self._read_task: Optional[asyncio.Task] = None
        self._running = False
        self._failure: Optional[BaseException] = None

        # Statistics
        self.commands_sent = 0
        self.responses_received = 0
        self.error_replies = 0
        self.failed_commands = 0
        self.reconnects = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        """Number of requests queued or in flight."""
        queued = self._queue.qsize() if self._queue is not None else 0
        return queued + (1 if self._in_flight is not None else 0)

    def start(self) -> None:
        """
        Start the send and read loops on a connected Connection.

        Raises:
            TransportError: The connection is not connected.
        """
        if self._running:
            return
        if not self.connection.is_connected:
            raise TransportError(f"Cannot dispatch commands: not connected to {self.connection.address}")

        self._parser.clear()
        self._queue = asyncio.Queue()
        self._in_flight = None
        self._reply = None
        self._failure = None
        self._running = True
        self._send_task = asyncio.create_task(self._send_loop())
        self._read_task = asyncio.create_task(self._read_loop())

    async def stop(self) -> None:
        """
        Stop both loops and fail everything still waiting.

        The connection itself is left for the caller to close.
        """
        if self._send_task is None and self._read_task is None:
            return

        self._fail(TransportError("Connection closed by client"), abort=False)
        tasks = [task for task in (self._send_task, self._read_task) if task is not None]
        await asyncio.gather(*tasks, return_exceptions=True)
        self._send_task = None
        self._read_task = None

    async def submit(self, name: str, *args: Any, timeout: Optional[float] = None) -> Any:
        """
        Queue a command and wait for its reply.

        Args:
            name: Command name (e.g. 'SET')
            *args: Command arguments
            timeout: Seconds to wait once the command is on the wire;
                overrides command_timeout for this call

        Returns:
            The decoded reply value.

        Raises:
            ResponseError: The server answered with an error reply.
            TransportError: The connection is down or failed mid-command.
            ProtocolError: The server sent malformed data.
            DataError: An argument could not be encoded.
        """
        if not self._running:
            raise self._unavailable()

        frame = encode_command(name, *args, encoding=self.encoding)
        request = CommandRequest(
            name=name,
            args=args,
            frame=frame,
            future=asyncio.get_running_loop().create_future(),
            timeout=timeout,
        )
        self._queue.put_nowait(request)
        return await request.future

    def _unavailable(self) -> TransportError:
        if self._failure is None:
            return TransportError("Not connected; call connect() first")
        return TransportError(f"Connection is unavailable ({self._failure}); call connect() again")

    async def _send_loop(self) -> None:
        """Write queued requests one at a time and settle each with its reply."""
        loop = asyncio.get_running_loop()
        try:
            while True:
                request = await self._queue.get()
                if request.is_abandoned:
                    # The caller was cancelled before the frame was written
                    continue

                self._in_flight = request
                self._reply = loop.create_future()
                request.state = CommandState.IN_FLIGHT
                logger.debug(f"Sending {request.describe()}")

                await self.connection.write(request.frame)
                self.commands_sent += 1

                timeout = request.timeout if request.timeout is not None else self.command_timeout
                try:
                    value = await asyncio.wait_for(self._reply, timeout)
                except asyncio.TimeoutError:
                    if not await self._recover_from_timeout(request, timeout):
                        return
                    continue

                self._in_flight = None
                self._reply = None
                if isinstance(value, ErrorReply):
                    self.error_replies += 1
                    logger.debug(f"{request.name} failed: {value.message}")
                    request.fail(ResponseError(value.message))
                else:
                    request.resolve(value)
        except TransportError as exc:
            logger.error(f"Write to {self.connection.address} failed: {exc}")
            self._fail(exc)
        except Exception as exc:
            logger.exception(f"Unexpected error in send loop: {exc}")
            self._fail(exc)

    async def _read_loop(self) -> None:
        """Feed inbound bytes to the parser and deliver complete replies."""
        try:
            while True:
                chunk = await self.connection.read()
                if not chunk:
                    raise TransportError(f"Server at {self.connection.address} closed the connection")

                self._parser.feed(chunk)
                for value in self._parser.responses():
                    self._deliver(value)
        except (TransportError, ProtocolError) as exc:
            logger.error(f"Connection to {self.connection.address} failed: {exc}")
            self._fail(exc)
        except Exception as exc:
            logger.exception(f"Unexpected error in read loop: {exc}")
            self._fail(exc)

    def _deliver(self, value: Any) -> None:
        if self._reply is not None and self._reply.cancelled():
            # Late reply to a command that just timed out; the connection
            # is about to be replaced
            logger.debug("Dropping reply that arrived after its command timed out")
            return
        if self._reply is None or self._reply.done():
            raise ProtocolError("Received a reply with no command in flight")
        self.responses_received += 1
        self._reply.set_result(value)

    async def _recover_from_timeout(self, request: CommandRequest, timeout: float) -> bool:
        """
        Fail a timed-out request and replace the connection.

        The stream may still deliver the late reply, so it cannot be reused.
        Returns False when the connection could not be re-established.
        """
        logger.warning(f"No reply to {request.name} within {timeout}s; reconnecting")
        request.fail(CommandTimeoutError(f"No reply to {request.name} within {timeout}s"))
        self.failed_commands += 1
        self._in_flight = None
        self._reply = None

        read_task = self._read_task
        if read_task is not None:
            read_task.cancel()
            await asyncio.gather(read_task, return_exceptions=True)
        self.connection.abort()
        self._parser.clear()

        try:
            await self.connection.connect()
        except ConnectionExhaustedError as exc:
            self._fail(exc)
            return False

        self.reconnects += 1
        self._read_task = asyncio.create_task(self._read_loop())
        return True

    def _fail(self, exc: BaseException, abort: bool = True) -> None:
        """
        Fail the in-flight request and every queued request with exc.

        New submissions are refused until start() is called again.
        """
        if not self._running:
            return
        self._running = False
        self._failure = exc

        if self._in_flight is not None:
            self._in_flight.fail(exc)
            self.failed_commands += 1
            self._in_flight = None
        self._reply = None

        while not self._queue.empty():
            request = self._queue.get_nowait()
            if not request.is_abandoned:
                request.fail(exc)
                self.failed_commands += 1

        if abort:
            self.connection.abort()

        current = asyncio.current_task()
        for task in (self._send_task, self._read_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
