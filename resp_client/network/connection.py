"""
Connection Manager

Owns the TCP stream to the server and its lifecycle:
- connect(): open the stream, retrying a bounded number of times
- read() / write(): move bytes across the stream
- close(): graceful, idempotent shutdown
- abort(): drop the stream after a failure

Key asyncio concepts used:
- asyncio.open_connection(): open a StreamReader/StreamWriter pair
- StreamWriter.write() / drain(): send data with flow control
- StreamWriter.close() / wait_closed(): release the socket
"""

import asyncio
import logging
from asyncio import StreamReader, StreamWriter
from enum import Enum, auto
from typing import Awaitable, Callable, Optional, Tuple

from ..config.settings import settings
from ..exceptions import ConnectionExhaustedError, TransportError

logger = logging.getLogger(__name__)

Opener = Callable[[str, int], Awaitable[Tuple[StreamReader, StreamWriter]]]


class ConnectionState(Enum):
    """Connection lifecycle states."""
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    CLOSED = auto()


class Connection:
    """
    A single TCP connection to a RESP server.

    Usage:
        conn = Connection(host='127.0.0.1', port=6379)
        await conn.connect()
        await conn.write(frame)
        chunk = await conn.read()
        await conn.close()

    Attributes:
        host: Server host name or address
        port: Server port
        max_attempts: Connect attempts before giving up
        retry_interval: Seconds to wait between failed attempts
        connect_timeout: Seconds allowed for a single attempt
        state: Current ConnectionState
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            max_attempts: int = None,
            retry_interval: float = None,
            connect_timeout: float = None,
            opener: Optional[Opener] = None,
    ):
        """
        Initialize the connection (no I/O happens until connect()).

        Args:
            host: Server host (default from settings)
            port: Server port (default from settings)
            max_attempts: Attempt budget for connect() (default from settings)
            retry_interval: Delay between attempts in seconds (default from settings)
            connect_timeout: Per-attempt timeout in seconds (default from settings)
            opener: Coroutine function returning (reader, writer);
                defaults to asyncio.open_connection
        """
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.max_attempts = max_attempts if max_attempts is not None else settings.MAX_CONNECT_ATTEMPTS
        self.retry_interval = retry_interval if retry_interval is not None else settings.CONNECT_RETRY_INTERVAL
        self.connect_timeout = connect_timeout if connect_timeout is not None else settings.CONNECT_TIMEOUT
        self._opener = opener or asyncio.open_connection

        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.state = ConnectionState.DISCONNECTED
        self.attempts = 0
        self._reader: Optional[StreamReader] = None
        self._writer: Optional[StreamWriter] = None
        # Held for the whole retry loop so only one stream is ever opened
        self._connect_lock = asyncio.Lock()

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    async def connect(self) -> None:
        """
        Open the TCP stream, retrying on failure.

        Each failed attempt waits retry_interval seconds before the next one;
        there is no wait after the last attempt. Concurrent callers wait for
        the attempt already in progress instead of opening a second stream.

        Raises:
            ConnectionExhaustedError: All max_attempts attempts failed.
        """
        async with self._connect_lock:
            if self.is_connected:
                return
            await self._connect_with_retry()

    async def _connect_with_retry(self) -> None:
        self.attempts = 0
        while True:
            self.state = ConnectionState.CONNECTING
            try:
                self._reader, self._writer = await asyncio.wait_for(
                    self._opener(self.host, self.port),
                    timeout=self.connect_timeout,
                )
            except (OSError, asyncio.TimeoutError) as exc:
                self.attempts += 1
                self.state = ConnectionState.DISCONNECTED
                reason = str(exc) or type(exc).__name__
                logger.warning(
                    f"Connection attempt {self.attempts}/{self.max_attempts} "
                    f"to {self.address} failed: {reason}"
                )
                if self.attempts >= self.max_attempts:
                    logger.error(f"Giving up on {self.address} after {self.attempts} attempt(s)")
                    raise ConnectionExhaustedError(self.host, self.port, self.attempts) from exc
                await asyncio.sleep(self.retry_interval)
                continue

            self.attempts = 0
            self.state = ConnectionState.CONNECTED
            logger.info(f"Connected to {self.address}")
            return

    async def read(self, size: int = None) -> bytes:
        """
        Wait for the next chunk of bytes from the server.

        Returns:
            Up to `size` bytes; b"" means the server closed the stream.

        Raises:
            TransportError: Not connected, or the socket failed.
        """
        if self._reader is None:
            raise TransportError(f"Not connected to {self.address}")
        try:
            return await self._reader.read(size or settings.READ_BUFFER_SIZE)
        except OSError as exc:
            raise TransportError(f"Connection to {self.address} lost while reading: {exc}") from exc

    async def write(self, data: bytes) -> None:
        """
        Send bytes and wait until the transport buffer has drained.

        Raises:
            TransportError: Not connected, or the socket failed.
        """
        if self._writer is None or self._writer.is_closing():
            raise TransportError(f"Not connected to {self.address}")
        try:
            self._writer.write(data)
            await self._writer.drain()
        except OSError as exc:
            raise TransportError(f"Failed to send to {self.address}: {exc}") from exc

    def abort(self) -> None:
        """
        Drop the stream immediately after a failure.

        The connection ends up DISCONNECTED and can be connect()ed again.
        """
        writer = self._release()
        if writer is not None:
            writer.transport.abort()
        if self.state != ConnectionState.CLOSED:
            self.state = ConnectionState.DISCONNECTED

    async def close(self) -> None:
        """
        Close the stream gracefully. Calling close() twice is a no-op.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSED
        writer = self._release()
        if writer is None:
            return

        writer.close()
        try:
            await writer.wait_closed()
        except OSError as exc:
            # The peer may already have reset the socket
            logger.debug(f"Error while closing {self.address}: {exc}")
        logger.info(f"Connection to {self.address} closed")

    def _release(self) -> Optional[StreamWriter]:
        writer = self._writer
        self._reader = None
        self._writer = None
        return writer
