"""
RESP Client

The public entry point: RespClient ties a Connection and a
CommandDispatcher together behind connect() / execute() / close(), and
carries the generated convenience methods (set, get, hset, ...).
"""

import asyncio
from typing import Any, Optional

from .commands import install_commands
from .config.settings import settings
from .network.connection import Connection, ConnectionState, Opener
from .network.dispatcher import CommandDispatcher
from .protocol.values import decode_value


@install_commands
class RespClient:
    """
    Asynchronous client for a RESP key-value server.

    Any number of tasks may share one client; their commands are sent one
    at a time over a single connection and each caller gets its own reply.

    Usage:
        client = RespClient(host='127.0.0.1', port=6379)
        await client.connect()
        await client.set("name", "John")
        print(await client.get("name"))     # b'John'
        await client.close()

        # Preferred: the context manager connects and closes
        async with RespClient(decode_responses=True) as client:
            await client.execute("SET", "name", "John")
            print(await client.get("name"))  # 'John'
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            max_connect_attempts: int = None,
            connect_retry_interval: float = None,
            connect_timeout: float = None,
            command_timeout: Optional[float] = None,
            decode_responses: bool = False,
            encoding: str = None,
            opener: Optional[Opener] = None,
    ):
        """
        Initialize the client. No connection is made until connect().

        Args:
            host: Server host (default from settings)
            port: Server port (default from settings)
            max_connect_attempts: Attempts before connect() gives up
            connect_retry_interval: Seconds between connect attempts
            connect_timeout: Seconds allowed for one connect attempt
            command_timeout: Seconds to wait for each reply (default from
                settings; None waits forever)
            decode_responses: Return bulk strings as str instead of bytes
            encoding: Text encoding for arguments and decoded replies
            opener: Replacement for asyncio.open_connection (testing)
        """
        self.encoding = encoding or settings.ENCODING
        self.decode_responses = decode_responses
        self.connection = Connection(
            host=host,
            port=port,
            max_attempts=max_connect_attempts,
            retry_interval=connect_retry_interval,
            connect_timeout=connect_timeout,
            opener=opener,
        )
        self.dispatcher = CommandDispatcher(
            self.connection,
            command_timeout=command_timeout if command_timeout is not None else settings.COMMAND_TIMEOUT,
            encoding=self.encoding,
        )
        self._connect_lock = asyncio.Lock()

    @property
    def host(self) -> str:
        return self.connection.host

    @property
    def port(self) -> int:
        return self.connection.port

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected and self.dispatcher.is_running

    async def connect(self) -> None:
        """
        Connect to the server and start accepting commands.

        Concurrent calls share one connection attempt.

        Raises:
            ConnectionExhaustedError: Every connect attempt failed.
        """
        async with self._connect_lock:
            if self.dispatcher.is_running:
                return
            # Leftover loops from a failed connection must be gone before restarting
            await self.dispatcher.stop()
            await self.connection.connect()
            self.dispatcher.start()

    async def close(self) -> None:
        """
        Fail any outstanding commands and close the connection.
        Safe to call more than once.
        """
        await self.dispatcher.stop()
        await self.connection.close()

    async def execute(self, name: str, *args: Any, timeout: Optional[float] = None) -> Any:
        """
        Send any command and return its reply.

        Args:
            name: Command name (e.g. 'SET')
            *args: Command arguments (str, bytes, int or float)
            timeout: Seconds to wait for the reply once sent (overrides
                command_timeout)

        Returns:
            str for simple strings, int for integers, bytes (or str with
            decode_responses) for bulk strings, lists for arrays, None for nil.

        Raises:
            ResponseError: The server replied with an error.
            TransportError: The connection is unavailable or failed.
            ProtocolError: The server sent malformed data.
            DataError: An argument cannot be encoded.
        """
        value = await self.dispatcher.submit(name, *args, timeout=timeout)
        if self.decode_responses:
            return decode_value(value, self.encoding)
        return value

    def get_stats(self) -> dict:
        """
        Get client statistics.

        Returns:
            Dictionary with connection details and command counters.
        """
        return {
            "host": self.host,
            "port": self.port,
            "state": self.state.name,
            "pending": self.dispatcher.pending,
            "commands_sent": self.dispatcher.commands_sent,
            "responses_received": self.dispatcher.responses_received,
            "error_replies": self.dispatcher.error_replies,
            "failed_commands": self.dispatcher.failed_commands,
            "reconnects": self.dispatcher.reconnects,
        }

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
