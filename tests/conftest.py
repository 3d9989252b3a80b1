"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests,
including a small in-process RESP server to run the client against.
"""

import asyncio
import socket
import pytest
import pytest_asyncio
from contextlib import closing
from typing import Any, AsyncGenerator, Dict, Iterable, List, Optional

from resp_client import RespClient
from resp_client.protocol.parser import RespParser
from resp_client.protocol.values import ErrorReply


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


def encode_reply(value: Any) -> bytes:
    """Server-side RESP encoding of a reply value."""
    if value is None:
        return b"$-1\r\n"
    if isinstance(value, ErrorReply):
        return b"-" + value.message.encode() + b"\r\n"
    if isinstance(value, str):
        return b"+" + value.encode() + b"\r\n"
    if isinstance(value, int):
        return b":%d\r\n" % value
    if isinstance(value, bytes):
        return b"$%d\r\n%s\r\n" % (len(value), value)
    if isinstance(value, list):
        return b"*%d\r\n" % len(value) + b"".join(encode_reply(item) for item in value)
    raise TypeError(f"Cannot encode {value!r}")


WRONGTYPE = ErrorReply("WRONGTYPE Operation against a key holding the wrong kind of value")

# Canned GEOHASH answers for members the tests add
GEOHASHES = {
    b"New York": b"dr5regw3pp0",
    b"Los Angeles": b"9q5ctr186n0",
}


# ============================================================================
# Fake Server
# ============================================================================

class FakeRespServer:
    """
    In-process RESP server for tests.

    By default it answers from a tiny in-memory store. Behaviour can be
    shaped per test:
        replies:     raw byte replies sent in order instead of the store's
        chunk_size:  split every reply into writes of this many bytes
        silent:      command names that never get a reply
        hangup_on:   command names that make the server drop the connection
        delays:      command name -> seconds to wait before replying

    Attributes:
        received: Every command received, as lists of bytes
        connections: Number of connections accepted
        max_batch: Most commands ever decoded from a single read
    """

    def __init__(
            self,
            replies: Optional[Iterable[bytes]] = None,
            chunk_size: Optional[int] = None,
            silent: Iterable[str] = (),
            hangup_on: Iterable[str] = (),
            delays: Optional[Dict[str, float]] = None,
    ):
        self.replies = list(replies) if replies is not None else None
        self.chunk_size = chunk_size
        self.silent = {name.upper() for name in silent}
        self.hangup_on = {name.upper() for name in hangup_on}
        self.delays = {name.upper(): delay for name, delay in (delays or {}).items()}

        self.store: Dict[bytes, Any] = {}
        self.received: List[list] = []
        self.connections = 0
        self.max_batch = 0
        self.port: Optional[int] = None
        self._server: Optional[asyncio.Server] = None
        self._writers = set()

    async def start(self) -> None:
        self._server = await asyncio.start_server(self.handle_client, '127.0.0.1', 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        for writer in list(self._writers):
            writer.close()
        self._server.close()
        await self._server.wait_closed()

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        self._writers.add(writer)
        parser = RespParser()
        try:
            while True:
                data = await reader.read(4096)
                if not data:
                    break
                parser.feed(data)
                commands = list(parser.responses())
                self.max_batch = max(self.max_batch, len(commands))

                for command in commands:
                    self.received.append(command)
                    name = command[0].decode().upper()
                    if name in self.hangup_on:
                        return
                    if name in self.silent:
                        continue
                    if name in self.delays:
                        await asyncio.sleep(self.delays[name])
                    await self._send(writer, self.reply_for(command))
        except ConnectionError:
            pass
        finally:
            self._writers.discard(writer)
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass

    async def _send(self, writer: asyncio.StreamWriter, data: bytes) -> None:
        if not self.chunk_size:
            writer.write(data)
            await writer.drain()
            return
        for start in range(0, len(data), self.chunk_size):
            writer.write(data[start:start + self.chunk_size])
            await writer.drain()
            await asyncio.sleep(0.001)

    def reply_for(self, command: list) -> bytes:
        if self.replies is not None:
            return self.replies.pop(0)
        return encode_reply(self.execute(command))

    def execute(self, command: list) -> Any:
        """Minimal command implementations backed by self.store."""
        name, args = command[0].decode().upper(), command[1:]
        store = self.store

        if name == "PING":
            return "PONG"
        if name == "ECHO":
            return args[0]
        if name == "SET":
            store[args[0]] = args[1]
            return "OK"
        if name == "GET":
            value = store.get(args[0])
            if value is not None and not isinstance(value, bytes):
                return WRONGTYPE
            return value
        if name == "DEL":
            return sum(1 for key in args if store.pop(key, None) is not None)
        if name == "EXISTS":
            return sum(1 for key in args if key in store)
        if name in ("INCR", "DECR"):
            try:
                current = int(store.get(args[0], b"0"))
            except (TypeError, ValueError):
                return ErrorReply("ERR value is not an integer or out of range")
            current += 1 if name == "INCR" else -1
            store[args[0]] = str(current).encode()
            return current
        if name in ("HSET", "HGET", "HINCRBY", "HGETALL"):
            hash_ = store.setdefault(args[0], {})
            if not isinstance(hash_, dict):
                return WRONGTYPE
            if name == "HSET":
                created = args[1] not in hash_
                hash_[args[1]] = args[2]
                return int(created)
            if name == "HGET":
                return hash_.get(args[1])
            if name == "HINCRBY":
                hash_[args[1]] = str(int(hash_.get(args[1], b"0")) + int(args[2])).encode()
                return int(hash_[args[1]])
            return [item for pair in hash_.items() for item in pair]
        if name in ("LPUSH", "RPUSH", "LPOP", "RPOP"):
            items = store.setdefault(args[0], [])
            if not isinstance(items, list):
                return WRONGTYPE
            if name == "LPUSH":
                for value in args[1:]:
                    items.insert(0, value)
                return len(items)
            if name == "RPUSH":
                items.extend(args[1:])
                return len(items)
            if not items:
                return None
            return items.pop(0) if name == "LPOP" else items.pop()
        if name in ("GEOADD", "GEOHASH"):
            places = store.setdefault(args[0], {})
            if not isinstance(places, dict):
                return WRONGTYPE
            if name == "GEOADD":
                added = 0
                for i in range(1, len(args) - 2, 3):
                    added += args[i + 2] not in places
                    places[args[i + 2]] = (args[i], args[i + 1])
                return added
            return [GEOHASHES.get(member, b"s0000000000") if member in places else None
                    for member in args[1:]]
        if name == "KEYS":
            return sorted(store)
        return ErrorReply(f"ERR unknown command '{name}'")


# ============================================================================
# Port Fixtures
# ============================================================================

@pytest.fixture
def unused_port() -> int:
    """Get a free port with nothing listening on it."""
    return find_free_port()


# ============================================================================
# Protocol Fixtures
# ============================================================================

@pytest.fixture
def parser() -> RespParser:
    """Create a RespParser instance."""
    return RespParser()


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def server_factory() -> AsyncGenerator:
    """
    Factory fixture for servers with custom behaviour.

    Usage:
        async def test_something(server_factory):
            server = await server_factory(replies=[b"+OK\r\n"])
    """
    started: List[FakeRespServer] = []

    async def factory(**options) -> FakeRespServer:
        srv = FakeRespServer(**options)
        await srv.start()
        started.append(srv)
        return srv

    yield factory

    for srv in started:
        await srv.stop()


@pytest_asyncio.fixture
async def fake_server() -> AsyncGenerator[FakeRespServer, None]:
    """Start a store-backed fake server for one test."""
    srv = FakeRespServer()
    await srv.start()

    yield srv

    await srv.stop()


# ============================================================================
# Client Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def client(fake_server: FakeRespServer) -> AsyncGenerator[RespClient, None]:
    """Create a RespClient connected to the fake server."""
    c = RespClient(
        host='127.0.0.1',
        port=fake_server.port,
        max_connect_attempts=2,
        connect_retry_interval=0.01,
    )
    await c.connect()

    yield c

    await c.close()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
