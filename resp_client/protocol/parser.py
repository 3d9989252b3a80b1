"""
RESP Response Parser

This module turns bytes received from the server back into Python values.

Two layers:
- decode(): a pure function that extracts one complete value from the
  front of a buffer, or reports INCOMPLETE without touching it.
- RespParser: the response assembler. It owns the receive buffer that
  the transport appends to, and removes bytes only after a value has been
  decoded completely.

Decoding walks read positions over the buffer and never mutates it, so a
compound value (an array whose later element has not arrived yet) is
either consumed whole or not at all. Arrays are decoded with an explicit
stack of partly filled frames rather than recursion, and RespParser keeps
that stack between feeds so a large reply is scanned only once.
"""

import re
from typing import Any, Iterator, List, Tuple

from ..exceptions import ProtocolError
from .values import ErrorReply

CRLF = b"\r\n"
TYPE_BYTES = (b"+", b"-", b":", b"$", b"*")
_INTEGER = re.compile(rb"-?[0-9]+")

# Deepest array nesting accepted in a reply
MAX_NESTING = 256


class _Incomplete:
    """Sentinel type: the buffer does not yet hold a complete value."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "INCOMPLETE"

    def __bool__(self) -> bool:
        return False


INCOMPLETE = _Incomplete()


class _NeedMoreData(Exception):
    """Raised inside the recursion when the buffer runs out mid-value."""


def decode(buffer) -> Tuple[Any, int]:
    """
    Decode one RESP value from the front of a buffer.

    Args:
        buffer: bytes or bytearray holding zero or more RESP values

    Returns:
        (value, consumed) when a complete value is available, where consumed
        is the number of bytes it occupies. (INCOMPLETE, 0) otherwise.

    Raises:
        ProtocolError: Unknown type byte, malformed header or terminator,
            or arrays nested deeper than MAX_NESTING.

    Examples:
        >>> decode(b"$4\\r\\nJohn\\r\\n")
        (b'John', 10)
        >>> decode(b"$4\\r\\nJo")
        (INCOMPLETE, 0)
    """
    state = _DecodeState()
    value = state.advance(buffer)
    if value is INCOMPLETE:
        return INCOMPLETE, 0
    return value, state.pos


def _read_line(buffer, pos: int) -> Tuple[bytes, int]:
    """Return the bytes up to the next CRLF and the position after it."""
    end = buffer.find(CRLF, pos)
    if end == -1:
        raise _NeedMoreData()
    return bytes(buffer[pos:end]), end + 2


def _read_int(line: bytes, what: str) -> int:
    if _INTEGER.fullmatch(line) is None:
        raise ProtocolError(f"Malformed {what}: {line!r}")
    return int(line)


def _parse_item(buffer, pos: int) -> Tuple[Any, int, int]:
    """
    Parse one value starting at pos, without descending into arrays.

    Returns (value, new_pos, size). size is the element count when an array
    header with at least one element was read, and 0 for everything else.
    """
    if pos >= len(buffer):
        raise _NeedMoreData()

    type_byte = buffer[pos:pos + 1]
    if type_byte not in TYPE_BYTES:
        raise ProtocolError(f"Unknown RESP type byte: {bytes(type_byte)!r}")
    line, pos = _read_line(buffer, pos + 1)

    if type_byte == b"+":
        return line.decode("utf-8", "replace"), pos, 0

    if type_byte == b"-":
        return ErrorReply(line.decode("utf-8", "replace")), pos, 0

    if type_byte == b":":
        return _read_int(line, "integer"), pos, 0

    if type_byte == b"$":
        length = _read_int(line, "bulk string length")
        if length == -1:
            return None, pos, 0
        if length < -1:
            raise ProtocolError(f"Invalid bulk string length: {length}")

        end = pos + length
        if len(buffer) < end + 2:
            raise _NeedMoreData()
        if buffer[end:end + 2] != CRLF:
            raise ProtocolError("Bulk string is not terminated by CRLF")
        return bytes(buffer[pos:end]), end + 2, 0

    # Array
    count = _read_int(line, "array length")
    if count == -1:
        return None, pos, 0
    if count < -1:
        raise ProtocolError(f"Invalid array length: {count}")
    if count == 0:
        return [], pos, 0
    return None, pos, count


class _DecodeState:
    """
    Progress through one value, kept between calls to advance().

    pos is the offset just past the last element parsed completely, and
    stack holds one [size, items] frame per array still being filled.
    Elements already collected are never parsed again; advance() picks up
    at pos once more bytes are available.
    """

    def __init__(self):
        self.pos = 0
        self.stack: List[list] = []

    def advance(self, buffer) -> Any:
        """Parse as far as the buffer allows. Returns the value or INCOMPLETE."""
        while True:
            try:
                value, pos, size = _parse_item(buffer, self.pos)
            except _NeedMoreData:
                return INCOMPLETE
            self.pos = pos

            if size:
                if len(self.stack) >= MAX_NESTING:
                    raise ProtocolError(f"Arrays nested more than {MAX_NESTING} levels deep")
                self.stack.append([size, []])
                continue

            while self.stack:
                expected, items = self.stack[-1]
                items.append(value)
                if len(items) < expected:
                    break
                self.stack.pop()
                value = items

            if not self.stack:
                return value


class RespParser:
    """
    Incremental response assembler.

    Bytes from the transport are appended with feed(); complete values are
    taken off the front with get_response(). Bytes belonging to a value
    that has not fully arrived stay in the buffer, as do any bytes after
    the last complete value. Progress through a partly received array is
    remembered, so each element is parsed only once however many chunks
    the reply arrives in.

    Usage:
        parser = RespParser()
        parser.feed(b"+OK\\r\\n:4")
        parser.get_response()   # 'OK'
        parser.get_response()   # INCOMPLETE
        parser.feed(b"2\\r\\n")
        parser.get_response()   # 42
    """

    def __init__(self):
        self._buffer = bytearray()
        self._state = _DecodeState()
        # Buffer length at the last INCOMPLETE result; no rescan until it grows
        self._stalled_at = -1

    def feed(self, data: bytes) -> None:
        """Append bytes received from the transport."""
        self._buffer.extend(data)

    def get_response(self) -> Any:
        """
        Take one complete value off the front of the buffer.

        Returns:
            The decoded value, or INCOMPLETE if more bytes are needed.
            The buffer is left unchanged in the INCOMPLETE case.

        Raises:
            ProtocolError: The buffered bytes are not valid RESP.
        """
        if len(self._buffer) == self._stalled_at:
            return INCOMPLETE

        value = self._state.advance(self._buffer)
        if value is INCOMPLETE:
            self._stalled_at = len(self._buffer)
            return INCOMPLETE

        del self._buffer[:self._state.pos]
        self._state = _DecodeState()
        self._stalled_at = -1
        return value

    def responses(self) -> Iterator[Any]:
        """Yield every complete value currently buffered."""
        while True:
            value = self.get_response()
            if value is INCOMPLETE:
                return
            yield value

    def clear(self) -> None:
        """Discard everything buffered."""
        self._buffer.clear()
        self._state = _DecodeState()
        self._stalled_at = -1

    @property
    def buffered(self) -> int:
        """Number of bytes waiting in the buffer."""
        return len(self._buffer)
