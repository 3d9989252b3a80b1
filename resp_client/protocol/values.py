"""
Protocol Value and Request Definitions

This module defines the data structures shared by the codec and the
dispatcher: the error reply value, command requests and their states.

Decoded replies map onto plain Python values:

    +OK          -> str
    -ERR ...     -> ErrorReply
    :42          -> int
    $5 hello     -> bytes        ($-1 -> None)
    *2 ...       -> list         (*-1 -> None)
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional, Tuple


class CommandState(Enum):
    """Lifecycle of a single command request."""
    QUEUED = auto()
    IN_FLIGHT = auto()
    RESOLVED = auto()
    FAILED = auto()


@dataclass(frozen=True)
class ErrorReply:
    """
    A RESP error reply ('-' type).

    The parser returns this as a value instead of raising it, so an error
    nested inside an array does not abort decoding of the rest of the array.
    """
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class CommandRequest:
    """
    A command waiting to be sent, or waiting for its reply.

    Attributes:
        name: Command name as sent on the wire (e.g. 'SET')
        args: Positional arguments following the name
        future: Completed with the reply value, or failed with an error
        frame: Encoded wire frame for the command
        timeout: Seconds to wait for the reply once written (None = forever)
        state: Current position in the QUEUED -> IN_FLIGHT -> done lifecycle
    """
    name: str
    args: Tuple[Any, ...] = ()
    frame: bytes = b""
    future: Optional[asyncio.Future] = None
    timeout: Optional[float] = None
    state: CommandState = field(default=CommandState.QUEUED)

    @property
    def is_abandoned(self) -> bool:
        """True when the caller stopped waiting before the request finished."""
        return self.future is not None and self.future.done()

    def resolve(self, value: Any) -> None:
        """Complete the request with a reply value."""
        self.state = CommandState.RESOLVED
        if self.future is not None and not self.future.done():
            self.future.set_result(value)

    def fail(self, exc: BaseException) -> None:
        """Complete the request with an error."""
        self.state = CommandState.FAILED
        if self.future is not None and not self.future.done():
            self.future.set_exception(exc)

    def describe(self) -> str:
        """Short human readable form used in log messages."""
        return " ".join([self.name] + [_short(arg) for arg in self.args])


def _short(arg: Any, limit: int = 32) -> str:
    text = arg.decode("utf-8", "replace") if isinstance(arg, (bytes, bytearray)) else str(arg)
    return text if len(text) <= limit else text[:limit] + "..."


def decode_value(value: Any, encoding: str = "utf-8") -> Any:
    """
    Recursively convert bulk-string bytes in a reply to str.

    Used when the client is created with decode_responses=True.
    """
    if isinstance(value, bytes):
        return value.decode(encoding)
    if isinstance(value, list):
        return [decode_value(item, encoding) for item in value]
    return value
