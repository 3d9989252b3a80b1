"""
resp-client: Asynchronous RESP Client

An asyncio client for key-value servers speaking the RESP wire protocol,
sharing one TCP connection between any number of concurrent callers.
"""

from .client import RespClient
from .exceptions import (
    CommandTimeoutError,
    ConnectionExhaustedError,
    DataError,
    ProtocolError,
    RespClientError,
    ResponseError,
    TransportError,
)
from .protocol import ErrorReply, RespParser, decode, encode_command

__version__ = "1.0.0"

__all__ = [
    "RespClient",
    "RespClientError",
    "ConnectionExhaustedError",
    "TransportError",
    "CommandTimeoutError",
    "ProtocolError",
    "ResponseError",
    "DataError",
    "ErrorReply",
    "RespParser",
    "decode",
    "encode_command",
]
