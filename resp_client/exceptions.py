"""
Client Exceptions

Every error raised by resp-client derives from RespClientError, so callers
can catch the whole family at once.

Connection-fatal errors (ConnectionExhaustedError, TransportError,
ProtocolError) fail every request waiting on the connection. ResponseError
is the server's answer to one command and only affects that command.
"""


class RespClientError(Exception):
    """Base class for all resp-client errors."""


class ConnectionExhaustedError(RespClientError):
    """Raised when connect() has used up its attempt budget."""

    def __init__(self, host: str, port: int, attempts: int):
        self.host = host
        self.port = port
        self.attempts = attempts
        super().__init__(
            f"Could not connect to {host}:{port} after {attempts} attempt(s)"
        )


class TransportError(RespClientError):
    """Raised when the socket fails or closes while the client depends on it."""


class CommandTimeoutError(TransportError):
    """Raised when an in-flight command gets no reply within its timeout."""


class ProtocolError(RespClientError):
    """Raised when the server sends bytes that are not valid RESP."""


class DataError(RespClientError):
    """Raised when a command or argument cannot be encoded."""


class ResponseError(RespClientError):
    """
    The server answered a command with a RESP error ('-' reply).

    Attributes:
        message: Full error text as sent by the server
        kind: First word of the message (e.g. 'ERR', 'WRONGTYPE')
    """

    def __init__(self, message: str):
        self.message = message
        self.kind = message.split(" ", 1)[0] if message else ""
        super().__init__(message)
