"""Network module for resp-client."""

from .connection import Connection, ConnectionState
from .dispatcher import CommandDispatcher

__all__ = [
    "Connection",
    "ConnectionState",
    "CommandDispatcher",
]
