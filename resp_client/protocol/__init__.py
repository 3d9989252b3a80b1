"""Protocol module for resp-client."""

from .encoder import encode_arg, encode_command
from .parser import INCOMPLETE, RespParser, decode
from .values import CommandRequest, CommandState, ErrorReply, decode_value

__all__ = [
    "encode_arg",
    "encode_command",
    "INCOMPLETE",
    "RespParser",
    "decode",
    "CommandRequest",
    "CommandState",
    "ErrorReply",
    "decode_value",
]
