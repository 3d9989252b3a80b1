"""
RESP Command Encoder

Commands are sent to the server as a RESP array of bulk strings:

    *<argc>\r\n
    $<len>\r\n<bytes>\r\n      (one per element, command name first)

Lengths are byte lengths of the encoded element, not character counts.
"""

from typing import Any

from ..config.settings import settings
from ..exceptions import DataError

CRLF = b"\r\n"


def encode_arg(value: Any, encoding: str = None) -> bytes:
    """
    Coerce a single command argument to bytes.

    Args:
        value: str, bytes-like, int or float
        encoding: Text encoding for str values (default from settings)

    Returns:
        The argument as it will appear inside its bulk string.

    Raises:
        DataError: For None, bool and any other unsupported type.
    """
    if isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode(encoding or settings.ENCODING)
    # bool is an int subclass, but True/False have no single wire form
    if isinstance(value, bool):
        raise DataError(f"Invalid argument {value!r}: convert bools to str or int explicitly")
    if isinstance(value, int):
        return str(value).encode()
    if isinstance(value, float):
        return repr(value).encode()
    raise DataError(
        f"Invalid argument of type {type(value).__name__}: "
        "expected str, bytes, int or float"
    )


def encode_command(name: Any, *args: Any, encoding: str = None) -> bytes:
    """
    Encode a command and its arguments into a RESP frame.

    Examples:
        >>> encode_command("SET", "name", "John")
        b'*3\\r\\n$3\\r\\nSET\\r\\n$4\\r\\nname\\r\\n$4\\r\\nJohn\\r\\n'
        >>> encode_command("EXPIRE", "k", 60)
        b'*3\\r\\n$6\\r\\nEXPIRE\\r\\n$1\\r\\nk\\r\\n$2\\r\\n60\\r\\n'
    """
    if not isinstance(name, (str, bytes)) or not name:
        raise DataError(f"Command name must be a non-empty string, got {name!r}")

    elements = [encode_arg(name, encoding)]
    elements.extend(encode_arg(arg, encoding) for arg in args)

    parts = [b"*%d\r\n" % len(elements)]
    for element in elements:
        parts.append(b"$%d\r\n" % len(element))
        parts.append(element)
        parts.append(CRLF)
    return b"".join(parts)
