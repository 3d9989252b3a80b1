"""
Convenience Command Table

Each convenience method on RespClient does nothing but forward its
arguments to execute() under a wire command name. Instead of writing
those methods by hand they are generated from the COMMANDS table below.

A CommandSpec lists the wire name and the argument layout:
- "key"                 a positional parameter
- ("MATCH", "pattern")  a literal token followed by a parameter
- variadic="members"    a trailing *members parameter
- defaults              default values for trailing parameters
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

Param = Union[str, Tuple[str, str]]


@dataclass(frozen=True)
class CommandSpec:
    """Argument layout of one convenience command."""
    wire: str
    params: Tuple[Param, ...] = ()
    variadic: Optional[str] = None
    defaults: Dict[str, Any] = field(default_factory=dict)
    doc: str = ""

    @property
    def param_names(self) -> Tuple[str, ...]:
        return tuple(p[1] if isinstance(p, tuple) else p for p in self.params)

    def signature(self) -> inspect.Signature:
        """Build the Python signature of the generated method."""
        parameters = [inspect.Parameter("self", inspect.Parameter.POSITIONAL_OR_KEYWORD)]
        for name in self.param_names:
            parameters.append(inspect.Parameter(
                name,
                inspect.Parameter.POSITIONAL_OR_KEYWORD,
                default=self.defaults.get(name, inspect.Parameter.empty),
            ))
        if self.variadic:
            parameters.append(inspect.Parameter(self.variadic, inspect.Parameter.VAR_POSITIONAL))
        return inspect.Signature(parameters)

    def build_args(self, bound: inspect.BoundArguments) -> list:
        """Lay bound call arguments out in wire order."""
        args = []
        for param in self.params:
            if isinstance(param, tuple):
                token, name = param
                args.extend([token, bound.arguments[name]])
            else:
                args.append(bound.arguments[param])
        if self.variadic:
            args.extend(bound.arguments.get(self.variadic, ()))
        return args


COMMANDS: Dict[str, CommandSpec] = {
    # Connection
    "ping": CommandSpec("PING", doc="Check the connection. Returns 'PONG'."),
    "echo": CommandSpec("ECHO", ("message",), doc="Return the message unchanged."),

    # Strings and keys
    "set": CommandSpec("SET", ("key", "value"), doc="Set key to value. Returns 'OK'."),
    "get": CommandSpec("GET", ("key",), doc="Value of key, or None if missing."),
    "delete": CommandSpec("DEL", variadic="keys", doc="Delete keys. Returns the number removed."),
    "exists": CommandSpec("EXISTS", variadic="keys", doc="Number of the given keys that exist."),
    "incr": CommandSpec("INCR", ("key",), doc="Increment key by one."),
    "decr": CommandSpec("DECR", ("key",), doc="Decrement key by one."),
    "expire": CommandSpec("EXPIRE", ("key", "seconds"), doc="Set a timeout on key."),
    "ttl": CommandSpec("TTL", ("key",), doc="Remaining time to live of key in seconds."),
    "keys": CommandSpec("KEYS", ("pattern",), defaults={"pattern": "*"}, doc="Keys matching pattern."),
    "scan": CommandSpec(
        "SCAN",
        ("cursor", ("MATCH", "pattern"), ("COUNT", "count")),
        defaults={"pattern": "*", "count": 10},
        doc="Incrementally iterate keys. Returns [next_cursor, keys].",
    ),

    # Hashes
    "hset": CommandSpec("HSET", ("key", "field", "value")),
    "hget": CommandSpec("HGET", ("key", "field")),
    "hmset": CommandSpec("HMSET", ("key",), variadic="field_values"),
    "hmget": CommandSpec("HMGET", ("key",), variadic="fields"),
    "hdel": CommandSpec("HDEL", ("key",), variadic="fields"),
    "hgetall": CommandSpec("HGETALL", ("key",), doc="Flat [field, value, ...] list of the hash."),
    "hincrby": CommandSpec("HINCRBY", ("key", "field", "increment")),

    # Lists
    "lpush": CommandSpec("LPUSH", ("key",), variadic="values"),
    "lpop": CommandSpec("LPOP", ("key",)),
    "rpush": CommandSpec("RPUSH", ("key",), variadic="values"),
    "rpop": CommandSpec("RPOP", ("key",)),

    # Sets
    "sadd": CommandSpec("SADD", ("key",), variadic="members"),
    "smembers": CommandSpec("SMEMBERS", ("key",)),
    "sinter": CommandSpec("SINTER", variadic="keys"),

    # Sorted sets
    "zadd": CommandSpec("ZADD", ("key", "score", "member")),
    "zrange": CommandSpec("ZRANGE", ("key", "start", "stop")),
    "zrevrange": CommandSpec("ZREVRANGE", ("key", "start", "stop")),
    "zscore": CommandSpec("ZSCORE", ("key", "member")),
    "zrem": CommandSpec("ZREM", ("key", "member")),
    "zcount": CommandSpec("ZCOUNT", ("key", "min", "max")),
    "zrank": CommandSpec("ZRANK", ("key", "member")),

    # HyperLogLog
    "pfadd": CommandSpec("PFADD", ("key",), variadic="elements"),
    "pfcount": CommandSpec("PFCOUNT", ("key",)),

    # Geo
    "geoadd": CommandSpec("GEOADD", ("key", "longitude", "latitude", "member")),
    "geodist": CommandSpec("GEODIST", ("key", "member1", "member2", "unit"), defaults={"unit": "m"}),
    "geohash": CommandSpec("GEOHASH", ("key",), variadic="members"),
}


def make_command(method_name: str, spec: CommandSpec):
    """Create the async forwarding method for one table entry."""
    signature = spec.signature()

    async def command(self, *args, **kwargs):
        bound = signature.bind(self, *args, **kwargs)
        bound.apply_defaults()
        return await self.execute(spec.wire, *spec.build_args(bound))

    command.__name__ = method_name
    command.__qualname__ = f"RespClient.{method_name}"
    command.__signature__ = signature
    command.__doc__ = spec.doc or f"Send {spec.wire}."
    return command


def install_commands(cls):
    """Class decorator adding one method per COMMANDS entry."""
    for method_name, spec in COMMANDS.items():
        setattr(cls, method_name, make_command(method_name, spec))
    return cls
