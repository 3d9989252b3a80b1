"""
resp-client Configuration Settings

This module contains the default configuration for the RESP client.
Every value can be overridden through the environment or by passing
explicit arguments to RespClient / Connection.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _optional_float(name: str) -> Optional[float]:
    raw = os.environ.get(name, "").strip()
    return float(raw) if raw else None


@dataclass
class Settings:
    """Client configuration settings."""

    # Server address
    HOST: str = os.environ.get("RESP_CLIENT_HOST", "127.0.0.1")
    PORT: int = int(os.environ.get("RESP_CLIENT_PORT", "6379"))

    # Connect / retry settings
    MAX_CONNECT_ATTEMPTS: int = int(os.environ.get("RESP_CLIENT_MAX_CONNECT_ATTEMPTS", "3"))
    CONNECT_RETRY_INTERVAL: float = float(os.environ.get("RESP_CLIENT_CONNECT_RETRY_INTERVAL", "1.0"))
    CONNECT_TIMEOUT: float = float(os.environ.get("RESP_CLIENT_CONNECT_TIMEOUT", "5.0"))

    # Command settings
    COMMAND_TIMEOUT: Optional[float] = _optional_float("RESP_CLIENT_COMMAND_TIMEOUT")  # None = wait forever
    READ_BUFFER_SIZE: int = 65536
    ENCODING: str = os.environ.get("RESP_CLIENT_ENCODING", "utf-8")

    # Logging settings
    DEBUG: bool = os.environ.get("RESP_CLIENT_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("RESP_CLIENT_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
