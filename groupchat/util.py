from __future__ import annotations

import os

from .errors import ConfigError


def expand_path(p: str) -> str:
    return os.path.expanduser(os.path.expandvars(p))


def parse_port(value) -> int:
    """Validate a TCP port given as int or text; raises ConfigError."""
    if isinstance(value, bool):
        raise ConfigError(f"port must be an integer, got {value!r}")
    if isinstance(value, int):
        port = value
    else:
        text = str(value).strip()
        try:
            port = int(text)
        except ValueError:
            raise ConfigError(f"port must be an integer, got {value!r}") from None
    if not 1 <= port <= 65535:
        raise ConfigError(f"port must be between 1 and 65535, got {port}")
    return port


def parse_host(value, *, allow_empty: bool = False) -> str:
    """Validate a host name or address; raises ConfigError.

    An empty host is only meaningful for a listening socket (all interfaces).
    """
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise ConfigError(f"address must be a string, got {value!r}")
    s = value.strip()
    if not s:
        if allow_empty:
            return ""
        raise ConfigError("address must not be empty")
    if any(ch.isspace() for ch in s) or "\x00" in s:
        raise ConfigError(f"address must not contain whitespace: {value!r}")
    return s
