"""Exception types shared by the server and client."""

from __future__ import annotations


class ChatError(Exception):
    """Base class for groupchat errors."""


class TransportError(ChatError):
    """A read or write on a stream failed."""


class EndOfStream(TransportError):
    """The peer closed the stream cleanly."""


class ConnectionClosedError(TransportError):
    """The connection was already closed locally."""


class BindError(ChatError):
    """The listening socket could not be opened."""


class ConfigError(ChatError):
    """An address, port or config file value is invalid."""
