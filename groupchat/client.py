from __future__ import annotations

import logging
import threading
from typing import Callable

from .connection import Connection
from .envelope import make_chat, make_exit, make_name
from .errors import ConnectionClosedError, TransportError

SERVER_UNREACHABLE = "Server could not be found. Please try again later"
DISCONNECTED = "Disconnected from server"
MESSAGE_TOO_LONG = "Message too long, not sent"


class ChatClient:
    """
    Client side of a chat connection.

    Presentation layers (terminal, window) supply an `output` callback for
    rendered lines and call send()/leave() with user input. Inbound lines are
    delivered from a background reader thread.
    """

    def __init__(
        self,
        host: str,
        port: int,
        name: str,
        output: Callable[[str], None],
        *,
        connect_timeout: float | None = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.name = name
        self.output = output
        self.connect_timeout = connect_timeout
        self.log = logging.getLogger("groupchat.client")

        self.connection: Connection | None = None
        self._reader: threading.Thread | None = None
        self._leaving = threading.Event()

    def connect(self) -> None:
        """Open the connection, start reading and announce our name.

        Raises TransportError if the server cannot be reached.
        """
        self.connection = Connection.open(
            self.host, self.port, timeout=self.connect_timeout
        )
        self.log.info("Connected to %s:%s as %r", self.host, self.port, self.name)
        self._reader = threading.Thread(
            target=self._read_loop,
            name="groupchat-client-reader",
            daemon=True,
        )
        self._reader.start()
        self._send_raw(make_name(self.name))

    def send(self, text: str) -> bool:
        """Send one chat line, prefixed with our name."""
        return self._send_raw(make_chat(self.name, text))

    def leave(self) -> None:
        """Announce departure (best-effort) and close the connection."""
        conn = self.connection
        if conn is None:
            return
        self._leaving.set()
        try:
            conn.send(make_exit(self.name))
        except (TransportError, ValueError) as e:
            self.log.debug("Leave notice not sent: %s", e)
        conn.close()

    def wait(self, timeout: float | None = None) -> bool:
        """Wait for the reader thread; returns True once it has finished."""
        t = self._reader
        if t is None:
            return True
        t.join(timeout)
        return not t.is_alive()

    @property
    def connected(self) -> bool:
        return self.connection is not None and not self.connection.closed

    def _send_raw(self, line: str) -> bool:
        conn = self.connection
        if conn is None:
            self.output(SERVER_UNREACHABLE)
            return False
        try:
            conn.send(line)
        except ValueError:
            self.output(MESSAGE_TOO_LONG)
            return False
        except TransportError as e:
            self.log.debug("Send failed: %s", e)
            self.output(SERVER_UNREACHABLE)
            return False
        return True

    def _read_loop(self) -> None:
        conn = self.connection
        if conn is None:
            return
        while True:
            try:
                line = conn.receive()
            except ConnectionClosedError:
                break
            except TransportError as e:
                self.log.debug("Reader stopped: %s", e)
                if not self._leaving.is_set():
                    self.output(DISCONNECTED)
                break
            self.output(line)
        conn.close()
