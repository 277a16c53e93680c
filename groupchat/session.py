from __future__ import annotations

import enum
import logging
import threading
from typing import TYPE_CHECKING, Callable

from .constants import KIND_EXIT, KIND_NAME
from .envelope import chat_prefix, classify
from .errors import ConnectionClosedError, EndOfStream, TransportError

if TYPE_CHECKING:
    from .connection import Connection
    from .registry import Registry


class SessionState(enum.Enum):
    UNNAMED = "unnamed"
    NAMED = "named"
    CLOSED = "closed"


class ClientSession:
    """
    Server-side state for one connected participant.

    Lifecycle is UNNAMED -> NAMED -> CLOSED. The session owns its Connection
    and runs a read loop on its own thread; every inbound line is either a
    name announcement, a leave notice or a chat line, and is handed to the
    Registry accordingly.
    """

    def __init__(
        self,
        session_id: int,
        connection: Connection,
        registry: Registry,
        *,
        prefix_plain_lines: bool = False,
        on_closed: Callable[[ClientSession], None] | None = None,
    ) -> None:
        self.session_id = session_id
        self.connection = connection
        self.registry = registry
        self.prefix_plain_lines = prefix_plain_lines
        self.on_closed = on_closed
        self.log = logging.getLogger("groupchat.session")

        self.name: str | None = None
        self.state = SessionState.UNNAMED
        self.left = False
        self._state_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    def fmt_peer(self) -> str:
        return self.connection.fmt_peer()

    def start(self) -> threading.Thread:
        t = threading.Thread(
            target=self.run,
            name=f"groupchat-session-{self.session_id}",
            daemon=True,
        )
        self._thread = t
        t.start()
        return t

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self) -> None:
        try:
            while self.state is not SessionState.CLOSED:
                before = self.connection.bytes_in
                try:
                    line = self.connection.receive()
                except EndOfStream:
                    self.log.info(
                        "Client dropped id=%s peer=%s name=%r",
                        self.session_id,
                        self.fmt_peer(),
                        self.name,
                    )
                    break
                except ConnectionClosedError:
                    break
                except TransportError as e:
                    self.log.info(
                        "Transport error id=%s peer=%s: %s",
                        self.session_id,
                        self.fmt_peer(),
                        e,
                    )
                    break
                self.registry.stats.inc("bytes_in", self.connection.bytes_in - before)
                self.handle_line(line)
        except Exception:
            self.log.exception("Session loop failed id=%s", self.session_id)
        finally:
            self.close()

    def handle_line(self, line: str) -> None:
        kind, value = classify(line)

        if kind == KIND_EXIT:
            self.log.info("Client disconnected: %s", value)
            self.left = True
            self.registry.remove(value)
            self.close()
            return

        if kind == KIND_NAME:
            with self._state_lock:
                if self.state is SessionState.UNNAMED:
                    self.name = value
                    self.state = SessionState.NAMED
            self.log.info("New client: %s", value)
            self.registry.set_name(self, value)
            return

        if self.prefix_plain_lines and self.name is not None:
            prefix = chat_prefix(self.name)
            if not line.startswith(prefix):
                line = prefix + line

        self.log.debug("Chat id=%s: %s", self.session_id, line)
        self.registry.stats.inc("msgs_forwarded")
        self.registry.broadcast(line)

    def close(self) -> None:
        """Enter CLOSED: close the connection and drop out of the registry."""
        with self._state_lock:
            if self.state is SessionState.CLOSED:
                return
            self.state = SessionState.CLOSED

        self.connection.close()
        if self.registry.discard(self.session_id) and not self.left:
            self.registry.stats.inc("disconnects")
        self.log.debug(
            "Session closed id=%s peer=%s left=%s",
            self.session_id,
            self.fmt_peer(),
            self.left,
        )

        if self.on_closed is not None:
            try:
                self.on_closed(self)
            except Exception:
                self.log.exception("on_closed callback failed id=%s", self.session_id)
