from __future__ import annotations

import itertools
import logging
import os
import signal
import socket
import threading
import time

from .config import ChatRuntimeConfig
from .connection import Connection
from .errors import BindError
from .registry import Registry
from .session import ClientSession
from .stats import StatsManager

_ACCEPT_POLL_S = 0.25


class ChatServer:
    def __init__(
        self,
        config: ChatRuntimeConfig | None = None,
        *,
        registry: Registry | None = None,
    ) -> None:
        self.config = config if config is not None else ChatRuntimeConfig()
        self.log = logging.getLogger("groupchat.server")

        self.stats_manager = registry.stats if registry is not None else StatsManager()
        self.registry = registry if registry is not None else Registry(self.stats_manager)

        self._listener: socket.socket | None = None
        self._listener_lock = threading.Lock()
        self._accept_thread: threading.Thread | None = None
        self._shutdown = threading.Event()
        self._ids = itertools.count(1)

    @property
    def address(self) -> tuple[str, int] | None:
        """The bound (host, port), or None before bind()."""
        sock = self._listener
        if sock is None:
            return None
        try:
            name = sock.getsockname()
        except OSError:
            return None
        return name[0], name[1]

    def bind(self, host: str | None = None, port: int | None = None) -> tuple[str, int]:
        bind_host = self.config.bind_host if host is None else host
        bind_port = self.config.listen_port if port is None else port
        try:
            sock = socket.create_server(
                (bind_host, bind_port), backlog=self.config.backlog
            )
        except OSError as e:
            raise BindError(
                f"cannot listen on {bind_host or '*'}:{bind_port}: {e}"
            ) from e
        sock.settimeout(_ACCEPT_POLL_S)
        with self._listener_lock:
            self._listener = sock
        self._shutdown.clear()
        addr = self.address or (bind_host, bind_port)
        self.log.info("Listening for connections on port %s", addr[1])
        return addr

    def listen(self, host: str | None = None, port: int | None = None) -> None:
        """Bind, then accept connections on the calling thread until stopped."""
        self.bind(host, port)
        self.serve_forever()

    def start(self) -> tuple[str, int]:
        """Bind and run the accept loop on a background thread."""
        addr = self.bind()
        self.stats_manager.set_start_time()
        self._accept_thread = threading.Thread(
            target=self.serve_forever,
            name="groupchat-accept",
            daemon=True,
        )
        self._accept_thread.start()
        return addr

    def serve_forever(self) -> None:
        self._accept_thread = threading.current_thread()
        if self.stats_manager.started_monotonic is None:
            self.stats_manager.set_start_time()
        while not self._shutdown.is_set():
            sock = self._listener
            if sock is None:
                break
            try:
                client_sock, peer = sock.accept()
            except socket.timeout:
                continue
            except OSError:
                if self._shutdown.is_set() or self._listener is None:
                    break
                self.log.exception("Accept failed")
                time.sleep(_ACCEPT_POLL_S)
                continue
            self._accept(client_sock, peer)
        self.log.debug("Accept loop finished")

    def _accept(self, client_sock: socket.socket, peer) -> ClientSession:
        client_sock.settimeout(None)
        conn = Connection(client_sock, peer=peer, send_timeout=self.config.send_timeout)
        session = ClientSession(
            next(self._ids),
            conn,
            self.registry,
            prefix_plain_lines=self.config.prefix_plain_lines,
            on_closed=self._session_closed,
        )
        # Register before the read loop starts so no broadcast can miss it.
        self.registry.add(session)
        self.stats_manager.inc("connections_accepted")
        self.log.info(
            "Connection accepted id=%s peer=%s", session.session_id, conn.fmt_peer()
        )
        session.start()
        return session

    def _session_closed(self, session: ClientSession) -> None:
        self.stats_manager.inc("sessions_closed")
        self.log.info(
            "Session ended id=%s peer=%s name=%r left=%s",
            session.session_id,
            session.fmt_peer(),
            session.name,
            session.left,
        )

    def run_forever(self) -> None:
        if self._listener is None:
            self.start()

        signal.signal(signal.SIGINT, lambda *_: self.stop())
        signal.signal(signal.SIGTERM, lambda *_: self.stop())

        while not self._shutdown.is_set():
            time.sleep(0.25)

    def stop(self) -> None:
        """Close the listener and drop every session without notice."""
        self._shutdown.set()

        with self._listener_lock:
            sock, self._listener = self._listener, None
        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass

        # A connection accepted just before the listener closed is registered
        # by the accept thread; wait for it before clearing the registry.
        t = self._accept_thread
        if t is not None and t is not threading.current_thread():
            t.join(timeout=2 * _ACCEPT_POLL_S + 1.0)

        for session in self.registry.clear_all():
            try:
                session.connection.close()
            except Exception:
                self.log.debug("Close failed id=%s", session.session_id, exc_info=True)

    def shutdown(self) -> None:
        """Abrupt operator shutdown: stop serving and terminate the process."""
        self.stop()
        self.log.info("Server has been shut down")
        logging.shutdown()
        os._exit(0)

    @property
    def running(self) -> bool:
        return self._listener is not None and not self._shutdown.is_set()
