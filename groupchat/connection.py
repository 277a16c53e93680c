from __future__ import annotations

import logging
import socket
import threading
from typing import Any

from .codec import decode_payload, encode, payload_size
from .constants import FRAME_HEADER_BYTES
from .errors import ConnectionClosedError, EndOfStream, TransportError


class Connection:
    """
    One framed, bidirectional stream to a remote peer.

    A single thread is expected to call receive(); send() may be called from
    any number of threads and writes each frame atomically. close() is
    idempotent and releases both directions, which also wakes a reader blocked
    in receive().

    With `send_timeout` set, a write that cannot complete within that many
    seconds raises TransportError and closes the connection, since the peer
    may hold a partial frame. Reads still wait indefinitely.
    """

    def __init__(
        self,
        sock: socket.socket,
        peer: Any = None,
        *,
        send_timeout: float | None = None,
    ) -> None:
        self.log = logging.getLogger("groupchat.connection")
        self._sock = sock
        self.peer = peer
        self.send_timeout = send_timeout
        if send_timeout is not None:
            sock.settimeout(send_timeout)
        self._send_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._closed = False
        self.bytes_in = 0
        self.bytes_out = 0

    @classmethod
    def open(
        cls,
        host: str,
        port: int,
        *,
        timeout: float | None = None,
        read_timeout: float | None = None,
    ) -> Connection:
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as e:
            raise TransportError(f"could not connect to {host}:{port}: {e}") from e
        # By default reads block until data arrives or the stream closes.
        sock.settimeout(read_timeout)
        return cls(sock, peer=sock.getpeername())

    @property
    def closed(self) -> bool:
        return self._closed

    def fmt_peer(self) -> str:
        p = self.peer
        if isinstance(p, tuple) and len(p) >= 2:
            return f"{p[0]}:{p[1]}"
        return str(p) if p is not None else "-"

    def send(self, line: str) -> int:
        frame = encode(line)
        with self._send_lock:
            if self._closed:
                raise ConnectionClosedError("connection is closed")
            try:
                self._sock.sendall(frame)
            except socket.timeout as e:
                self.close()
                raise TransportError(
                    f"send to {self.fmt_peer()} timed out after {self.send_timeout}s"
                ) from e
            except OSError as e:
                raise TransportError(f"send to {self.fmt_peer()} failed: {e}") from e
            self.bytes_out += len(frame)
        return len(frame)

    def receive(self) -> str:
        if self._closed:
            raise ConnectionClosedError("connection is closed")
        header = self._read_exact(FRAME_HEADER_BYTES)
        size = payload_size(header)
        payload = self._read_exact(size) if size else b""
        self.bytes_in += FRAME_HEADER_BYTES + size
        try:
            return decode_payload(payload)
        except UnicodeError as e:
            raise TransportError(f"undecodable frame from {self.fmt_peer()}: {e}") from e

    def _read_exact(self, n: int) -> bytes:
        buf = bytearray()
        while len(buf) < n:
            try:
                chunk = self._sock.recv(n - len(buf))
            except socket.timeout as e:
                if self._closed:
                    raise ConnectionClosedError("connection is closed") from e
                if self.send_timeout is not None:
                    # The socket timeout bounds writes only.
                    continue
                raise TransportError(f"receive from {self.fmt_peer()} failed: {e}") from e
            except OSError as e:
                if self._closed:
                    raise ConnectionClosedError("connection is closed") from e
                raise TransportError(f"receive from {self.fmt_peer()} failed: {e}") from e
            if not chunk:
                if self._closed:
                    raise ConnectionClosedError("connection is closed")
                raise EndOfStream(f"{self.fmt_peer()} closed the connection")
            buf.extend(chunk)
        return bytes(buf)

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Peer already gone; nothing left to flush.
            pass
        try:
            self._sock.close()
        except OSError:
            self.log.debug("Socket close failed peer=%s", self.fmt_peer(), exc_info=True)

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
