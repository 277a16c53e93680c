from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .envelope import join_notice, leave_notice
from .errors import TransportError
from .stats import StatsManager

if TYPE_CHECKING:
    from .session import ClientSession


@dataclass
class _Entry:
    session: ClientSession
    name: str | None = None


class Registry:
    """
    The set of currently joined sessions for the single chat room.

    This class is responsible for:
    - Tracking sessions by a stable session id, with their announced names
    - Join and leave notices
    - Broadcasting a line to every registered session

    Every public method runs under one re-entrant lock, so membership changes
    and broadcasts are totally ordered. Sends for a broadcast happen inside
    that critical section; all recipients therefore see all broadcasts in the
    same order. The registry never owns connections: it only holds references
    to sessions, which close their own.
    """

    def __init__(self, stats: StatsManager | None = None) -> None:
        self.log = logging.getLogger("groupchat.registry")
        self.stats = stats if stats is not None else StatsManager()
        self._lock = threading.RLock()
        # Insertion-ordered; broadcast iteration follows registration order.
        self._entries: dict[int, _Entry] = {}

    def add(self, session: ClientSession) -> None:
        """Insert a new, still unnamed session."""
        with self._lock:
            self._entries[session.session_id] = _Entry(session=session)
        self.log.debug(
            "Session registered id=%s peer=%s", session.session_id, session.fmt_peer()
        )

    def set_name(self, session: ClientSession, name: str) -> None:
        """
        Record the name for a session and broadcast a join notice.

        The notice goes to every registered session, the joining one included.
        A session keeps the first name it announced; later announcements are
        still broadcast. Names are not checked for uniqueness.
        """
        with self._lock:
            entry = self._entries.get(session.session_id)
            if entry is None:
                self.log.debug(
                    "Name announced by unregistered session id=%s name=%r",
                    session.session_id,
                    name,
                )
            elif entry.name is None:
                entry.name = name
            elif entry.name != name:
                self.log.info(
                    "Session id=%s already named %r; ignoring rename to %r",
                    session.session_id,
                    entry.name,
                    name,
                )
            self.stats.inc("joins")
            self.broadcast(join_notice(name))

    def remove(self, name: str) -> ClientSession | None:
        """
        Remove the first session registered under `name` and announce it.

        The leave notice goes to the sessions that remain. Removing a name
        nobody holds is a silent no-op.
        """
        with self._lock:
            session_id = self._find_id_by_name(name)
            if session_id is None:
                self.log.debug("Leave for unknown name %r ignored", name)
                return None
            entry = self._entries.pop(session_id)
            self.stats.inc("parts")
            self.broadcast(leave_notice(name))
        return entry.session

    def discard(self, session_id: int) -> bool:
        """Remove a session by id without any notice. Returns False if absent."""
        with self._lock:
            return self._entries.pop(session_id, None) is not None

    def broadcast(self, message: str) -> int:
        """
        Send `message` to every registered session, in registration order.

        A failed send is logged and skipped; it neither aborts the fan-out nor
        removes the recipient. Returns the number of successful deliveries.
        """
        delivered = 0
        with self._lock:
            for session_id, entry in list(self._entries.items()):
                conn = entry.session.connection
                try:
                    self.stats.inc("bytes_out", conn.send(message))
                    delivered += 1
                except (TransportError, ValueError) as e:
                    self.stats.inc("send_failures")
                    self.log.warning(
                        "Send failed id=%s peer=%s: %s",
                        session_id,
                        entry.session.fmt_peer(),
                        e,
                    )
        return delivered

    def lookup(self, name: str) -> ClientSession | None:
        """Return the first registered session holding `name`, if any."""
        with self._lock:
            session_id = self._find_id_by_name(name)
            if session_id is None:
                return None
            return self._entries[session_id].session

    def name_of(self, session_id: int) -> str | None:
        with self._lock:
            entry = self._entries.get(session_id)
            return entry.name if entry is not None else None

    def _find_id_by_name(self, name: str) -> int | None:
        # Must be called with the lock held.
        for session_id, entry in self._entries.items():
            if entry.name == name:
                return session_id
        return None

    def snapshot(self) -> list[tuple[int, str, str | None]]:
        """(session id, peer, name) for each registered session, in order."""
        with self._lock:
            return [
                (session_id, entry.session.fmt_peer(), entry.name)
                for session_id, entry in self._entries.items()
            ]

    def clear_all(self) -> list[ClientSession]:
        """Drop every session and return them for teardown."""
        with self._lock:
            sessions = [entry.session for entry in self._entries.values()]
            self._entries.clear()
        return sessions

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            total = len(self._entries)
            named = sum(1 for e in self._entries.values() if e.name is not None)
        return {"total": total, "named": named}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._entries
