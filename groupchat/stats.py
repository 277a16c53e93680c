"""Statistics tracking and reporting for the chat server."""

from __future__ import annotations

import threading
import time
from typing import Any


class StatsManager:
    """
    Thread-safe lifetime counters for the server.

    Tracks counters for:
    - Connections accepted
    - Joins, parts, abrupt disconnects and ended sessions
    - Chat lines forwarded and per-recipient send failures
    - Bytes in/out
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.started_wall_time: float | None = None
        self.started_monotonic: float | None = None

        self._counters: dict[str, int] = {
            "connections_accepted": 0,
            "joins": 0,
            "parts": 0,
            "disconnects": 0,
            "sessions_closed": 0,
            "msgs_forwarded": 0,
            "send_failures": 0,
            "bytes_in": 0,
            "bytes_out": 0,
        }

    def set_start_time(self) -> None:
        """Set the start time for uptime calculations."""
        self.started_wall_time = time.time()
        self.started_monotonic = time.monotonic()

    def inc(self, key: str, delta: int = 1) -> None:
        """Increment a counter by the given delta."""
        with self._lock:
            self._counters[key] = int(self._counters.get(key, 0)) + int(delta)

    def get(self, key: str) -> int:
        with self._lock:
            return int(self._counters.get(key, 0))

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def format_stats(self, session_stats: dict[str, Any] | None = None) -> str:
        """Format current statistics as a human-readable string."""
        from . import __version__

        started = self.started_monotonic
        uptime_s = (time.monotonic() - started) if started is not None else 0.0
        c = self.snapshot()

        lines: list[str] = []
        lines.append(f"groupchat {__version__} stats")
        lines.append(f"uptime_s={uptime_s:.1f}")
        if session_stats is not None:
            lines.append(
                f"sessions_total={session_stats.get('total', 0)} "
                f"sessions_named={session_stats.get('named', 0)}"
            )
        lines.append(
            "io: connections={} bytes_in={} bytes_out={}".format(
                c.get("connections_accepted", 0),
                c.get("bytes_in", 0),
                c.get("bytes_out", 0),
            )
        )
        lines.append(
            "events: joins={} parts={} disconnects={} closed={} "
            "msgs_fwd={} send_failures={}".format(
                c.get("joins", 0),
                c.get("parts", 0),
                c.get("disconnects", 0),
                c.get("sessions_closed", 0),
                c.get("msgs_forwarded", 0),
                c.get("send_failures", 0),
            )
        )
        return "\n".join(lines)
