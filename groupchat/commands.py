"""Operator console for the chat server."""

from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING, Callable, TextIO

from groupchat.constants import EXIT_COMMAND

if TYPE_CHECKING:
    from groupchat.service import ChatServer

INVALID_INPUT = "Invalid input, please type EXIT to quit (STATS and WHO show server state)"


class OperatorConsole:
    """Reads operator commands from a local text stream on its own thread."""

    def __init__(
        self,
        server: ChatServer,
        *,
        stream: TextIO | None = None,
        output: Callable[[str], None] | None = None,
    ) -> None:
        self.server = server
        self.stream = stream if stream is not None else sys.stdin
        self.output = output if output is not None else print
        self._thread: threading.Thread | None = None

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(
            target=self.run, name="groupchat-console", daemon=True
        )
        self._thread.start()
        return self._thread

    def run(self) -> None:
        for raw in self.stream:
            self.handle_command(raw.rstrip("\r\n"))

    def handle_command(self, text: str) -> None:
        cmd = text.strip()

        if cmd == EXIT_COMMAND:
            self.server.shutdown()
            return

        if cmd == "STATS":
            self.output(
                self.server.stats_manager.format_stats(self.server.registry.get_stats())
            )
            return

        if cmd == "WHO":
            rows = self.server.registry.snapshot()
            if not rows:
                self.output("No clients connected")
                return
            lines = [f"{len(rows)} client(s) connected:"]
            for session_id, peer, name in rows:
                lines.append(f"  #{session_id} {peer} {name if name is not None else '(unnamed)'}")
            self.output("\n".join(lines))
            return

        self.output(INVALID_INPUT)
