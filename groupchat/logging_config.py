"""Logging setup for the groupchat server and terminal client."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from .config import ChatRuntimeConfig
from .errors import ConfigError
from .util import expand_path

PACKAGE_LOGGER = "groupchat"

ROLE_SERVER = "server"
ROLE_CLIENT = "client"

# The client shares the terminal with the conversation.
CLIENT_CONSOLE_LEVEL = logging.WARNING

_FALLBACK_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def parse_level(value: Any) -> int:
    """Accept a level name ("info", "WARN") or a number; raise ConfigError otherwise."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value).strip().upper()
    if text == "WARN":
        text = "WARNING"
    levels = logging.getLevelNamesMapping()
    if text in levels:
        return levels[text]
    if text.isdigit():
        return int(text)
    raise ConfigError(f"unknown log level {value!r}")


def _open_log_file(path: str) -> logging.Handler:
    p = Path(expand_path(path))
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(p, encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot open log file {p}: {e}") from e
    try:
        os.chmod(p, 0o600)
    except OSError:
        pass
    return handler


def configure_logging(
    cfg: ChatRuntimeConfig,
    *,
    role: str = ROLE_SERVER,
    override_level: str | None = None,
) -> logging.Logger:
    """Attach console and file handlers to the ``groupchat`` logger.

    Records from ``groupchat.server``, ``groupchat.session`` and the other
    package loggers stop at the package logger instead of reaching the root
    logger, so the host application's logging is left alone. Calling this
    again replaces the handlers installed by the previous call.

    For the server the console shows the configured level. For the client
    the console only shows warnings unless `override_level` is given; a log
    file still receives the configured level.

    Raises ConfigError for an unknown level or a log file that cannot be
    opened.
    """
    if role not in (ROLE_SERVER, ROLE_CLIENT):
        raise ValueError(f"unknown logging role {role!r}")

    level = parse_level(override_level if override_level is not None else cfg.log_level)
    if role == ROLE_CLIENT and override_level is None:
        console_level = max(level, CLIENT_CONSOLE_LEVEL)
    else:
        console_level = level

    handlers: list[logging.Handler] = []
    if cfg.log_console:
        console = logging.StreamHandler()
        console.setLevel(console_level)
        handlers.append(console)
    if cfg.log_file and str(cfg.log_file).strip():
        log_file = _open_log_file(str(cfg.log_file))
        log_file.setLevel(level)
        handlers.append(log_file)

    fmt = str(cfg.log_format).strip() or _FALLBACK_FORMAT
    formatter = logging.Formatter(fmt=fmt, datefmt=cfg.log_datefmt or None)

    logger = logging.getLogger(PACKAGE_LOGGER)
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.setLevel(min((h.level for h in handlers), default=level))
    if not handlers:
        # Console and file both off: keep the package silent.
        handlers.append(logging.NullHandler())
    for h in handlers:
        h.setFormatter(formatter)
        logger.addHandler(h)
    logger.propagate = False
    return logger
