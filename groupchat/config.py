from __future__ import annotations

import os
import tomllib
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any

from .constants import DEFAULT_BACKLOG, DEFAULT_HOST, DEFAULT_PORT, DEFAULT_SEND_TIMEOUT
from .errors import ConfigError
from .paths import ensure_private_dir
from .util import parse_host, parse_port


@dataclass(frozen=True)
class ChatRuntimeConfig:
    config_path: str | None = None
    # Client connection target
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    # Server listening socket; "" binds all interfaces
    bind_host: str = ""
    listen_port: int = DEFAULT_PORT
    backlog: int = DEFAULT_BACKLOG
    # Seconds a broadcast may block on one recipient; None waits forever
    send_timeout: float | None = DEFAULT_SEND_TIMEOUT
    prefix_plain_lines: bool = False
    log_level: str = "INFO"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
    log_datefmt: str | None = None


# TOML table -> {key in table: dataclass field}
_TABLE_KEYS: dict[str, dict[str, str]] = {
    "server": {
        "bind_host": "bind_host",
        "port": "listen_port",
        "backlog": "backlog",
        "send_timeout": "send_timeout",
        "prefix_plain_lines": "prefix_plain_lines",
    },
    "client": {
        "host": "host",
        "port": "port",
    },
    "logging": {
        "level": "log_level",
        "console": "log_console",
        "file": "log_file",
        "format": "log_format",
        "datefmt": "log_datefmt",
    },
}


def load_toml(path: str) -> dict:
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"config parse error in {path}: {e}") from e
    return data if isinstance(data, dict) else {}


def _parse_send_timeout(value: Any) -> float | None:
    # 0 (or a negative value) disables the timeout.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"send_timeout must be a number of seconds, got {value!r}")
    return float(value) if value > 0 else None


def apply_config_data(base: ChatRuntimeConfig, data: dict) -> ChatRuntimeConfig:
    """Overlay parsed TOML onto `base`. Unknown keys are ignored."""
    allowed = set(asdict(base).keys())
    # This identifies where the config came from; do not let the file override it.
    allowed.discard("config_path")

    updates: dict[str, Any] = {
        k: v for k, v in data.items() if k in allowed and not isinstance(v, dict)
    }
    for table, mapping in _TABLE_KEYS.items():
        section = data.get(table)
        if not isinstance(section, dict):
            continue
        for key, field in mapping.items():
            if key in section:
                updates[field] = section[key]

    for key in ("log_file", "log_datefmt"):
        if key in updates and updates[key] == "":
            updates[key] = None

    if "port" in updates:
        updates["port"] = parse_port(updates["port"])
    if "listen_port" in updates:
        updates["listen_port"] = parse_port(updates["listen_port"])
    if "host" in updates:
        updates["host"] = parse_host(updates["host"])
    if "bind_host" in updates:
        updates["bind_host"] = parse_host(updates["bind_host"], allow_empty=True)
    if "backlog" in updates:
        try:
            updates["backlog"] = max(1, int(updates["backlog"]))
        except (TypeError, ValueError):
            raise ConfigError(f"backlog must be an integer, got {updates['backlog']!r}") from None
    if "send_timeout" in updates:
        updates["send_timeout"] = _parse_send_timeout(updates["send_timeout"])
    for key in ("prefix_plain_lines", "log_console"):
        if key in updates and not isinstance(updates[key], bool):
            raise ConfigError(f"{key} must be true or false, got {updates[key]!r}")

    return replace(base, **updates) if updates else base


def load_config(path: str | None, base: ChatRuntimeConfig | None = None) -> ChatRuntimeConfig:
    cfg = base if base is not None else ChatRuntimeConfig()
    if not path:
        return cfg
    cfg = apply_config_data(cfg, load_toml(path))
    return replace(cfg, config_path=path)


def write_default_config(path: str) -> None:
    """Write a commented default config file, creating its directory."""
    import tomlkit

    cfg = ChatRuntimeConfig()

    doc = tomlkit.document()
    doc.add(tomlkit.comment("groupchat configuration (TOML)"))
    doc.add(tomlkit.comment("Command-line flags override the values in this file."))
    doc.add(tomlkit.nl())

    server = tomlkit.table()
    server.add(tomlkit.comment('Listen address; "" listens on all interfaces.'))
    server.add("bind_host", cfg.bind_host)
    server.add("port", cfg.listen_port)
    server.add("backlog", cfg.backlog)
    server.add(tomlkit.comment("Drop a client that blocks a broadcast this long (seconds, 0 = never)."))
    server.add("send_timeout", cfg.send_timeout or 0)
    server.add(tomlkit.comment('Prefix plain chat lines with "<name> " on the server.'))
    server.add(tomlkit.comment("Clients normally prefix their own lines."))
    server.add("prefix_plain_lines", cfg.prefix_plain_lines)
    doc.add("server", server)

    client = tomlkit.table()
    client.add(tomlkit.comment("Server the client connects to."))
    client.add("host", cfg.host)
    client.add("port", cfg.port)
    doc.add("client", client)

    log_table = tomlkit.table()
    log_table.add("level", cfg.log_level)
    log_table.add(tomlkit.comment("Log to stderr."))
    log_table.add("console", cfg.log_console)
    log_table.add(tomlkit.comment("Optional file path for logs (leave empty to disable)."))
    log_table.add("file", cfg.log_file or "")
    log_table.add("format", cfg.log_format)
    log_table.add("datefmt", cfg.log_datefmt or "")
    doc.add("logging", log_table)

    cfg_dir = os.path.dirname(path)
    try:
        if cfg_dir:
            ensure_private_dir(Path(cfg_dir))
        with open(path, "w", encoding="utf-8") as f:
            f.write(tomlkit.dumps(doc))
    except OSError as e:
        raise ConfigError(f"cannot write config file {path}: {e}") from e
    try:
        os.chmod(path, 0o600)
    except OSError:
        pass
