from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace

from .client import ChatClient
from .commands import OperatorConsole
from .config import ChatRuntimeConfig, load_config, write_default_config
from .constants import EXIT_COMMAND
from .errors import BindError, ConfigError, TransportError
from .logging_config import ROLE_CLIENT, ROLE_SERVER, configure_logging
from .paths import default_config_path
from .service import ChatServer
from .util import expand_path, parse_host, parse_port


def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--config",
        default=None,
        help=f"Path to a TOML config file (default: {default_config_path()} if present)",
    )
    p.add_argument(
        "--init-config",
        action="store_true",
        help="Write a default config file to the --config path and exit",
    )
    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level override (DEBUG, INFO, WARNING, ERROR). Default comes from config.",
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Log file path override (empty disables file logging). Default comes from config.",
    )


def _build_server_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="groupchat-server", description="Run a single-room chat server"
    )
    p.add_argument("-csp", dest="port", default=None, help="Port to listen on (default: 14001)")
    p.add_argument("--bind", default=None, help="Address to listen on (default: all interfaces)")
    p.add_argument(
        "--prefix-lines",
        action="store_true",
        help='Prefix plain chat lines with "<name> " on the server',
    )
    _add_common_args(p)
    return p


def _build_client_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="groupchat-client", description="Connect to a chat server from the terminal"
    )
    p.add_argument("-cca", dest="address", default=None, help="Server address (default: localhost)")
    p.add_argument("-ccp", dest="port", default=None, help="Server port (default: 14001)")
    p.add_argument("--name", default=None, help="Display name (prompted for if omitted)")
    _add_common_args(p)
    return p


def _resolve_config_path(arg: str | None) -> tuple[str, bool]:
    """Returns (path, explicit)."""
    if arg:
        return expand_path(arg), True
    return str(default_config_path()), False


def _load_cfg(args: argparse.Namespace) -> ChatRuntimeConfig:
    config_path, explicit = _resolve_config_path(args.config)

    if args.init_config:
        if os.path.exists(config_path):
            raise ConfigError(f"refusing to overwrite existing config {config_path}")
        write_default_config(config_path)
        print(f"Created default config: {config_path}", file=sys.stderr)
        raise SystemExit(0)

    if explicit or os.path.exists(config_path):
        cfg = load_config(config_path)
    else:
        cfg = ChatRuntimeConfig()

    if args.log_level is not None:
        cfg = replace(cfg, log_level=str(args.log_level))
    if args.log_file is not None:
        cfg = replace(cfg, log_file=str(args.log_file) if str(args.log_file) else None)
    return cfg


def _fail(prog: str, err: Exception, code: int) -> None:
    print(f"{prog}: error: {err}", file=sys.stderr)
    raise SystemExit(code)


def server_main(argv: list[str] | None = None) -> None:
    args = _build_server_parser().parse_args(sys.argv[1:] if argv is None else argv)

    try:
        cfg = _load_cfg(args)
        if args.port is not None:
            cfg = replace(cfg, listen_port=parse_port(args.port))
        if args.bind is not None:
            cfg = replace(cfg, bind_host=parse_host(args.bind, allow_empty=True))
        if args.prefix_lines:
            cfg = replace(cfg, prefix_plain_lines=True)
    except ConfigError as e:
        _fail("groupchat-server", e, 2)

    try:
        configure_logging(cfg, role=ROLE_SERVER)
    except ConfigError as e:
        _fail("groupchat-server", e, 2)

    server = ChatServer(cfg)
    try:
        server.start()
    except BindError as e:
        _fail("groupchat-server", e, 1)

    print("To shutdown the server, type EXIT")
    OperatorConsole(server).start()
    server.run_forever()


def client_main(argv: list[str] | None = None) -> None:
    args = _build_client_parser().parse_args(sys.argv[1:] if argv is None else argv)

    try:
        cfg = _load_cfg(args)
        if args.address is not None:
            cfg = replace(cfg, host=parse_host(args.address))
        if args.port is not None:
            cfg = replace(cfg, port=parse_port(args.port))
    except ConfigError as e:
        _fail("groupchat-client", e, 2)

    try:
        configure_logging(cfg, role=ROLE_CLIENT, override_level=args.log_level)
    except ConfigError as e:
        _fail("groupchat-client", e, 2)

    print(f"To shutdown the client type {EXIT_COMMAND}.")
    name = args.name
    if name is None:
        print("Please enter your name: ", end="", flush=True)
        name = sys.stdin.readline()
        if not name:
            raise SystemExit(0)
        name = name.rstrip("\r\n")

    client = ChatClient(cfg.host, cfg.port, name, output=print)
    try:
        client.connect()
    except TransportError:
        print("Error connecting to server, please check args and try again")
        raise SystemExit(1)

    for raw in sys.stdin:
        line = raw.rstrip("\r\n")
        if line == EXIT_COMMAND:
            break
        client.send(line)

    client.leave()
    client.wait(timeout=1.0)
    raise SystemExit(0)


if __name__ == "__main__":
    server_main()
