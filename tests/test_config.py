import pytest

from groupchat.config import (
    ChatRuntimeConfig,
    apply_config_data,
    load_config,
    load_toml,
    write_default_config,
)
from groupchat.errors import ConfigError
from groupchat.util import parse_host, parse_port


def test_defaults() -> None:
    cfg = ChatRuntimeConfig()
    assert cfg.host == "localhost"
    assert cfg.port == 14001
    assert cfg.listen_port == 14001
    assert cfg.prefix_plain_lines is False


def test_tables_map_onto_fields() -> None:
    data = {
        "server": {"port": 15000, "bind_host": "127.0.0.1", "prefix_plain_lines": True},
        "client": {"host": "chat.example", "port": 15001},
        "logging": {"level": "DEBUG", "file": "", "datefmt": ""},
        "unknown": {"x": 1},
        "not_a_field": 3,
    }
    cfg = apply_config_data(ChatRuntimeConfig(), data)
    assert cfg.listen_port == 15000
    assert cfg.bind_host == "127.0.0.1"
    assert cfg.prefix_plain_lines is True
    assert cfg.host == "chat.example"
    assert cfg.port == 15001
    assert cfg.log_level == "DEBUG"
    assert cfg.log_file is None
    assert cfg.log_datefmt is None


def test_config_path_cannot_be_overridden_by_file() -> None:
    cfg = apply_config_data(ChatRuntimeConfig(config_path="a.toml"), {"config_path": "b"})
    assert cfg.config_path == "a.toml"


@pytest.mark.parametrize(
    "data",
    [
        {"server": {"port": 0}},
        {"client": {"port": "abc"}},
        {"client": {"host": "two words"}},
        {"server": {"prefix_plain_lines": "yes"}},
        {"server": {"backlog": "many"}},
        {"server": {"send_timeout": "soon"}},
        {"server": {"send_timeout": True}},
    ],
)
def test_invalid_values_raise_config_error(data) -> None:
    with pytest.raises(ConfigError):
        apply_config_data(ChatRuntimeConfig(), data)


def test_send_timeout_zero_disables_it() -> None:
    assert ChatRuntimeConfig().send_timeout == 5.0
    cfg = apply_config_data(ChatRuntimeConfig(), {"server": {"send_timeout": 2}})
    assert cfg.send_timeout == 2.0
    cfg = apply_config_data(ChatRuntimeConfig(), {"server": {"send_timeout": 0}})
    assert cfg.send_timeout is None


def test_write_default_config_reports_unwritable_path(tmp_path) -> None:
    blocker = tmp_path / "plain-file"
    blocker.write_text("x")
    with pytest.raises(ConfigError, match="cannot write config file"):
        write_default_config(str(blocker / "gc.toml"))


def test_default_config_file_loads_back_to_defaults(tmp_path) -> None:
    path = tmp_path / "sub" / "groupchat.toml"
    write_default_config(str(path))

    text = path.read_text(encoding="utf-8")
    assert "[server]" in text and "[client]" in text and "[logging]" in text
    assert "#" in text

    cfg = load_config(str(path))
    assert cfg == ChatRuntimeConfig(config_path=str(path))


def test_load_toml_errors(tmp_path) -> None:
    with pytest.raises(ConfigError):
        load_toml(str(tmp_path / "missing.toml"))

    bad = tmp_path / "bad.toml"
    bad.write_text("[server\nport = ", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_toml(str(bad))


def test_load_config_without_path_returns_base() -> None:
    base = ChatRuntimeConfig(port=1234)
    assert load_config(None, base) is base


def test_parse_port() -> None:
    assert parse_port("14001") == 14001
    assert parse_port(" 80 ") == 80
    assert parse_port(65535) == 65535
    for bad in ("", "x", "70000", 0, -1, True, "1.5"):
        with pytest.raises(ConfigError):
            parse_port(bad)


def test_parse_host() -> None:
    assert parse_host(" localhost ") == "localhost"
    assert parse_host("", allow_empty=True) == ""
    with pytest.raises(ConfigError):
        parse_host("")
    with pytest.raises(ConfigError):
        parse_host("bad host")
    with pytest.raises(ConfigError):
        parse_host(42)
