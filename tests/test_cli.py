import io
import logging
import socket
import time

import pytest

from groupchat import cli


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    monkeypatch.setenv("GROUPCHAT_HOME", str(tmp_path / "home"))
    pkg = logging.getLogger("groupchat")
    handlers, level, propagate = list(pkg.handlers), pkg.level, pkg.propagate
    yield
    for h in list(pkg.handlers):
        pkg.removeHandler(h)
        if h not in handlers:
            h.close()
    for h in handlers:
        pkg.addHandler(h)
    pkg.setLevel(level)
    pkg.propagate = propagate


def test_server_rejects_invalid_port(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.server_main(["-csp", "notaport"])
    assert exc.value.code == 2
    assert "port must be an integer" in capsys.readouterr().err


def test_client_rejects_invalid_port(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.client_main(["-ccp", "99999", "--name", "alice"])
    assert exc.value.code == 2
    assert "between 1 and 65535" in capsys.readouterr().err


def test_missing_explicit_config_is_fatal(tmp_path, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.server_main(["--config", str(tmp_path / "nope.toml")])
    assert exc.value.code == 2


def test_init_config_writes_file(tmp_path) -> None:
    path = tmp_path / "gc.toml"
    with pytest.raises(SystemExit) as exc:
        cli.server_main(["--config", str(path), "--init-config"])
    assert exc.value.code == 0
    assert path.exists()

    with pytest.raises(SystemExit) as exc:
        cli.server_main(["--config", str(path), "--init-config"])
    assert exc.value.code == 2


def test_server_bind_failure_is_fatal(capsys) -> None:
    busy = socket.create_server(("127.0.0.1", 0))
    port = busy.getsockname()[1]
    try:
        with pytest.raises(SystemExit) as exc:
            cli.server_main(["-csp", str(port), "--bind", "127.0.0.1", "--log-level", "ERROR"])
        assert exc.value.code == 1
    finally:
        busy.close()
    assert "cannot listen" in capsys.readouterr().err


def test_client_reports_unreachable_server(capsys) -> None:
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()

    with pytest.raises(SystemExit) as exc:
        cli.client_main(["-cca", "127.0.0.1", "-ccp", str(port), "--name", "alice"])
    assert exc.value.code == 1
    assert "Error connecting to server" in capsys.readouterr().out


def test_client_session_over_terminal(monkeypatch, capsys) -> None:
    from groupchat.config import ChatRuntimeConfig
    from groupchat.service import ChatServer

    srv = ChatServer(ChatRuntimeConfig(bind_host="127.0.0.1", listen_port=0))
    srv.start()
    try:
        _, port = srv.address
        monkeypatch.setattr("sys.stdin", io.StringIO("hello there\nEXIT\n"))
        with pytest.raises(SystemExit) as exc:
            cli.client_main(["-cca", "127.0.0.1", "-ccp", str(port), "--name", "alice"])
        assert exc.value.code == 0

        deadline = time.monotonic() + 5
        while srv.stats_manager.get("parts") < 1 and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        srv.stop()

    assert srv.stats_manager.get("joins") == 1
    assert srv.stats_manager.get("parts") == 1
    assert srv.stats_manager.get("msgs_forwarded") == 1
    out = capsys.readouterr().out
    assert "To shutdown the client type EXIT." in out


def test_unwritable_log_file_is_a_config_error(tmp_path, capsys) -> None:
    # A directory cannot be opened as a log file.
    with pytest.raises(SystemExit) as exc:
        cli.server_main(["--log-file", str(tmp_path)])
    assert exc.value.code == 2
    assert "cannot open log file" in capsys.readouterr().err


def test_client_unknown_log_level_is_a_config_error(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.client_main(["--name", "alice", "--log-level", "LOUD"])
    assert exc.value.code == 2
    assert "unknown log level" in capsys.readouterr().err


def test_init_config_into_unwritable_location(tmp_path, capsys) -> None:
    blocker = tmp_path / "plain-file"
    blocker.write_text("not a directory")
    with pytest.raises(SystemExit) as exc:
        cli.server_main(["--config", str(blocker / "gc.toml"), "--init-config"])
    assert exc.value.code == 2
    assert "cannot write config file" in capsys.readouterr().err
