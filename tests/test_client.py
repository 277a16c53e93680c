import queue
import socket

import pytest

from groupchat.client import DISCONNECTED, SERVER_UNREACHABLE, ChatClient
from groupchat.config import ChatRuntimeConfig
from groupchat.errors import TransportError
from groupchat.service import ChatServer


@pytest.fixture
def server():
    srv = ChatServer(ChatRuntimeConfig(bind_host="127.0.0.1", listen_port=0))
    srv.start()
    yield srv
    srv.stop()


def _client(srv: ChatServer, name: str) -> tuple[ChatClient, queue.Queue]:
    q: queue.Queue = queue.Queue()
    host, port = srv.address
    c = ChatClient(host, port, name, output=q.put)
    c.connect()
    return c, q


def test_client_round_trip(server) -> None:
    alice, qa = _client(server, "alice")
    assert qa.get(timeout=5) == "alice has joined the chat"
    bob, qb = _client(server, "bob")
    assert qa.get(timeout=5) == "bob has joined the chat"
    assert qb.get(timeout=5) == "bob has joined the chat"

    assert alice.send("hello")
    assert qa.get(timeout=5) == "<alice> hello"
    assert qb.get(timeout=5) == "<alice> hello"

    alice.leave()
    assert qb.get(timeout=5) == "alice has left the chat"
    assert alice.wait(timeout=5)
    assert not alice.connected
    # Leaving on purpose is not reported as a lost connection.
    assert qa.empty()

    bob.leave()


def test_connect_failure_raises() -> None:
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()

    c = ChatClient("127.0.0.1", port, "alice", output=lambda line: None, connect_timeout=2)
    with pytest.raises(TransportError):
        c.connect()


def test_server_going_away_is_reported(server) -> None:
    alice, qa = _client(server, "alice")
    assert qa.get(timeout=5) == "alice has joined the chat"

    server.stop()

    assert qa.get(timeout=5) == DISCONNECTED
    assert alice.wait(timeout=5)
    assert alice.send("anyone?") is False
    assert qa.get(timeout=5) == SERVER_UNREACHABLE


def test_send_before_connect_reports_unreachable() -> None:
    out = []
    c = ChatClient("127.0.0.1", 1, "alice", output=out.append)
    assert c.send("hi") is False
    assert out == [SERVER_UNREACHABLE]
    c.leave()
