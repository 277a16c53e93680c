from groupchat.constants import KIND_CHAT, KIND_EXIT, KIND_NAME
from groupchat.envelope import (
    classify,
    join_notice,
    leave_notice,
    make_chat,
    make_exit,
    make_name,
)


def test_builders_match_wire_shapes() -> None:
    assert make_name("Alice") == "nameAlice"
    assert make_exit("Alice") == "exitAlice"
    assert make_chat("Alice", "hi") == "<Alice> hi"


def test_notices() -> None:
    assert join_notice("Alice") == "Alice has joined the chat"
    assert leave_notice("Bob") == "Bob has left the chat"


def test_classify_name_and_exit() -> None:
    assert classify("nameAlice") == (KIND_NAME, "Alice")
    assert classify("exitAlice") == (KIND_EXIT, "Alice")


def test_classify_plain_chat_passes_through() -> None:
    assert classify("<Alice> hi") == (KIND_CHAT, "<Alice> hi")


def test_any_line_starting_with_prefix_is_a_control_message() -> None:
    assert classify("named after you") == (KIND_NAME, "d after you")


def test_bare_prefix_is_chat() -> None:
    assert classify("exit") == (KIND_CHAT, "exit")
    assert classify("name") == (KIND_CHAT, "name")
    assert classify("") == (KIND_CHAT, "")
    assert classify("hi") == (KIND_CHAT, "hi")


def test_prefix_is_case_sensitive() -> None:
    assert classify("EXITAlice")[0] == KIND_CHAT
    assert classify("NameAlice")[0] == KIND_CHAT
