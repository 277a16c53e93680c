from __future__ import annotations

from .constants import (
    JOIN_NOTICE_FMT,
    KIND_CHAT,
    KIND_EXIT,
    KIND_NAME,
    LEAVE_NOTICE_FMT,
    PREFIX_EXIT,
    PREFIX_LEN,
    PREFIX_NAME,
)


def make_name(name: str) -> str:
    return PREFIX_NAME + name


def make_exit(name: str) -> str:
    return PREFIX_EXIT + name


def make_chat(name: str, text: str) -> str:
    return f"<{name}> {text}"


def chat_prefix(name: str) -> str:
    return f"<{name}> "


def join_notice(name: str) -> str:
    return JOIN_NOTICE_FMT.format(name=name)


def leave_notice(name: str) -> str:
    return LEAVE_NOTICE_FMT.format(name=name)


def classify(line: str) -> tuple[str, str]:
    """Split an inbound line into (kind, value).

    Only lines strictly longer than the prefix can be a name announcement or a
    leave notice; a bare ``name`` or ``exit`` is ordinary chat.
    """
    if len(line) > PREFIX_LEN:
        head, rest = line[:PREFIX_LEN], line[PREFIX_LEN:]
        if head == PREFIX_EXIT:
            return KIND_EXIT, rest
        if head == PREFIX_NAME:
            return KIND_NAME, rest
    return KIND_CHAT, line
