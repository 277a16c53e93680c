"""Frame codec: a 2-byte big-endian length followed by modified UTF-8.

This is the string encoding produced by Java's ``DataOutputStream.writeUTF``,
so frames interoperate with peers written against that API. It differs from
standard UTF-8 in two places: NUL is written as ``C0 80`` and characters
outside the BMP are written as a surrogate pair, each half taking 3 bytes.
"""

from __future__ import annotations

import struct

from .constants import FRAME_HEADER_BYTES, MAX_FRAME_BYTES

_HEADER = struct.Struct(">H")
_NUL_MODIFIED = b"\xc0\x80"


def _encode_char(ch: str) -> bytes:
    cp = ord(ch)
    if cp == 0:
        return _NUL_MODIFIED
    if cp > 0xFFFF:
        cp -= 0x10000
        high = chr(0xD800 + (cp >> 10))
        low = chr(0xDC00 + (cp & 0x3FF))
        return (high + low).encode("utf-8", "surrogatepass")
    return ch.encode("utf-8", "surrogatepass")


def encode_payload(text: str) -> bytes:
    if text.isascii() and "\x00" not in text:
        return text.encode("ascii")
    return b"".join(_encode_char(ch) for ch in text)


def decode_payload(payload: bytes) -> str:
    # C0 never occurs in well-formed UTF-8, so this replacement is unambiguous.
    raw = bytes(payload).replace(_NUL_MODIFIED, b"\x00")
    text = raw.decode("utf-8", "surrogatepass")
    # Re-join surrogate pairs into real code points.
    return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le")


def encode(text: str) -> bytes:
    """Encode one string as a complete frame (header + payload)."""
    payload = encode_payload(text)
    if len(payload) > MAX_FRAME_BYTES:
        raise ValueError(
            f"encoded string is {len(payload)} bytes; the limit is {MAX_FRAME_BYTES}"
        )
    return _HEADER.pack(len(payload)) + payload


def decode(frame: bytes) -> str:
    """Decode one complete frame (header + payload)."""
    if len(frame) < FRAME_HEADER_BYTES:
        raise ValueError("frame is shorter than its header")
    (size,) = _HEADER.unpack_from(frame)
    payload = frame[FRAME_HEADER_BYTES:]
    if len(payload) != size:
        raise ValueError(f"frame declares {size} bytes but carries {len(payload)}")
    return decode_payload(payload)


def payload_size(header: bytes) -> int:
    (size,) = _HEADER.unpack(header)
    return size
