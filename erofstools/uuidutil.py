"""Random UUID generation and textual conversion."""

from __future__ import annotations

import os
import string

_HEX = frozenset(string.hexdigits)
_HYPHEN_AFTER = frozenset({3, 5, 7, 9})


def uuid_generate() -> bytes:
    """Return 16 random bytes with UUID type and version bits set."""
    raw = bytearray(os.urandom(16))
    raw[0] = (raw[6] & 0x0F) | 0x40
    raw[1] = (raw[8] & 0x3F) | 0x80
    return bytes(raw)


def uuid_unparse_lower(buf: bytes) -> str:
    """Format 16 bytes as a lower-case hyphenated UUID string."""
    if len(buf) != 16:
        raise ValueError("a UUID is 16 bytes long")
    h = bytes(buf).hex()
    return f"{h[0:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"


def uuid_parse(text: str) -> bytes:
    """Parse a hyphenated UUID string into 16 bytes."""
    out = bytearray()
    pos = 0
    for i in range(16):
        pair = text[pos:pos + 2]
        if len(pair) != 2 or not set(pair) <= _HEX:
            raise ValueError(f"invalid UUID: {text!r}")
        out.append(int(pair, 16))
        pos += 2
        if i in _HYPHEN_AFTER:
            if text[pos:pos + 1] != "-":
                raise ValueError(f"invalid UUID: {text!r}")
            pos += 1
    if pos != len(text):
        raise ValueError(f"invalid UUID: {text!r}")
    return bytes(out)