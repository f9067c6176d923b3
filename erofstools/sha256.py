"""A self-contained SHA-256 implementation."""

from __future__ import annotations

_K = (
    0x428A2F98, 0x71374491, 0xB5C0FBCF, 0xE9B5DBA5, 0x3956C25B, 0x59F111F1,
    0x923F82A4, 0xAB1C5ED5, 0xD807AA98, 0x12835B01, 0x243185BE, 0x550C7DC3,
    0x72BE5D74, 0x80DEB1FE, 0x9BDC06A7, 0xC19BF174, 0xE49B69C1, 0xEFBE4786,
    0x0FC19DC6, 0x240CA1CC, 0x2DE92C6F, 0x4A7484AA, 0x5CB0A9DC, 0x76F988DA,
    0x983E5152, 0xA831C66D, 0xB00327C8, 0xBF597FC7, 0xC6E00BF3, 0xD5A79147,
    0x06CA6351, 0x14292967, 0x27B70A85, 0x2E1B2138, 0x4D2C6DFC, 0x53380D13,
    0x650A7354, 0x766A0ABB, 0x81C2C92E, 0x92722C85, 0xA2BFE8A1, 0xA81A664B,
    0xC24B8B70, 0xC76C51A3, 0xD192E819, 0xD6990624, 0xF40E3585, 0x106AA070,
    0x19A4C116, 0x1E376C08, 0x2748774C, 0x34B0BCB5, 0x391C0CB3, 0x4ED8AA4A,
    0x5B9CCA4F, 0x682E6FF3, 0x748F82EE, 0x78A5636F, 0x84C87814, 0x8CC70208,
    0x90BEFFFA, 0xA4506CEB, 0xBEF9A3F7, 0xC67178F2,
)

_INITIAL_STATE = (
    0x6A09E667, 0xBB67AE85, 0x3C6EF372, 0xA54FF53A,
    0x510E527F, 0x9B05688C, 0x1F83D9AB, 0x5BE0CD19,
)

_MASK = 0xFFFFFFFF
BLOCK_SIZE = 64


def _ror(x: int, n: int) -> int:
    return ((x >> n) | (x << (32 - n))) & _MASK


def _compress(state: list[int], block: bytes) -> None:
    w = [int.from_bytes(block[i:i + 4], "big") for i in range(0, 64, 4)]
    for i in range(16, 64):
        x2, x15 = w[i - 2], w[i - 15]
        g1 = _ror(x2, 17) ^ _ror(x2, 19) ^ (x2 >> 10)
        g0 = _ror(x15, 7) ^ _ror(x15, 18) ^ (x15 >> 3)
        w.append((g1 + w[i - 7] + g0 + w[i - 16]) & _MASK)

    a, b, c, d, e, f, g, h = state
    for k, wi in zip(_K, w):
        s1 = _ror(e, 6) ^ _ror(e, 11) ^ _ror(e, 25)
        ch = g ^ (e & (f ^ g))
        t0 = (h + s1 + ch + k + wi) & _MASK
        s0 = _ror(a, 2) ^ _ror(a, 13) ^ _ror(a, 22)
        maj = ((a | b) & c) | (a & b)
        t1 = (s0 + maj) & _MASK
        a, b, c, d, e, f, g, h = (t0 + t1) & _MASK, a, b, c, (d + t0) & _MASK, e, f, g

    for i, v in enumerate((a, b, c, d, e, f, g, h)):
        state[i] = (state[i] + v) & _MASK


class Sha256:
    """Incremental SHA-256 hasher."""

    def __init__(self) -> None:
        self._state = list(_INITIAL_STATE)
        self._buf = bytearray()
        self._length = 0

    def update(self, data: bytes | bytearray | memoryview) -> None:
        """Feed more data into the hash."""
        self._buf += data
        full = len(self._buf) - len(self._buf) % BLOCK_SIZE
        for pos in range(0, full, BLOCK_SIZE):
            _compress(self._state, bytes(self._buf[pos:pos + BLOCK_SIZE]))
        self._length += full * 8
        del self._buf[:full]

    def digest(self) -> bytes:
        """Return the 32-byte digest of everything fed so far."""
        state = list(self._state)
        bitlen = (self._length + len(self._buf) * 8) & ((1 << 64) - 1)
        tail = bytearray(self._buf)
        tail.append(0x80)
        if len(tail) > 56:
            tail.extend(bytes(64 - len(tail)))
            _compress(state, bytes(tail))
            tail = bytearray()
        tail.extend(bytes(56 - len(tail)))
        tail += bitlen.to_bytes(8, "big")
        _compress(state, bytes(tail))
        return b"".join(v.to_bytes(4, "big") for v in state)


def sha256(data: bytes | bytearray | memoryview) -> bytes:
    """Return the SHA-256 digest of ``data``."""
    hasher = Sha256()
    hasher.update(data)
    return hasher.digest()