"""Canonical Huffman code construction for DEFLATE streams."""

from __future__ import annotations

from typing import Iterable, Sequence

MAX_LEN = 16
NUM_BITS = 10
_MASK = (1 << NUM_BITS) - 1
_U32 = 0xFFFFFFFF

SYMBOL_END_OF_BLOCK = 256
SYMBOL_MATCH = SYMBOL_END_OF_BLOCK + 1
NUM_LEN_SLOTS = 29
MAIN_TABLE_SIZE = SYMBOL_MATCH + NUM_LEN_SLOTS
FIXED_LEN_TABLE_SIZE = SYMBOL_MATCH + 31
DIST_TABLE_SIZE = 30
LENS_TABLE_SIZE = 19

LEN_START = (
    0, 1, 2, 3, 4, 5, 6, 7, 8, 10, 12, 14, 16, 20, 24, 28, 32, 40, 48, 56,
    64, 80, 96, 112, 128, 160, 192, 224, 255,
)
LEN_EXTRA_BITS = (
    0, 0, 0, 0, 0, 0, 0, 0, 1, 1, 1, 1, 2, 2, 2, 2, 3, 3, 3, 3, 4, 4, 4, 4,
    5, 5, 5, 5, 0,
)
DIST_START = (
    0, 1, 2, 3, 4, 6, 8, 12, 16, 24, 32, 48, 64, 96, 128, 192, 256, 384, 512,
    768, 1024, 1536, 2048, 3072, 4096, 6144, 8192, 12288, 16384, 24576,
)
DIST_EXTRA_BITS = (
    0, 0, 0, 0, 1, 1, 2, 2, 3, 3, 4, 4, 5, 5, 6, 6, 7, 7, 8, 8, 9, 9, 10, 10,
    11, 11, 12, 12, 13, 13,
)
CODE_LENGTH_ALPHABET_ORDER = (
    16, 17, 18, 0, 8, 7, 9, 6, 10, 5, 11, 4, 12, 3, 13, 2, 14, 1, 15,
)
LEVEL_EXTRA_BITS = (2, 3, 7)


def reverse_bits(code: int, bits: int) -> int:
    """Reverse the lowest ``bits`` bits of a code of at most 16 bits."""
    x = code
    x = ((x & 0x5555) << 1) | ((x & 0xAAAA) >> 1)
    x = ((x & 0x3333) << 2) | ((x & 0xCCCC) >> 2)
    x = ((x & 0x0F0F) << 4) | ((x & 0xF0F0) >> 4)
    return (((x & 0x00FF) << 8) | ((x & 0xFF00) >> 8)) >> (16 - bits)


def gen_huff_codes(lens: Sequence[int], bl_count: Sequence[int]) -> list[int]:
    """Assign canonical (MSB-first) codes from code lengths and their counts.

    ``bl_count[n]`` is the number of codes of length ``n``.
    """
    counts = list(bl_count) + [0] * max(0, MAX_LEN + 1 - len(bl_count))
    next_codes = [0] * (MAX_LEN + 1)
    code = 0
    for bits in range(1, MAX_LEN + 1):
        code = (code + counts[bits - 1]) << 1
        next_codes[bits] = code
    codes = []
    for length in lens:
        codes.append(next_codes[length])
        next_codes[length] += 1
    return codes


def heap_sort(values: Iterable[int]) -> list[int]:
    """Return the values in ascending order."""
    return sorted(values)


def huffman_generate(freqs: Sequence[int], max_len: int) -> tuple[list[int], list[int]]:
    """Build a length-limited Huffman code.

    Returns ``(codes, lens)``: canonical MSB-first codes and code lengths,
    one per symbol.  Symbols with zero frequency get length 0, except that
    at least two symbols always receive a code.
    """
    num_symbols = len(freqs)
    if num_symbols < 2:
        raise ValueError("a Huffman alphabet needs at least two symbols")
    if num_symbols > _MASK + 1:
        raise ValueError("too many symbols")
    if not 2 <= max_len <= MAX_LEN:
        raise ValueError(f"code length limit must be within 2..{MAX_LEN}")

    lens = [0] * num_symbols
    p = heap_sort(
        (sym | (freq << NUM_BITS)) & _U32 for sym, freq in enumerate(freqs) if freq
    )
    num = len(p)

    if num < 2:
        max_code = 1
        if num == 1:
            max_code = (p[0] & _MASK) or 1
        codes = [0] * num_symbols
        codes[max_code] = 1
        lens[0] = lens[max_code] = 1
        return codes, lens
    if num > 1 << max_len:
        raise ValueError("too many used symbols for the code length limit")

    i = b = e = 0

    def pick() -> int:
        nonlocal i, b
        if i != num and (b == e or (p[i] >> NUM_BITS) <= (p[b] >> NUM_BITS)):
            i += 1
            return i - 1
        b += 1
        return b - 1

    while True:
        n = pick()
        freq = p[n] & ~_MASK
        p[n] = (p[n] & _MASK) | (e << NUM_BITS)
        m = pick()
        freq += p[m] & ~_MASK
        p[m] = (p[m] & _MASK) | (e << NUM_BITS)
        p[e] = (p[e] & _MASK) | (freq & _U32 & ~_MASK)
        e += 1
        if num - e <= 1:
            break

    len_counters = [0] * (MAX_LEN + 1)
    e -= 1
    p[e] &= _MASK
    len_counters[1] = 2
    while e > 0:
        e -= 1
        length = (p[p[e] >> NUM_BITS] >> NUM_BITS) + 1
        p[e] = (p[e] & _MASK) | (length << NUM_BITS)
        if length >= max_len:
            length = max_len - 1
            while len_counters[length] == 0:
                length -= 1
        len_counters[length] -= 1
        len_counters[length + 1] += 2

    idx = 0
    for length in range(max_len, 0, -1):
        for _ in range(len_counters[length]):
            lens[p[idx] & _MASK] = length
            idx += 1
    return gen_huff_codes(lens, len_counters), lens


STATIC_LITLEN_LEVELS: tuple[int, ...] = tuple(
    [8] * 144 + [9] * 112 + [7] * 24 + [8] * 8
)
_STATIC_BL_COUNT = (0, 0, 0, 0, 0, 0, 0, 24, 152, 112)

STATIC_MAIN_CODES: tuple[int, ...] = tuple(
    reverse_bits(code, length)
    for code, length in zip(
        gen_huff_codes(STATIC_LITLEN_LEVELS, _STATIC_BL_COUNT), STATIC_LITLEN_LEVELS
    )
)
STATIC_DIST_CODES: tuple[int, ...] = tuple(reverse_bits(i, 5) for i in range(32))