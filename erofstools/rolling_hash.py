"""Rabin-Karp style rolling hash over bytes."""

from __future__ import annotations

PRIME_NUMBER = 4294967295
RADIX = 256
_MASK64 = (1 << 64) - 1


def rolling_hash_init(data: bytes, backwards: bool = False) -> int:
    """Hash a window of bytes, optionally reading it from the end."""
    seq = reversed(data) if backwards else data
    value = 0
    for byte in seq:
        value = (RADIX * value + byte) % PRIME_NUMBER
    return value


def rolling_hash_advance(old_hash: int, rm: int, to_remove: int, to_add: int) -> int:
    """Slide the window by one byte: drop ``to_remove``, append ``to_add``."""
    to_remove_val = ((to_remove * rm) & _MASK64) % PRIME_NUMBER
    value = (RADIX * (old_hash - to_remove_val)) % PRIME_NUMBER
    return (value + to_add) % PRIME_NUMBER


def rolling_hash_calc_rm(window_size: int) -> int:
    """Return RADIX ** (window_size - 1) modulo the prime."""
    if window_size <= 1:
        return 1
    return pow(RADIX, window_size - 1, PRIME_NUMBER)