import random

import pytest

from erofstools.rolling_hash import (
    PRIME_NUMBER,
    rolling_hash_advance,
    rolling_hash_calc_rm,
    rolling_hash_init,
)


def test_init_small_values():
    assert rolling_hash_init(b"") == 0
    assert rolling_hash_init(b"\x05") == 5
    assert rolling_hash_init(b"\x01\x00") == 256


def test_backwards_equals_reversed():
    data = b"rolling hash data"
    assert rolling_hash_init(data, True) == rolling_hash_init(data[::-1])


def test_calc_rm_small_windows():
    assert rolling_hash_calc_rm(0) == 1
    assert rolling_hash_calc_rm(1) == 1
    assert rolling_hash_calc_rm(2) == 256


@pytest.mark.parametrize("window", [1, 4, 16, 64])
def test_advance_matches_fresh_hash(window):
    rng = random.Random(window)
    data = bytes(rng.randrange(256) for _ in range(300))
    rm = rolling_hash_calc_rm(window)
    h = rolling_hash_init(data[:window])
    for i in range(1, len(data) - window + 1):
        h = rolling_hash_advance(h, rm, data[i - 1], data[i + window - 1])
        assert h == rolling_hash_init(data[i:i + window])
        assert 0 <= h < PRIME_NUMBER