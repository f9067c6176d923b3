import hashlib
import random

import pytest

from erofstools.sha256 import Sha256, sha256

VECTORS = [
    (b"", "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"),
    (b"abc", "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"),
    (
        b"abcdbcdecdefdefgefghfghighijhijkijkljklmklmnlmnomnopnopq",
        "248d6a61d20638b8e5c026930c3e6039a33ce45964ff2167f6ecedd419db06c1",
    ),
]


@pytest.mark.parametrize("msg,expected", VECTORS)
def test_known_vectors(msg, expected):
    assert sha256(msg).hex() == expected


@pytest.mark.parametrize("length", [0, 1, 55, 56, 63, 64, 65, 127, 128, 1000])
def test_matches_reference_lengths(length):
    data = bytes(random.Random(length).randrange(256) for _ in range(length))
    assert sha256(data) == hashlib.sha256(data).digest()


def test_incremental_updates_equal_one_shot():
    data = bytes(range(256)) * 5
    hasher = Sha256()
    for start in range(0, len(data), 37):
        hasher.update(data[start:start + 37])
    assert hasher.digest() == sha256(data)


def test_digest_does_not_finalize():
    hasher = Sha256()
    hasher.update(b"ab")
    first = hasher.digest()
    assert first == hasher.digest()
    hasher.update(b"c")
    assert hasher.digest() == sha256(b"abc")