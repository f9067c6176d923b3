"""FNV-1 string hashing, a chained hash map and a byte-string intern pool."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

FNV32_BASE = 0x811C9DC5
FNV32_PRIME = 0x01000193
_MASK32 = 0xFFFFFFFF

HASHMAP_INITIAL_SIZE = 64
HASHMAP_RESIZE_BITS = 2
HASHMAP_LOAD_FACTOR = 80


def _to_bytes(text: str | bytes | bytearray) -> bytes:
    if isinstance(text, str):
        return text.encode("utf-8")
    return bytes(text)


def _fnv(data: bytes, fold_case: bool) -> int:
    value = FNV32_BASE
    for c in data:
        if fold_case and 0x61 <= c <= 0x7A:
            c -= 0x20
        value = ((value * FNV32_PRIME) & _MASK32) ^ c
    return value


def _until_nul(data: bytes) -> bytes:
    return data.split(b"\0", 1)[0]


def strhash(text: str | bytes) -> int:
    """FNV-1 hash of a NUL-terminated string."""
    return _fnv(_until_nul(_to_bytes(text)), fold_case=False)


def strihash(text: str | bytes) -> int:
    """Case-insensitive FNV-1 hash of a NUL-terminated string."""
    return _fnv(_until_nul(_to_bytes(text)), fold_case=True)


def memhash(buf: bytes | bytearray | memoryview) -> int:
    """FNV-1 hash of a whole byte buffer."""
    return _fnv(bytes(buf), fold_case=False)


def memihash(buf: bytes | bytearray | memoryview) -> int:
    """Case-insensitive FNV-1 hash of a whole byte buffer."""
    return _fnv(bytes(buf), fold_case=True)


@dataclass(eq=False)
class HashMapEntry:
    """An entry stored in a HashMap; entries compare by identity."""

    hash: int
    value: Any = None


EqualsFn = Callable[[HashMapEntry, HashMapEntry, Any], bool]


def _always_equal(_a: HashMapEntry, _b: HashMapEntry, _keydata: Any) -> bool:
    return True


class HashMap:
    """Chained hash table keyed by precomputed entry hashes.

    ``cmpfn(entry, key, keydata)`` returns True when ``entry`` matches.
    """

    def __init__(self, cmpfn: Optional[EqualsFn] = None, initial_size: int = 0) -> None:
        self._cmpfn: EqualsFn = cmpfn or _always_equal
        self._size = 0
        size = HASHMAP_INITIAL_SIZE
        wanted = initial_size * 100 // HASHMAP_LOAD_FACTOR
        while wanted > size:
            size <<= HASHMAP_RESIZE_BITS
        self._alloc_table(size)

    def _alloc_table(self, size: int) -> None:
        self._table: list[list[HashMapEntry]] = [[] for _ in range(size)]
        self._grow_at = size * HASHMAP_LOAD_FACTOR // 100
        if size <= HASHMAP_INITIAL_SIZE:
            self._shrink_at = 0
        else:
            self._shrink_at = self._grow_at // ((1 << HASHMAP_RESIZE_BITS) + 1)

    @property
    def tablesize(self) -> int:
        """Number of buckets currently allocated."""
        return len(self._table)

    def _bucket(self, entry: HashMapEntry) -> list[HashMapEntry]:
        return self._table[entry.hash & (len(self._table) - 1)]

    def _equals(self, e1: HashMapEntry, e2: HashMapEntry, keydata: Any) -> bool:
        return e1 is e2 or (e1.hash == e2.hash and self._cmpfn(e1, e2, keydata))

    def _rehash(self, newsize: int) -> None:
        old = self._table
        self._alloc_table(newsize)
        for chain in old:
            for entry in chain:
                self._bucket(entry).insert(0, entry)

    def add(self, entry: HashMapEntry) -> None:
        """Insert an entry; duplicates are allowed."""
        self._bucket(entry).insert(0, entry)
        self._size += 1
        if self._size > self._grow_at:
            self._rehash(len(self._table) << HASHMAP_RESIZE_BITS)

    def get(self, key: HashMapEntry, keydata: Any = None) -> Optional[HashMapEntry]:
        """Return the first entry matching ``key``, or None."""
        for entry in self._bucket(key):
            if self._equals(entry, key, keydata):
                return entry
        return None

    def get_next(self, entry: HashMapEntry) -> Optional[HashMapEntry]:
        """Return the next entry in the chain equal to ``entry``, or None."""
        chain = self._bucket(entry)
        try:
            pos = next(i for i, e in enumerate(chain) if e is entry)
        except StopIteration:
            return None
        for other in chain[pos + 1:]:
            if self._equals(entry, other, None):
                return other
        return None

    def remove(self, entry: HashMapEntry) -> Optional[HashMapEntry]:
        """Remove this very entry; return it, or None if it is absent."""
        chain = self._bucket(entry)
        for i, e in enumerate(chain):
            if e is entry:
                del chain[i]
                break
        else:
            return None
        self._size -= 1
        if self._size < self._shrink_at:
            self._rehash(len(self._table) >> HASHMAP_RESIZE_BITS)
        return entry

    def __iter__(self) -> Iterator[HashMapEntry]:
        for chain in self._table:
            yield from list(chain)

    def __len__(self) -> int:
        return self._size


@dataclass(eq=False)
class _PoolEntry(HashMapEntry):
    data: bytes = b""


def _pool_equals(e1: HashMapEntry, e2: HashMapEntry, keydata: Any) -> bool:
    assert isinstance(e1, _PoolEntry)
    return e1.data is keydata or e1.data == keydata


_pool = HashMap(_pool_equals, 0)


def memintern(data: bytes | bytearray | memoryview) -> bytes:
    """Return a shared bytes object equal to ``data``."""
    raw = bytes(data)
    key = _PoolEntry(hash=memhash(raw), data=raw)
    found = _pool.get(key, raw)
    if found is None:
        _pool.add(key)
        found = key
    assert isinstance(found, _PoolEntry)
    return found.data