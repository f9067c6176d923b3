"""Buffered, optionally decompressing input streams."""

from __future__ import annotations

import enum
import errno
import gzip
import lzma
import os
from typing import Any, BinaryIO, Optional

_PLAIN_BUFSIZE = 16384
_DECODED_BUFSIZE = 32768


class Decoder(enum.IntEnum):
    """How the bytes of the underlying file are to be decoded."""

    NONE = 0
    GZIP = 1
    LIBLZMA = 2


def read_fully(fileobj: Any, size: int) -> bytes:
    """Read up to ``size`` bytes, retrying short reads until end of file."""
    chunks = []
    remaining = size
    while remaining > 0:
        try:
            chunk = fileobj.read(remaining)
        except InterruptedError:
            continue
        if not chunk:
            break
        chunks.append(bytes(chunk))
        remaining -= len(chunk)
    return b"".join(chunks)


def _probe_size(fileobj: Any) -> Optional[int]:
    seekable = getattr(fileobj, "seekable", None)
    if seekable is None or not seekable():
        return None
    try:
        return fileobj.seek(0, os.SEEK_END)
    except (OSError, ValueError):
        return None


class IOStream:
    """A read-ahead buffer over a plain, gzip or xz/lzma compressed file."""

    def __init__(self, fileobj: BinaryIO, decoder: Decoder = Decoder.NONE) -> None:
        self._raw = fileobj
        self.decoder = Decoder(decoder)
        self._buffer = bytearray()
        self._head = 0
        self.eof = False
        self.size = 0
        self._closed = False
        self._src: Any
        if self.decoder is Decoder.GZIP:
            self._src = gzip.GzipFile(fileobj=fileobj, mode="rb")
            self.bufsize = _DECODED_BUFSIZE
        elif self.decoder is Decoder.LIBLZMA:
            self._src = lzma.LZMAFile(fileobj, mode="rb")
            self.bufsize = _DECODED_BUFSIZE
        else:
            self._src = fileobj
            self.bufsize = _PLAIN_BUFSIZE
            end = _probe_size(fileobj)
            if end is not None:
                if end <= 0:
                    self.eof = end == 0
                else:
                    self.size = end
                    fileobj.seek(0)

    def _fill(self, want: int) -> bytes:
        try:
            return read_fully(self._src, want)
        except (OSError, EOFError, lzma.LZMAError) as exc:
            if self.decoder is Decoder.NONE:
                raise
            raise OSError(errno.EIO, f"failed to decode input: {exc}") from exc

    def read(self, size: int) -> bytes:
        """Return up to ``size`` bytes, refilling the buffer at most once."""
        if size < 0:
            raise ValueError("size must not be negative")
        avail = len(self._buffer) - self._head
        if avail >= size:
            start = self._head
            self._head += size
            return bytes(self._buffer[start:self._head])

        if self._head:
            del self._buffer[: self._head]
            self._head = 0

        if not self.eof:
            want = self.bufsize - len(self._buffer)
            if want > 0:
                chunk = self._fill(want)
                self._buffer += chunk
                if len(chunk) < want:
                    self.eof = True

        n = min(len(self._buffer), size)
        self._head = n
        return bytes(self._buffer[:n])

    def bread(self, size: int) -> bytes:
        """Read exactly ``size`` bytes unless the stream ends first."""
        parts = []
        remaining = size
        while remaining:
            chunk = self.read(remaining)
            if not chunk:
                break
            parts.append(chunk)
            remaining -= len(chunk)
        return b"".join(parts)

    def lskip(self, size: int) -> int:
        """Skip ``size`` bytes; return how many could not be skipped."""
        avail = len(self._buffer) - self._head
        if avail >= size:
            self._head += size
            return 0

        size -= avail
        self._buffer.clear()
        self._head = 0
        if self.eof:
            return size

        if self.size:
            cur = self._src.seek(size, os.SEEK_CUR)
            if cur > self.size:
                return cur - self.size
            return 0

        while True:
            chunk = self.read(size)
            size -= len(chunk)
            if self.eof or not chunk or not size:
                break
        return size

    def close(self) -> None:
        """Close the decoder and the underlying file."""
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()
        self._head = 0
        if self._src is not self._raw:
            self._src.close()
        self._raw.close()

    def __enter__(self) -> "IOStream":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()