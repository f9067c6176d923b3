"""Parsing of ustar, GNU and pax tar archives."""

from __future__ import annotations

import errno
import logging
import stat
from dataclasses import dataclass, field, replace
from typing import Iterator, Optional

from .iostream import IOStream

log = logging.getLogger(__name__)

BLOCK_SIZE = 512
PATH_MAX = 4096
GNUTYPE_VOLHDR = "V"
EFSCORRUPTED = getattr(errno, "EUCLEAN", 117)

_SPACE = b" \t\n\v\f\r"
_B64_TABLE = b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+,"
_B64 = {c: i for i, c in enumerate(_B64_TABLE)}

_FILE_TYPES = {
    "0": stat.S_IFREG,
    "7": stat.S_IFREG,
    "1": stat.S_IFREG,
    "2": stat.S_IFLNK,
    "3": stat.S_IFCHR,
    "4": stat.S_IFBLK,
    "5": stat.S_IFDIR,
    "6": stat.S_IFIFO,
}


class TarError(OSError):
    """A malformed or truncated tar archive."""

    def __init__(self, message: str, code: int = errno.EIO) -> None:
        super().__init__(code, message)


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", "surrogateescape")


def _cstr(raw: bytes) -> bytes:
    return raw.split(b"\0", 1)[0]


def parse_octal(field: bytes) -> int:
    """Parse an octal number field ended by NUL, a space or the field end."""
    data = bytes(field)
    n = len(data)
    i = 0
    while i < n and data[i] in _SPACE:
        i += 1
    sign = 1
    if i < n and data[i] in b"+-":
        sign = -1 if data[i] == 0x2D else 1
        i += 1
    start = i
    while i < n and 0x30 <= data[i] <= 0x37:
        i += 1
    stop = i if i > start else 0
    if stop < n and data[stop] not in (0, 0x20):
        raise TarError(f"invalid octal field {data!r}", errno.EINVAL)
    return sign * int(data[start:i] or b"0", 8)


def parse_number(field: bytes) -> int:
    """Parse a numeric field, octal or GNU base-256."""
    data = bytes(field)
    if data[:1] == b"\x80":
        return int.from_bytes(data[1:], "big")
    return parse_octal(data)


def base64_decode(src: bytes) -> bytes:
    """Decode the base64 variant used by libarchive extended attributes."""
    data = bytes(src)
    n = len(data)
    if n and n % 4 == 0:
        if data[n - 2:] == b"==":
            n -= 2
        elif data[n - 1:] == b"=":
            n -= 1
    out = bytearray()
    bits = ac = 0
    for c in data[:n]:
        idx = _B64.get(c)
        if idx is None:
            raise TarError("invalid base64 character", EFSCORRUPTED)
        ac += idx << bits
        bits += 6
        if bits >= 8:
            out.append(ac & 0xFF)
            ac >>= 8
            bits -= 8
    if ac:
        raise TarError("trailing bits in base64 data", EFSCORRUPTED)
    return bytes(out)


class XattrList:
    """Extended attributes in insertion order, one value per name."""

    def __init__(self) -> None:
        self._items: dict[str, bytes] = {}

    def insert(self, name: str | bytes, value: bytes, skip: bool = False) -> None:
        """Add or replace an attribute; keep an existing one when ``skip``."""
        key = _decode(name) if isinstance(name, (bytes, bytearray)) else name
        if skip and key in self._items:
            return
        self._items[key] = bytes(value)

    def merge(self, other: "XattrList") -> None:
        """Add the attributes of ``other`` that are not yet present."""
        for name, value in other:
            self.insert(name, value, skip=True)

    def __iter__(self) -> Iterator[tuple[str, bytes]]:
        return iter(list(self._items.items()))

    def __len__(self) -> int:
        return len(self._items)


@dataclass
class PaxHeader:
    """Values from pax extended headers that override the ustar fields."""

    path: Optional[str] = None
    link: Optional[str] = None
    mtime: Optional[int] = None
    mtime_nsec: int = 0
    size: Optional[int] = None
    uid: Optional[int] = None
    gid: Optional[int] = None
    xattrs: XattrList = field(default_factory=XattrList)

    def _inherit(self) -> "PaxHeader":
        return replace(self, xattrs=XattrList())


def _scan_int(data: bytes, pos: int = 0) -> Optional[tuple[int, int]]:
    """Scan a decimal integer and the whitespace after it."""
    n = len(data)
    i = pos
    while i < n and data[i] in _SPACE:
        i += 1
    start = i
    if i < n and data[i] in b"+-":
        i += 1
    digits = i
    while i < n and 0x30 <= data[i] <= 0x39:
        i += 1
    if i == digits:
        return None
    value = int(data[start:i])
    while i < n and data[i] in _SPACE:
        i += 1
    return value, i


def _whole_int(value: bytes, keyword: str) -> int:
    scanned = _scan_int(value)
    if scanned is None or scanned[1] != len(value):
        raise TarError(f"invalid pax {keyword} value {value!r}")
    return scanned[0]


def parse_pax_header(ios: IOStream, header: PaxHeader, size: int) -> None:
    """Read ``size`` bytes of pax records from ``ios`` into ``header``."""
    buf = ios.bread(size)
    if len(buf) != size:
        raise TarError("truncated pax header")

    p = 0
    while p < size:
        scanned = _scan_int(buf, p)
        if scanned is None:
            raise TarError("malformed pax record length")
        length, kv_start = scanned
        if length <= kv_start - p or length > size - p:
            raise TarError("malformed pax record length")
        rec_end = p + length
        if buf[rec_end - 1] != 0x0A:
            raise TarError("pax record does not end with a newline")
        kv = buf[kv_start:rec_end - 1]
        p = rec_end

        eq = kv.find(b"=")
        if eq < 0:
            raise TarError("pax record without '='")
        value = kv[eq + 1:]

        if kv.startswith(b"path="):
            header.path = _decode(_cstr(value)).rstrip("/")
        elif kv.startswith(b"linkpath="):
            header.link = _decode(_cstr(value))
        elif kv.startswith(b"mtime="):
            text = _cstr(value)
            scanned = _scan_int(text)
            if scanned is None:
                raise TarError(f"invalid pax mtime value {value!r}")
            header.mtime, end = scanned
            if text[end:end + 1] == b".":
                frac = _scan_int(text, end + 1)
                if frac is None:
                    raise TarError(f"invalid pax mtime value {value!r}")
                header.mtime_nsec = frac[0]
        elif kv.startswith(b"size="):
            header.size = _whole_int(_cstr(value), "size")
        elif kv.startswith(b"uid="):
            header.uid = _whole_int(_cstr(value), "uid")
        elif kv.startswith(b"gid="):
            header.gid = _whole_int(_cstr(value), "gid")
        elif kv.startswith(b"SCHILY.xattr."):
            header.xattrs.insert(kv[len(b"SCHILY.xattr."):eq], value)
        elif kv.startswith(b"LIBARCHIVE.xattr."):
            header.xattrs.insert(kv[len(b"LIBARCHIVE.xattr."):eq], base64_decode(value))
        else:
            log.info("unrecognized pax keyword %r, ignoring", _decode(kv))


@dataclass
class TarEntry:
    """One archive member with its metadata resolved."""

    path: str
    typeflag: str
    mode: int
    uid: int
    gid: int
    size: int
    mtime: int
    mtime_nsec: int = 0
    link: Optional[str] = None
    devmajor: int = 0
    devminor: int = 0
    rdev: int = 0
    header_offset: int = 0
    data_offset: int = 0
    xattrs: XattrList = field(default_factory=XattrList)


class TarReader:
    """Walks the members of a tar archive read from an IOStream."""

    def __init__(self, ios: IOStream) -> None:
        self.ios = ios
        self.offset = 0
        self.global_header = PaxHeader()
        self.volume_name: Optional[bytes] = None
        self._pos = 0

    def _skip(self, amount: int) -> None:
        if amount <= 0:
            return
        left = self.ios.lskip(amount)
        self._pos += amount - left
        if left:
            raise TarError("unexpected end of archive")

    def _bread(self, size: int) -> bytes:
        data = self.ios.bread(size)
        self._pos += len(data)
        return data

    def next_entry(self) -> Optional[TarEntry]:
        """Return the next member, or None at the end of the archive."""
        eh = self.global_header._inherit()
        empty_seen = False
        while True:
            self.offset = -(-self.offset // BLOCK_SIZE) * BLOCK_SIZE
            self._skip(self.offset - self._pos)

            header_offset = self.offset
            block = self._bread(BLOCK_SIZE)
            if len(block) != BLOCK_SIZE:
                raise TarError(f"failed to read header block @ {header_offset}")
            self.offset += BLOCK_SIZE

            if block[0] == 0:
                if empty_seen:
                    return None
                empty_seen = True
                continue

            try:
                csum = parse_octal(block[148:156])
            except TarError:
                raise TarError(f"invalid chksum @ {header_offset}", errno.EBADMSG) from None
            summed = block[:148] + block[156:500]
            unsigned = 8 * 0x20 + sum(summed)
            signed = 8 * 0x20 + sum(b - 256 if b > 127 else b for b in summed)
            if csum not in (unsigned, signed):
                raise TarError(f"chksum mismatch @ {header_offset}", errno.EBADMSG)

            typeflag = chr(block[156])
            if typeflag == GNUTYPE_VOLHDR:
                if block[124]:
                    log.warning("volume header with non-zeroed size @ %d", header_offset)
                self.volume_name = _cstr(block[:100])
                continue

            if block[257:262] != b"ustar":
                raise TarError(f"invalid tar magic @ {header_offset}")

            try:
                mode = parse_octal(block[100:108])
                uid = eh.uid if eh.uid is not None else parse_number(block[108:116])
                gid = eh.gid if eh.gid is not None else parse_number(block[116:124])
                size = eh.size if eh.size is not None else parse_number(block[124:136])
                if eh.mtime is not None:
                    mtime, mtime_nsec = eh.mtime, eh.mtime_nsec
                else:
                    mtime, mtime_nsec = parse_number(block[136:148]), 0
            except TarError:
                raise TarError(f"invalid tar @ {header_offset}") from None

            if typeflag <= "7" and eh.path is None:
                prefix = _decode(_cstr(block[345:500]))
                if prefix and not prefix.endswith("/"):
                    prefix += "/"
                eh.path = (prefix + _decode(_cstr(block[:100]))).rstrip("/")

            data_offset = self.offset
            self.offset += size

            fmt = _FILE_TYPES.get(typeflag)
            if fmt is None:
                if typeflag == "g":
                    parse_pax_header(self.ios, self.global_header, size)
                    self._pos += size
                    if self.global_header.path is not None:
                        eh.path = self.global_header.path
                    if self.global_header.link is not None:
                        eh.link = self.global_header.link
                elif typeflag == "x":
                    parse_pax_header(self.ios, eh, size)
                    self._pos += size
                elif typeflag == "L":
                    data = self._bread(size)
                    if len(data) != size:
                        raise TarError(f"invalid tar @ {header_offset}")
                    eh.path = _decode(_cstr(data))
                elif typeflag == "K":
                    if size > PATH_MAX:
                        raise TarError(f"invalid tar @ {header_offset}")
                    data = self._bread(size)
                    if len(data) != size:
                        raise TarError(f"invalid tar @ {header_offset}")
                    eh.link = _decode(_cstr(data))
                else:
                    log.info("unrecognized typeflag %#x @ %d - ignoring",
                             block[156], header_offset)
                    eh = self.global_header._inherit()
                    empty_seen = False
                continue

            devmajor = devminor = rdev = 0
            if fmt in (stat.S_IFBLK, stat.S_IFCHR):
                try:
                    devmajor = parse_number(block[329:337])
                except TarError:
                    raise TarError(f"invalid device major @ {header_offset}") from None
                try:
                    devminor = parse_number(block[337:345])
                except TarError:
                    raise TarError(f"invalid device minor @ {header_offset}") from None
                rdev = (devmajor << 8) | (devminor & 0xFF) | ((devminor & ~0xFF) << 12)
            elif typeflag in ("1", "2") and eh.link is None:
                eh.link = _decode(_cstr(block[157:257]))

            eh.xattrs.merge(self.global_header.xattrs)
            return TarEntry(
                path=eh.path or "",
                typeflag=typeflag,
                mode=mode | fmt,
                uid=uid,
                gid=gid,
                size=size,
                mtime=mtime,
                mtime_nsec=mtime_nsec,
                link=eh.link,
                devmajor=devmajor,
                devminor=devminor,
                rdev=rdev,
                header_offset=header_offset,
                data_offset=data_offset,
                xattrs=eh.xattrs,
            )

    def _check_current(self, entry: TarEntry) -> None:
        if self._pos != entry.data_offset:
            raise TarError(f"data of {entry.path} is no longer available")

    def skip_data(self, entry: TarEntry) -> None:
        """Skip over the data of the entry just returned."""
        self._check_current(entry)
        self._skip(entry.size)

    def read_data(self, entry: TarEntry) -> bytes:
        """Return the data of the entry just returned."""
        self._check_current(entry)
        data = self._bread(entry.size)
        if len(data) != entry.size:
            raise TarError(f"truncated data of {entry.path}")
        return data

    def __iter__(self) -> Iterator[TarEntry]:
        while (entry := self.next_entry()) is not None:
            yield entry