"""Block-addressed access to an image file or block device."""

from __future__ import annotations

import errno
import logging
import os
import stat
from typing import Optional

log = logging.getLogger(__name__)

INT64_MAX = (1 << 63) - 1
_COPY_CHUNK = 8192


class DeviceError(OSError):
    """An I/O failure on the target device."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message)


def _block_device_size(fd: int) -> int:
    try:
        return os.lseek(fd, 0, os.SEEK_END)
    except OSError as exc:
        raise DeviceError(exc.errno or errno.ENOTSUP,
                          "failed to get block device size") from exc


class Device:
    """The image being written plus any read-only blob devices."""

    def __init__(self, blksize: int = 4096, diskoffset: int = 0,
                 dry_run: bool = False) -> None:
        if blksize <= 0 or blksize & (blksize - 1):
            raise ValueError(f"invalid block size {blksize}")
        self.blksize = blksize
        self.diskoffset = diskoffset
        self.dry_run = dry_run
        self.devname: Optional[str] = None
        self.fd = -1
        self.devsz = 0
        self.devblksz = 0
        self.blobs: list[int] = []

    def open(self, path: str | os.PathLike[str]) -> None:
        """Open (creating or truncating) the target image for writing."""
        name = os.fspath(path)
        try:
            fd = os.open(name, os.O_RDWR | os.O_CREAT | getattr(os, "O_BINARY", 0), 0o644)
        except OSError:
            log.error("failed to open(%s).", name)
            raise
        try:
            st = os.fstat(fd)
            if stat.S_ISBLK(st.st_mode):
                size = _block_device_size(fd)
                self.devsz = size - size % self.blksize
            elif stat.S_ISREG(st.st_mode):
                if st.st_size:
                    os.ftruncate(fd, 0)
                # the limit of the kernel VFS
                self.devsz = INT64_MAX
                self.devblksz = st.st_blksize
            else:
                raise DeviceError(errno.EINVAL,
                                  f"bad file type ({name}, {st.st_mode:o})")
        except OSError:
            os.close(fd)
            raise
        self.devname = name
        self.fd = fd
        log.info("successfully to open %s", name)

    def open_ro(self, path: str | os.PathLike[str]) -> None:
        """Open an existing image read-only."""
        name = os.fspath(path)
        try:
            fd = os.open(name, os.O_RDONLY | getattr(os, "O_BINARY", 0))
        except OSError:
            log.error("failed to open(%s).", name)
            raise
        self.devname = name
        self.fd = fd
        self.devsz = INT64_MAX

    def close(self) -> None:
        """Close the target image."""
        if self.fd >= 0:
            os.close(self.fd)
        self.devname = None
        self.fd = -1
        self.devsz = 0

    def blob_open_ro(self, path: str | os.PathLike[str]) -> int:
        """Open a blob device read-only; return its device id (from 1)."""
        name = os.fspath(path)
        try:
            fd = os.open(name, os.O_RDONLY | getattr(os, "O_BINARY", 0))
        except OSError:
            log.error("failed to open(%s).", name)
            raise
        self.blobs.append(fd)
        log.info("successfully to open blob%u %s", len(self.blobs) - 1, name)
        return len(self.blobs)

    def blob_close_all(self) -> None:
        """Close every blob device."""
        for fd in self.blobs:
            os.close(fd)
        self.blobs.clear()

    def write(self, buf: bytes | bytearray | memoryview, offset: int) -> None:
        """Write ``buf`` at ``offset`` (relative to the disk offset)."""
        if self.dry_run:
            return
        if buf is None:
            raise DeviceError(errno.EINVAL, "buf is NULL")
        data = memoryview(buf).cast("B")
        length = len(data)
        offset += self.diskoffset
        if offset >= self.devsz or length > self.devsz or offset > self.devsz - length:
            raise DeviceError(
                errno.EINVAL,
                f"write position [{offset}, {length}] is beyond the end of "
                f"device ({self.devsz})",
            )
        try:
            written = os.pwrite(self.fd, data, offset)
        except OSError as exc:
            raise DeviceError(
                exc.errno or errno.EIO,
                f"failed to write data into device - {self.devname}:[{offset}, {length}]",
            ) from exc
        if written != length:
            raise DeviceError(
                errno.ERANGE,
                f"writing data into device - {self.devname}:[{offset}, {length}] "
                "was truncated",
            )

    def read(self, offset: int, length: int, device_id: int = 0) -> bytes:
        """Read ``length`` bytes; the part past the end of file reads as zeros."""
        if self.dry_run:
            return bytes(length)
        if device_id == 0:
            fd = self.fd
            offset += self.diskoffset
        else:
            if device_id < 0 or device_id > len(self.blobs):
                raise DeviceError(errno.ENODEV, f"invalid device id {device_id}")
            fd = self.blobs[device_id - 1]

        out = bytearray()
        while len(out) < length:
            want = length - len(out)
            try:
                chunk = os.pread(fd, want, offset)
            except OSError as exc:
                raise DeviceError(
                    exc.errno or errno.EIO,
                    f"failed to read data from device - {self.devname}:[{offset}, {want}]",
                ) from exc
            if not chunk:
                log.info("Reach EOF of device - %s:[%d, %d].", self.devname, offset, want)
                out += bytes(want)
                break
            out += chunk
            offset += len(chunk)
        return bytes(out)

    def fill_zero(self, offset: int, length: int, padding: bool = False) -> None:
        """Write ``length`` zero bytes at ``offset``."""
        if self.dry_run:
            return
        zero = bytes(self.blksize)
        while length > self.blksize:
            self.write(zero, offset)
            length -= self.blksize
            offset += self.blksize
        self.write(zero[:length], offset)

    def fsync(self) -> None:
        """Flush the target image to stable storage."""
        try:
            os.fsync(self.fd)
        except OSError as exc:
            raise DeviceError(errno.EIO, "could not fsync device") from exc

    def resize(self, blocks: int) -> None:
        """Set a regular-file image to exactly ``blocks`` blocks."""
        if self.dry_run or self.devsz != INT64_MAX:
            return
        size = os.fstat(self.fd).st_size
        length = blocks * self.blksize + self.diskoffset
        if size == length:
            return
        if size > length:
            os.ftruncate(self.fd, length)
            return
        grow = length - size
        fallocate = getattr(os, "posix_fallocate", None)
        if fallocate is not None:
            try:
                fallocate(self.fd, size, grow)
                return
            except OSError:
                pass
        self.fill_zero(size - self.diskoffset, grow, True)

    def blk_write(self, buf: bytes | bytearray | memoryview, blkaddr: int) -> None:
        """Write whole blocks starting at block ``blkaddr``."""
        self.write(buf, blkaddr * self.blksize)

    def blk_read(self, start: int, nblocks: int, device_id: int = 0) -> bytes:
        """Read ``nblocks`` blocks starting at block ``start``."""
        return self.read(start * self.blksize, nblocks * self.blksize, device_id)

    def __enter__(self) -> "Device":
        return self

    def __exit__(self, *args: object) -> None:
        self.blob_close_all()
        self.close()


def _copy_by_hand(fd_in: int, off_in: int, fd_out: int, off_out: int,
                  length: int) -> tuple[int, int, int]:
    copied = 0
    while length > 0:
        try:
            chunk = os.pread(fd_in, min(length, _COPY_CHUNK), off_in)
        except OSError:
            if copied:
                return copied, off_in, off_out
            raise
        if not chunk:
            break
        off_in += len(chunk)
        view = memoryview(chunk)
        written = 0
        while written < len(chunk):
            try:
                n = os.pwrite(fd_out, view[written:], off_out)
            except OSError:
                # rewind the input to what was actually written
                off_in -= len(chunk) - written
                if copied + written:
                    return copied + written, off_in, off_out
                raise
            written += n
            off_out += n
        copied += len(chunk)
        length -= len(chunk)
    return copied, off_in, off_out


def copy_file_range(fd_in: int, off_in: int, fd_out: int, off_out: int,
                    length: int) -> tuple[int, int, int]:
    """Copy bytes between file descriptors at explicit offsets.

    Returns ``(copied, new_off_in, new_off_out)``.
    """
    native = getattr(os, "copy_file_range", None)
    if native is not None:
        try:
            copied = native(fd_in, fd_out, length, off_in, off_out)
        except OSError as exc:
            if exc.errno not in (errno.ENOSYS, errno.EXDEV, errno.EINVAL,
                                 errno.EOPNOTSUPP):
                raise
        else:
            return copied, off_in + copied, off_out + copied
    return _copy_by_hand(fd_in, off_in, fd_out, off_out, length)