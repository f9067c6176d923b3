"""In-memory directory tree of inodes and directory entries."""

from __future__ import annotations

import enum
import errno
import os
import re
import stat
from dataclasses import dataclass, field
from typing import Optional

NAME_LEN = 255
WHITEOUT_DEV = 0

AUFS_WH_PFX = ".wh."
AUFS_DIROPQ_NAME = AUFS_WH_PFX + ".opq"
AUFS_WH_DIROPQ = AUFS_WH_PFX + AUFS_DIROPQ_NAME

_COMPONENT = re.compile(r"([^/]+)(/?)")


class FileType(enum.IntEnum):
    """File type codes stored in directory entries."""

    UNKNOWN = 0
    REG_FILE = 1
    DIR = 2
    CHRDEV = 3
    BLKDEV = 4
    FIFO = 5
    SOCK = 6
    SYMLINK = 7


_FTYPE_BY_FMT = {
    stat.S_IFREG: FileType.REG_FILE,
    stat.S_IFDIR: FileType.DIR,
    stat.S_IFCHR: FileType.CHRDEV,
    stat.S_IFBLK: FileType.BLKDEV,
    stat.S_IFIFO: FileType.FIFO,
    stat.S_IFSOCK: FileType.SOCK,
    stat.S_IFLNK: FileType.SYMLINK,
}


def mode_to_ftype(mode: int) -> FileType:
    """Map the file-format bits of ``mode`` to a directory entry type."""
    return _FTYPE_BY_FMT.get(stat.S_IFMT(mode), FileType.UNKNOWN)


def new_encode_dev(major: int, minor: int) -> int:
    """Encode a device number in the 32-bit on-disk form."""
    return ((minor & 0xFF) | (major << 8) | ((minor & ~0xFF) << 12)) & 0xFFFFFFFF


class TreeError(OSError):
    """A path that cannot be placed into the tree."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message)


@dataclass(eq=False)
class Dentry:
    """A named link from a directory to an inode."""

    name: str
    inode: Optional["Inode"] = None
    type: FileType = FileType.UNKNOWN


@dataclass(eq=False)
class Inode:
    """A file, directory or special file of the tree being built."""

    mode: int = 0
    uid: int = 0
    gid: int = 0
    mtime: int = 0
    mtime_nsec: int = 0
    size: int = 0
    nlink: int = 0
    rdev: int = 0
    parent: Optional["Inode"] = field(default=None, repr=False)
    subdirs: list[Dentry] = field(default_factory=list, repr=False)
    srcpath: Optional[str] = None
    link: Optional[str] = None
    data: Optional[bytes] = field(default=None, repr=False)
    xattrs: dict[str, bytes] = field(default_factory=dict)
    opaque: bool = False
    whiteouts: bool = False

    def add_dentry(self, name: str) -> Dentry:
        """Append a new entry of unknown type to this directory."""
        dentry = Dentry(name[:NAME_LEN - 1])
        self.subdirs.append(dentry)
        return dentry

    def init_empty_dir(self) -> None:
        """Add the '.' and '..' entries and set the link count to 2."""
        dot = self.add_dentry(".")
        dot.inode = self
        dot.type = FileType.DIR
        dotdot = self.add_dentry("..")
        dotdot.inode = self.parent
        dotdot.type = FileType.DIR
        self.nlink = 2

    def find(self, name: str) -> Optional[Dentry]:
        """Return the first entry called ``name``, if any."""
        return next((d for d in self.subdirs if d.name == name), None)


def mkdir(parent: Inode, name: str) -> Dentry:
    """Create an empty directory ``name`` inside ``parent``."""
    getuid = getattr(os, "getuid", None)
    getgid = getattr(os, "getgid", None)
    inode = Inode(
        mode=stat.S_IFDIR | 0o755,
        parent=parent,
        uid=getuid() if getuid else 0,
        gid=getgid() if getgid else 0,
    )
    inode.init_empty_dir()
    dentry = parent.add_dentry(name)
    dentry.type = FileType.DIR
    dentry.inode = inode
    return dentry


def get_dentry(pwd: Inode, path: str, aufs: bool = False,
               to_head: bool = False) -> tuple[Optional[Dentry], bool, bool]:
    """Walk ``path`` from ``pwd``, creating missing directories.

    A missing last component gets a new entry of unknown type whose inode is
    the directory holding it.  Returns ``(dentry, whiteout, opaque)``; the
    dentry is None when the path names ``pwd`` itself.  With ``aufs``, aufs
    whiteout and opaque-directory markers in the last component are decoded.
    """
    dentry: Optional[Dentry] = None
    whiteout = opaque = False

    for m in _COMPONENT.finditer(path):
        name, slash = m.group(1), bool(m.group(2))
        if name == ".":
            pass
        elif name == "..":
            if pwd.parent is None:
                raise TreeError(errno.ENOENT, f"{path}: no parent directory")
            pwd = pwd.parent
        else:
            if aufs and not slash:
                if name == AUFS_WH_DIROPQ:
                    opaque = True
                    break
                if name.startswith(AUFS_WH_PFX):
                    name = name[len(AUFS_WH_PFX):]
                    whiteout = True

            found = pwd.find(name)
            if found is not None and found.type != FileType.DIR and slash:
                raise TreeError(errno.EIO, f"{path}: {name} is not a directory")
            inode = found.inode if found is not None else None

            if found is not None and inode is not None:
                dentry = found
                if to_head:
                    pwd.subdirs.remove(found)
                    pwd.subdirs.insert(0, found)
                pwd = inode
            elif not slash:
                dentry = pwd.add_dentry(name)
                dentry.type = FileType.UNKNOWN
                dentry.inode = pwd
            else:
                dentry = mkdir(pwd, name)
                pwd = dentry.inode
        if not slash:
            break
    return dentry, whiteout, opaque