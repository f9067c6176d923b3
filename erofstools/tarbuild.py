"""Building an inode tree from the members of a tar archive."""

from __future__ import annotations

import errno
import stat
from typing import Optional

from .tarheader import TarEntry, TarReader
from .tree import (
    WHITEOUT_DEV,
    FileType,
    Inode,
    TreeError,
    get_dentry,
    mode_to_ftype,
    new_encode_dev,
)


def remove_inode(inode: Inode) -> None:
    """Drop one link to ``inode``; for a directory, drop its whole subtree."""
    inode.nlink -= 1
    if not stat.S_ISDIR(inode.mode):
        return
    for dentry in inode.subdirs:
        if dentry.inode is not None and dentry.name not in (".", ".."):
            remove_inode(dentry.inode)
        dentry.inode = None
    if inode.parent is not None:
        inode.parent.nlink -= 1


def _hard_link(root: Inode, dentry, entry: TarEntry, aufs: bool) -> None:
    if stat.S_ISDIR(entry.mode):
        raise TreeError(errno.EISDIR, f"{entry.path}: hard link to a directory")
    if dentry.type != FileType.UNKNOWN and dentry.inode is not None:
        remove_inode(dentry.inode)
    dentry.inode = None

    target, _, _ = get_dentry(root, entry.link or "", aufs, False)
    if target is None or target.type == FileType.UNKNOWN:
        raise TreeError(errno.ENOENT, f"{entry.path}: link target {entry.link} not found")
    if stat.S_ISDIR(target.inode.mode):
        raise TreeError(errno.EISDIR, f"{entry.path}: hard link to a directory")
    dentry.inode = target.inode
    dentry.type = target.type
    target.inode.nlink += 1


def apply_entry(root: Inode, entry: TarEntry, aufs: bool = False) -> Optional[Inode]:
    """Place one archive member into the tree rooted at ``root``.

    Returns the inode that the member's data belongs to, or None when the
    member carries no file data to store.
    """
    dentry, whiteout, opaque = get_dentry(root, entry.path, aufs, True)

    if dentry is None:
        # some archives hold '.', which names the root directory
        if not stat.S_ISDIR(entry.mode):
            raise TreeError(errno.ENOTDIR, f"{entry.path}: root must be a directory")
        inode = root
    elif opaque:
        dentry.inode.opaque = True
        return None
    elif entry.typeflag == "1":
        _hard_link(root, dentry, entry, aufs)
        return None
    elif (dentry.type != FileType.UNKNOWN and dentry.type == FileType.DIR
          and stat.S_ISDIR(entry.mode)):
        inode = dentry.inode
    else:
        if dentry.type != FileType.UNKNOWN:
            old = dentry.inode
            parent = old.parent if old is not None else None
            if old is not None:
                remove_inode(old)
            dentry.inode = parent
        inode = Inode(parent=dentry.inode)
        dentry.inode = inode
        dentry.type = mode_to_ftype(entry.mode)

    if whiteout:
        inode.mode = (inode.mode & ~stat.S_IFMT(inode.mode)) | stat.S_IFCHR
        inode.rdev = WHITEOUT_DEV
        dentry.type = FileType.CHRDEV
        # mark the parent as copied-up so whiteouts are not exposed
        inode.parent.whiteouts = True
    else:
        inode.mode = entry.mode
        if stat.S_ISBLK(entry.mode) or stat.S_ISCHR(entry.mode):
            inode.rdev = new_encode_dev(entry.devmajor, entry.devminor)

    inode.srcpath = entry.path
    inode.uid = entry.uid
    inode.gid = entry.gid
    inode.mtime = entry.mtime
    inode.mtime_nsec = entry.mtime_nsec
    inode.size = entry.size

    needs_data: Optional[Inode] = None
    if not stat.S_ISDIR(inode.mode):
        if stat.S_ISLNK(inode.mode):
            inode.link = entry.link or ""
            inode.size = len(inode.link.encode("utf-8", "surrogateescape"))
        elif inode.size:
            needs_data = inode
        inode.nlink += 1
    elif not inode.nlink:
        inode.init_empty_dir()

    for name, value in entry.xattrs:
        inode.xattrs[name] = value
    return needs_data


def build_tree(root: Inode, reader: TarReader, aufs: bool = False) -> Inode:
    """Add every member read by ``reader`` to the tree rooted at ``root``."""
    for entry in reader:
        inode = apply_entry(root, entry, aufs)
        if inode is not None:
            inode.data = reader.read_data(entry)
    return root