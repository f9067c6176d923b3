import errno
import stat

import pytest

from erofstools.tree import (
    AUFS_WH_DIROPQ,
    NAME_LEN,
    FileType,
    Inode,
    TreeError,
    get_dentry,
    mkdir,
    mode_to_ftype,
    new_encode_dev,
)


def _root():
    root = Inode(mode=stat.S_IFDIR | 0o755)
    root.parent = root
    root.init_empty_dir()
    return root


@pytest.mark.parametrize(
    "mode, ftype",
    [
        (stat.S_IFREG | 0o644, FileType.REG_FILE),
        (stat.S_IFDIR | 0o755, FileType.DIR),
        (stat.S_IFCHR, FileType.CHRDEV),
        (stat.S_IFBLK, FileType.BLKDEV),
        (stat.S_IFIFO, FileType.FIFO),
        (stat.S_IFSOCK, FileType.SOCK),
        (stat.S_IFLNK | 0o777, FileType.SYMLINK),
        (0o644, FileType.UNKNOWN),
    ],
)
def test_mode_to_ftype(mode, ftype):
    assert mode_to_ftype(mode) is ftype


def test_new_encode_dev_small_numbers():
    assert new_encode_dev(8, 1) == 0x801


def test_new_encode_dev_is_injective():
    majors = range(0, 4096, 512)
    minors = (0, 1, 255, 256, 4095, 0xFFFFF)
    codes = {new_encode_dev(a, b) for a in majors for b in minors}
    assert len(codes) == len(majors) * len(minors)


def test_init_empty_dir():
    root = _root()
    assert [d.name for d in root.subdirs] == [".", ".."]
    assert root.subdirs[0].inode is root
    assert root.subdirs[1].inode is root
    assert all(d.type is FileType.DIR for d in root.subdirs)
    assert root.nlink == 2


def test_add_dentry_appends_unknown_entry():
    root = _root()
    d = root.add_dentry("file")
    assert root.subdirs[-1] is d
    assert d.type is FileType.UNKNOWN
    assert d.inode is None


def test_add_dentry_truncates_long_names():
    root = _root()
    d = root.add_dentry("x" * 300)
    assert d.name == "x" * (NAME_LEN - 1)


def test_find():
    root = _root()
    d = root.add_dentry("a")
    assert root.find("a") is d
    assert root.find("b") is None


def test_mkdir():
    root = _root()
    d = mkdir(root, "sub")
    assert d.name == "sub"
    assert d.type is FileType.DIR
    assert d.inode.mode == stat.S_IFDIR | 0o755
    assert d.inode.parent is root
    assert [x.name for x in d.inode.subdirs] == [".", ".."]
    assert d.inode.subdirs[1].inode is root
    assert root.find("sub") is d


def test_get_dentry_creates_intermediate_dirs():
    root = _root()
    d, whiteout, opaque = get_dentry(root, "a/b/c")
    a = root.find("a")
    b = a.inode.find("b")
    assert a.type is FileType.DIR
    assert b.type is FileType.DIR
    assert d.name == "c"
    assert d.type is FileType.UNKNOWN
    assert d.inode is b.inode
    assert (whiteout, opaque) == (False, False)


def test_get_dentry_repeated_lookup_returns_same_entry():
    root = _root()
    first, _, _ = get_dentry(root, "a/b")
    second, _, _ = get_dentry(root, "a/b")
    assert first is second
    assert len(root.find("a").inode.subdirs) == 3


def test_get_dentry_dot_names_start_directory():
    root = _root()
    d, whiteout, opaque = get_dentry(root, ".")
    assert d is None
    assert (whiteout, opaque) == (False, False)


def test_get_dentry_collapses_slashes():
    root = _root()
    first, _, _ = get_dentry(root, "//a///b")
    second, _, _ = get_dentry(root, "a/b")
    assert first is second
    assert [d.name for d in root.subdirs] == [".", "..", "a"]


def test_get_dentry_dotdot():
    root = _root()
    d, _, _ = get_dentry(root, "a/../b")
    assert d.name == "b"
    assert d.inode is root
    assert root.find("b") is d


def test_get_dentry_to_head_moves_entry():
    root = _root()
    for name in ("x", "y"):
        root.add_dentry(name).inode = Inode(mode=stat.S_IFREG)
    d, _, _ = get_dentry(root, "y", to_head=True)
    assert root.subdirs[0] is d
    assert d.name == "y"


def test_get_dentry_aufs_whiteout():
    root = _root()
    d, whiteout, opaque = get_dentry(root, "dir/.wh.foo", aufs=True)
    assert d.name == "foo"
    assert whiteout is True
    assert opaque is False


def test_get_dentry_without_aufs_keeps_prefix():
    root = _root()
    d, whiteout, _ = get_dentry(root, ".wh.foo")
    assert d.name == ".wh.foo"
    assert whiteout is False


def test_get_dentry_aufs_opaque_marker():
    root = _root()
    d, whiteout, opaque = get_dentry(root, "dir/" + AUFS_WH_DIROPQ, aufs=True)
    assert opaque is True
    assert whiteout is False
    assert d.name == "dir"
    assert d.inode.find(AUFS_WH_DIROPQ) is None


def test_get_dentry_through_non_directory_fails():
    root = _root()
    f = root.add_dentry("f")
    f.type = FileType.REG_FILE
    f.inode = Inode(mode=stat.S_IFREG | 0o644)
    with pytest.raises(TreeError) as exc:
        get_dentry(root, "f/x")
    assert exc.value.errno == errno.EIO