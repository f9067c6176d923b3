import errno
import io
import stat
import tarfile

import pytest

from erofstools.iostream import IOStream
from erofstools.tarbuild import apply_entry, build_tree, remove_inode
from erofstools.tarheader import TarEntry, TarReader
from erofstools.tree import (
    WHITEOUT_DEV,
    FileType,
    Inode,
    TreeError,
    mkdir,
    new_encode_dev,
)


def _root():
    root = Inode(mode=stat.S_IFDIR | 0o755)
    root.parent = root
    root.init_empty_dir()
    return root


def _file(name, data=b"", **attrs):
    info = tarfile.TarInfo(name)
    info.size = len(data)
    for key, value in attrs.items():
        setattr(info, key, value)
    return info, data


def _special(name, kind, **attrs):
    info = tarfile.TarInfo(name)
    info.type = kind
    for key, value in attrs.items():
        setattr(info, key, value)
    return info, b""


def _build(members, aufs=False):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as tf:
        for info, data in members:
            tf.addfile(info, io.BytesIO(data) if data else None)
    buf.seek(0)
    root = _root()
    with IOStream(buf) as ios:
        result = build_tree(root, TarReader(ios), aufs)
    assert result is root
    return root


def _entry(path, typeflag, mode, size=0, link=None):
    return TarEntry(path=path, typeflag=typeflag, mode=mode, uid=0, gid=0,
                    size=size, mtime=0, link=link)


def test_regular_file_and_metadata():
    root = _build([_file("a.txt", b"hello", mode=0o640, uid=1000, mtime=1234)])
    d = root.find("a.txt")
    assert d.type is FileType.REG_FILE
    inode = d.inode
    assert inode.data == b"hello"
    assert inode.size == 5
    assert stat.S_ISREG(inode.mode)
    assert stat.S_IMODE(inode.mode) == 0o640
    assert inode.uid == 1000
    assert inode.mtime == 1234
    assert inode.nlink == 1
    assert inode.parent is root


def test_nested_file_before_directory():
    root = _build([
        _file("d/x.txt", b"data"),
        _special("d", tarfile.DIRTYPE, mode=0o700),
    ])
    d = root.find("d")
    assert d.type is FileType.DIR
    assert stat.S_IMODE(d.inode.mode) == 0o700
    assert d.inode.find("x.txt").inode.data == b"data"
    assert d.inode.nlink == 2


def test_symlink():
    root = _build([_special("ln", tarfile.SYMTYPE, linkname="a.txt")])
    inode = root.find("ln").inode
    assert stat.S_ISLNK(inode.mode)
    assert inode.link == "a.txt"
    assert inode.size == len("a.txt")
    assert inode.data is None


def test_hard_link_shares_inode():
    root = _build([
        _file("a.txt", b"shared"),
        _special("b.txt", tarfile.LNKTYPE, linkname="a.txt"),
    ])
    a = root.find("a.txt")
    b = root.find("b.txt")
    assert a.inode is b.inode
    assert b.type is FileType.REG_FILE
    assert a.inode.nlink == 2
    assert b.inode.data == b"shared"


def test_later_entry_replaces_file():
    root = _build([_file("f", b"one")])
    old = root.find("f").inode
    entry = _entry("f", "0", stat.S_IFREG | 0o644, size=3)
    inode = apply_entry(root, entry)
    assert inode is root.find("f").inode
    assert inode is not old
    assert old.nlink == 0
    assert [d.name for d in root.subdirs].count("f") == 1


def test_replacement_through_archive():
    root = _build([_file("f", b"one"), _file("f", b"two")])
    assert root.find("f").inode.data == b"two"


def test_character_device():
    root = _build([_special("null", tarfile.CHRTYPE, devmajor=1, devminor=3)])
    d = root.find("null")
    assert d.type is FileType.CHRDEV
    assert d.inode.rdev == new_encode_dev(1, 3)


def test_pax_xattrs_applied():
    info, data = _file("x.txt", b"v")
    info.pax_headers = {"SCHILY.xattr.user.k": "v"}
    root = _build([(info, data)])
    assert root.find("x.txt").inode.xattrs == {"user.k": b"v"}


def test_aufs_whiteout():
    root = _build([_file(".wh.foo")], aufs=True)
    d = root.find("foo")
    assert d.type is FileType.CHRDEV
    assert stat.S_ISCHR(d.inode.mode)
    assert d.inode.rdev == WHITEOUT_DEV
    assert root.whiteouts is True
    assert root.find(".wh.foo") is None


def test_aufs_opaque_directory():
    root = _build([
        _special("d", tarfile.DIRTYPE, mode=0o755),
        _file("d/.wh..wh..opq"),
    ], aufs=True)
    d = root.find("d")
    assert d.inode.opaque is True
    assert [x.name for x in d.inode.subdirs] == [".", ".."]


def test_remove_inode_recursive():
    root = _root()
    sub = mkdir(root, "sub")
    f = sub.inode.add_dentry("f")
    f.inode = Inode(mode=stat.S_IFREG | 0o644, nlink=1, parent=sub.inode)
    f.type = FileType.REG_FILE
    file_inode = f.inode

    remove_inode(sub.inode)
    assert sub.inode.nlink == 1
    assert file_inode.nlink == 0
    assert root.nlink == 1
    assert all(d.inode is None for d in sub.inode.subdirs)


def test_root_entry_updates_root():
    root = _root()
    result = apply_entry(root, _entry(".", "5", stat.S_IFDIR | 0o700))
    assert result is None
    assert root.mode == stat.S_IFDIR | 0o700
    assert root.nlink == 2


def test_root_entry_must_be_directory():
    root = _root()
    with pytest.raises(TreeError) as exc:
        apply_entry(root, _entry(".", "0", stat.S_IFREG | 0o644))
    assert exc.value.errno == errno.ENOTDIR


def test_hard_link_to_missing_target():
    root = _root()
    with pytest.raises(TreeError) as exc:
        apply_entry(root, _entry("x", "1", stat.S_IFREG | 0o644, link="missing"))
    assert exc.value.errno == errno.ENOENT


def test_hard_link_to_directory():
    root = _root()
    mkdir(root, "d")
    with pytest.raises(TreeError) as exc:
        apply_entry(root, _entry("x", "1", stat.S_IFREG | 0o644, link="d"))
    assert exc.value.errno == errno.EISDIR


def test_apply_entry_returns_inode_needing_data():
    root = _root()
    inode = apply_entry(root, _entry("f", "0", stat.S_IFREG | 0o644, size=5))
    assert inode is root.find("f").inode
    assert inode.size == 5
    assert apply_entry(root, _entry("e", "0", stat.S_IFREG | 0o644)) is None