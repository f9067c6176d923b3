# erofstools

A pure-Python library with pieces used when reading and assembling EROFS
filesystem images. It needs nothing outside the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## What is inside

| Module | Purpose |
| --- | --- |
| `erofstools.strhash` | FNV-1 32-bit hashes (`strhash`, `strihash`, `memhash`, `memihash`), a chained `HashMap` of `HashMapEntry` objects that grows and shrinks, and `memintern` for interning byte strings |
| `erofstools.rolling_hash` | Rolling hash helpers: `rolling_hash_init`, `rolling_hash_advance`, `rolling_hash_calc_rm` |
| `erofstools.sha256` | An incremental `Sha256` object (`update`, `digest`) and a one-shot `sha256()` function |
| `erofstools.uuidutil` | `uuid_generate`, `uuid_parse` and `uuid_unparse_lower` for 16-byte UUIDs |
| `erofstools.huffman` | Length-limited canonical Huffman codes for deflate: `huffman_generate`, `gen_huff_codes`, `reverse_bits`, `heap_sort`, plus the fixed deflate code tables |
| `erofstools.iostream` | `IOStream`, a buffered reader over plain, gzip or xz/lzma input (`Decoder`), and `read_fully` |
| `erofstools.tarheader` | The tar parser: ustar, GNU and pax headers, `PaxHeader`, `XattrList`, `parse_pax_header`, and `TarReader` yielding `TarEntry` objects |
| `erofstools.device` | `Device`, block-addressed image I/O with extra read-only blob devices, and `copy_file_range` |
| `erofstools.tree` | The in-memory inode tree: `Inode`, `Dentry`, `FileType`, `mkdir`, `get_dentry`, `mode_to_ftype`, `new_encode_dev` |
| `erofstools.tarbuild` | Turns tar members into an inode tree: `apply_entry`, `build_tree`, `remove_inode` |

## Examples

Hashing:

```python
from erofstools.sha256 import sha256
from erofstools.strhash import strhash

sha256(b"abc").hex()
# 'ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad'
strhash("hello")
```

Building a Huffman code from symbol frequencies:

```python
from erofstools.huffman import huffman_generate

codes, lens = huffman_generate([5, 1, 0, 3], 15)
```

Reading a tar archive into an inode tree:

```python
from erofstools.iostream import Decoder, IOStream
from erofstools.tarheader import TarReader
from erofstools.tree import Inode
from erofstools.tarbuild import build_tree

with open("layer.tar.gz", "rb") as f, IOStream(f, Decoder.GZIP) as ios:
    root = Inode(mode=0o040755)
    root.init_empty_dir()
    build_tree(root, TarReader(ios), False)
```

`build_tree` stores the data of each regular file in `Inode.data`; hard
links share one inode, aufs whiteouts become character devices and opaque
markers set `Inode.opaque`.

Writing to an image:

```python
from erofstools.device import Device

with Device(4096) as dev:
    dev.open("out.img")
    dev.blk_write(bytes(4096), 0)
    dev.resize(1)
```

Errors are raised as exceptions: `TarError` for malformed archives,
`DeviceError` for image I/O problems and `TreeError` for impossible tree
operations.

## What this package does not do

- It has no command-line tool; everything is used as a library.
- It does not compress data. `erofstools.huffman` builds the code tables
  a deflate encoder needs, but no encoder is included.
- It does not lay out or write a complete filesystem image: there is no
  superblock, inode or directory block serialisation. The inode tree built by
  `erofstools.tarbuild` stays in memory.
- It has no worker pool; all work runs in the calling thread.