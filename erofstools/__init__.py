"""Building blocks for EROFS image tooling: hashing, Huffman codes, tar parsing, device I/O and inode trees."""

__version__ = "0.1.0"