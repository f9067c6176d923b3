[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "erofstools"
version = "0.1.0"
description = "Building blocks for EROFS image tooling: hashing, Huffman codes, tar parsing, device I/O and inode trees"
requires-python = ">=3.10"
dependencies = []
keywords = ["erofs", "filesystem", "tar", "huffman", "sha256", "image"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["erofstools"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
