"""Content fingerprints: MD5 over strings, files and arbitrary byte streams."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import BinaryIO

CHUNK_SIZE = 64 * 1024


class StreamHasher:
    """Incremental fingerprint of a byte stream fed in chunks."""

    def __init__(self) -> None:
        self._md5 = hashlib.md5()
        self.size = 0

    def update(self, chunk: bytes) -> None:
        self._md5.update(chunk)
        self.size += len(chunk)

    def hexdigest(self) -> str:
        return self._md5.hexdigest()


def hash_stream(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> str:
    """Fingerprint a binary stream without reading it into memory at once."""
    hasher = StreamHasher()
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        hasher.update(chunk)
    return hasher.hexdigest()


def hash_file(path: Path) -> str:
    """Compute the fingerprint of a file's contents."""
    with open(path, "rb") as f:
        return hash_stream(f)


def hash_text(text: str) -> str:
    """Compute the fingerprint of a string (UTF-8 encoded)."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()
