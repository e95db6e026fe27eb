"""Tests for cloudbackup.core.hashing."""

import hashlib
import io
from pathlib import Path

from cloudbackup.core.hashing import StreamHasher, hash_file, hash_stream, hash_text


class TestHashText:
    def test_known_digests(self):
        assert hash_text("") == "d41d8cd98f00b204e9800998ecf8427e"
        assert hash_text("hello") == "5d41402abc4b2a76b9719d911017c592"

    def test_deterministic(self):
        assert hash_text("/home/user/docs") == hash_text("/home/user/docs")
        assert hash_text("/home/user/docs") != hash_text("/home/user/doc")


class TestHashStream:
    def test_matches_whole_buffer_digest(self):
        data = b"x" * 200_000 + b"tail"
        assert hash_stream(io.BytesIO(data), chunk_size=4096) == hashlib.md5(data).hexdigest()

    def test_empty_stream(self):
        assert hash_stream(io.BytesIO(b"")) == hash_text("")

    def test_hash_file(self, tmp_path: Path):
        f = tmp_path / "a.bin"
        f.write_bytes(b"\x00\x01\x02" * 1000)
        assert hash_file(f) == hashlib.md5(b"\x00\x01\x02" * 1000).hexdigest()


class TestStreamHasher:
    def test_incremental_equals_one_shot(self):
        h = StreamHasher()
        h.update(b"hello ")
        h.update(b"world")
        assert h.hexdigest() == hashlib.md5(b"hello world").hexdigest()
        assert h.size == 11

    def test_fresh_hasher_is_empty(self):
        h = StreamHasher()
        assert h.size == 0
        assert h.hexdigest() == hash_text("")
