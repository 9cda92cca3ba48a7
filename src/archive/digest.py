# src/archive/digest.py - v1
"""Streaming digest helpers.

Bytes are consumed in fixed-size chunks so a multi-gigabyte member never
sits in memory: at most one ``chunk_size`` buffer is alive per stream.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import IO

DEFAULT_CHUNK_SIZE = 1 << 20


class HashingReader:
    """Wrap a binary stream and update a digest with every byte read."""

    def __init__(self, stream: IO[bytes], algorithm: str = "md5") -> None:
        self._stream = stream
        self._hash = hashlib.new(algorithm)
        self.bytes_read = 0

    def read(self, size: int = -1) -> bytes:
        data = self._stream.read(size)
        if data:
            self._hash.update(data)
            self.bytes_read += len(data)
        return data

    def drain(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        """Read to EOF, discarding the bytes."""
        while self.read(chunk_size):
            pass

    def hexdigest(self) -> str:
        return self._hash.hexdigest()


def digest_stream(
    stream: IO[bytes],
    algorithm: str = "md5",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> tuple[str, int]:
    """Digest a stream to EOF. Returns (hexdigest, bytes_read)."""
    reader = HashingReader(stream, algorithm)
    reader.drain(chunk_size)
    return reader.hexdigest(), reader.bytes_read


def file_digest(
    path: Path, algorithm: str = "md5", chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """Digest a file on disk."""
    with open(path, "rb") as f:
        digest, _ = digest_stream(f, algorithm, chunk_size)
    return digest


def normalize_digest(digest: str) -> str:
    return digest.strip().lower()


def digests_match(expected: str, computed: str) -> bool:
    """Case-insensitive comparison after whitespace stripping."""
    return normalize_digest(expected) == normalize_digest(computed)
