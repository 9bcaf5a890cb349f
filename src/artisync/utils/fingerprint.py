"""
Content fingerprints for change detection.

MurmurHash3 x64 128-bit over the raw bytes. Fast and non-cryptographic:
fingerprints are only compared for equality, never trusted for integrity.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO

import mmh3

CHUNK_SIZE = 64 * 1024
FINGERPRINT_SEED = 0


def fingerprint(source: bytes | bytearray | memoryview | BinaryIO) -> bytes:
    """
    Calculate the 16-byte fingerprint of an in-memory buffer or a readable stream.

    Streams are consumed in chunks until EOF; read failures propagate as OSError.

    Args:
        source: Bytes-like object or binary file object

    Returns:
        128-bit digest as bytes
    """
    hasher = mmh3.mmh3_x64_128(seed=FINGERPRINT_SEED)
    if isinstance(source, (bytes, bytearray, memoryview)):
        hasher.update(bytes(source))
        return hasher.digest()

    for chunk in iter(lambda: source.read(CHUNK_SIZE), b""):
        hasher.update(chunk)
    return hasher.digest()


def fingerprint_file(file_path: str | Path) -> bytes:
    """Fingerprint a file on disk. Raises FileNotFoundError if it is missing."""
    with open(file_path, "rb") as f:
        return fingerprint(f)
