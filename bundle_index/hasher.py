"""
Hasher - Stable cache keys and payload checksums using xxHash.

Cache keys are derived from a file's absolute path, never its content:
staleness is decided by modification time, so the key only has to be
stable across restarts and unique per path.
"""

import os
from pathlib import Path
from typing import Union

import xxhash


KEY_LENGTH = 32  # hex chars of a 128-bit digest


def cache_key(path: Union[str, Path]) -> str:
    """
    Derive the cache key for a file path.

    Uses XXH3-128 over the absolute path in its filesystem encoding,
    rendered as lower-case hex. Same path gives the same key in every
    process, including names that are not valid UTF-8.
    """
    absolute = os.fsencode(Path(path).absolute())
    return xxhash.xxh3_128_hexdigest(absolute)


def checksum(payload: bytes) -> bytes:
    """8-byte XXH64 digest used to detect corrupted cache payloads."""
    return xxhash.xxh64_digest(payload)
