"""
Cache Store - Persistent per-file embedding cache.

Layout of the cache directory:
    cache-index.txt     one "key=mtime_ms" line per cached source file
    <key>.cache         one entry file per source file

Entry file format (little-endian, version 1):
    header   4s magic "SBIC" | u16 version | u32 record count
    record   u32 length | UTF-8 JSON {"text", "metadata"}; undecodable
             filename bytes are kept via surrogateescape
             u32 dimension | dimension * f32 vector
    trailer  8-byte XXH64 digest of everything before it

Any failure to read or write cache files degrades to a cache miss. A
corrupted entry is deleted so the next run regenerates it.
"""

import json
import logging
import os
import struct
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from .config import get_config, IndexerConfig
from .errors import CacheCorruptError
from .hasher import cache_key, checksum
from .models import CacheEntry, CachedSegment, CacheStats, EmbeddedSegment, FileInfo


logger = logging.getLogger(__name__)


MAGIC = b"SBIC"
FORMAT_VERSION = 1
INDEX_FILE_NAME = "cache-index.txt"
CACHE_SUFFIX = ".cache"

_HEADER = struct.Struct("<4sHI")
_U32 = struct.Struct("<I")
_CHECKSUM_SIZE = 8
_VECTOR_DTYPE = np.dtype("<f4")


def encode_entry(entry: CacheEntry) -> bytes:
    """Serialize a CacheEntry to the versioned binary format."""
    parts = [_HEADER.pack(MAGIC, FORMAT_VERSION, len(entry.segments))]

    for cached in entry.segments:
        record = json.dumps(
            {"text": cached.text, "metadata": cached.metadata},
            ensure_ascii=False,
        ).encode("utf-8", errors="surrogateescape")
        vector = np.asarray(cached.vector, dtype=_VECTOR_DTYPE).ravel()

        parts.append(_U32.pack(len(record)))
        parts.append(record)
        parts.append(_U32.pack(vector.shape[0]))
        parts.append(vector.tobytes())

    body = b"".join(parts)
    return body + checksum(body)


def decode_entry(data: bytes) -> CacheEntry:
    """
    Deserialize a CacheEntry.

    Raises:
        CacheCorruptError: on wrong magic, unknown version, checksum
            mismatch, truncation or malformed records.
    """
    if len(data) < _HEADER.size + _CHECKSUM_SIZE:
        raise CacheCorruptError(f"Truncated cache entry ({len(data)} bytes)")

    body, digest = data[:-_CHECKSUM_SIZE], data[-_CHECKSUM_SIZE:]
    magic, version, count = _HEADER.unpack_from(body, 0)

    if magic != MAGIC:
        raise CacheCorruptError("Not a cache entry (bad magic)")
    if version != FORMAT_VERSION:
        raise CacheCorruptError(f"Unsupported cache format version {version}")
    if checksum(body) != digest:
        raise CacheCorruptError("Checksum mismatch")

    segments: List[CachedSegment] = []
    pos = _HEADER.size

    try:
        for _ in range(count):
            (length,) = _U32.unpack_from(body, pos)
            pos += _U32.size
            record = json.loads(body[pos:pos + length].decode("utf-8", errors="surrogateescape"))
            pos += length

            (dimension,) = _U32.unpack_from(body, pos)
            pos += _U32.size
            end = pos + dimension * _VECTOR_DTYPE.itemsize
            if end > len(body):
                raise CacheCorruptError("Vector runs past end of entry")
            vector = np.frombuffer(body, dtype=_VECTOR_DTYPE, count=dimension, offset=pos)
            pos = end

            segments.append(CachedSegment(
                text=str(record["text"]),
                metadata={str(k): str(v) for k, v in record["metadata"].items()},
                vector=vector.astype(np.float32),
            ))
    except (struct.error, ValueError, KeyError, TypeError, AttributeError) as e:
        raise CacheCorruptError(f"Malformed cache record: {e}") from e

    if pos != len(body):
        raise CacheCorruptError(f"{len(body) - pos} unexpected trailing bytes")

    return CacheEntry(segments=segments)


def _atomic_write(target: Path, data: bytes) -> None:
    """Write via a sibling temp file and rename over the target."""
    tmp = target.with_name(target.name + ".tmp")
    try:
        tmp.write_bytes(data)
        os.replace(tmp, target)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


class CacheStore:
    """
    Durable store of per-file indexing results.

    The in-memory ModTimeIndex mirrors cache-index.txt and is the
    authority for staleness: an entry is only used when the source
    file's current mtime matches the recorded one exactly.
    """

    def __init__(self, config: IndexerConfig | None = None, cache_dir: Optional[Path] = None):
        self.config = config or get_config()
        self.cache_dir = Path(cache_dir or self.config.cache_dir)
        self._mod_times: Dict[str, int] = {}

        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Failed to create cache directory {self.cache_dir}: {e}")

        self._load_index()

    @property
    def index_file(self) -> Path:
        return self.cache_dir / INDEX_FILE_NAME

    def entry_file(self, key: str) -> Path:
        return self.cache_dir / f"{key}{CACHE_SUFFIX}"

    def mod_times(self) -> Dict[str, int]:
        """Copy of the ModTimeIndex."""
        return dict(self._mod_times)

    # --- ModTimeIndex persistence ---

    def _load_index(self) -> None:
        """Load cache-index.txt, ignoring malformed lines."""
        if not self.index_file.exists():
            return

        try:
            lines = self.index_file.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to load cache index: {e}")
            self._mod_times.clear()
            return

        for line in lines:
            key, sep, value = line.strip().partition("=")
            if not sep or not key:
                continue
            try:
                self._mod_times[key] = int(value)
            except ValueError:
                logger.debug(f"Ignoring malformed cache index line: {line!r}")

        logger.info(f"Loaded cache index with {len(self._mod_times)} entries")

    def _save_index(self) -> bool:
        lines = "".join(f"{key}={mtime}\n" for key, mtime in sorted(self._mod_times.items()))
        try:
            _atomic_write(self.index_file, lines.encode("utf-8"))
            return True
        except OSError as e:
            logger.warning(f"Failed to save cache index: {e}")
            return False

    # --- Entries ---

    def _has_valid_header(self, entry_file: Path) -> bool:
        with open(entry_file, "rb") as f:
            header = f.read(_HEADER.size)
        if len(header) < _HEADER.size:
            return False
        magic, version, _ = _HEADER.unpack(header)
        return magic == MAGIC and version == FORMAT_VERSION

    def _discard(self, key: str) -> None:
        """Delete an entry file and its index record."""
        try:
            self.entry_file(key).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to delete cache file {self.entry_file(key)}: {e}")

        if self._mod_times.pop(key, None) is not None:
            self._save_index()

    def is_valid(self, path: Union[str, Path]) -> bool:
        """
        True when a usable cache entry exists for the file as it is now.

        Requires an exact mtime match with the index and an entry file
        whose header is readable. A bad header removes the entry.
        """
        key = cache_key(path)
        recorded = self._mod_times.get(key)
        if recorded is None:
            return False

        try:
            current = FileInfo.from_path(Path(path)).mtime_ms
        except OSError:
            return False
        if current != recorded:
            logger.debug(f"Cache stale for {path} (recorded {recorded}, current {current})")
            return False

        entry_file = self.entry_file(key)
        try:
            if self._has_valid_header(entry_file):
                return True
        except OSError as e:
            logger.debug(f"Cache entry unreadable for {path}: {e}")
            return False

        logger.warning(f"Discarding corrupted cache entry for {path}")
        self._discard(key)
        return False

    def load(self, path: Union[str, Path]) -> Optional[CacheEntry]:
        """
        Read the cache entry for a file.

        Returns None on a miss. Corrupted entries are deleted.
        """
        key = cache_key(path)
        entry_file = self.entry_file(key)

        try:
            data = entry_file.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Failed to read cache for {Path(path).name}: {e}")
            return None

        try:
            return decode_entry(data)
        except CacheCorruptError as e:
            logger.warning(f"Failed to load cache for {Path(path).name}: {e}")
            self._discard(key)
            return None

    def save(
        self,
        path: Union[str, Path],
        embedded: Sequence[EmbeddedSegment],
        mtime_ms: Optional[int] = None,
    ) -> bool:
        """
        Persist a file's segments and vectors, then record its mtime.

        Args:
            path: Source file
            embedded: Segment/vector pairs to store
            mtime_ms: Modification time observed before the file was read
                (stat'ed now when omitted)

        Returns:
            True if both the entry and the index were written
        """
        path = Path(path)
        key = cache_key(path)

        try:
            if mtime_ms is None:
                mtime_ms = FileInfo.from_path(path).mtime_ms
            entry = CacheEntry([CachedSegment.from_embedded(e) for e in embedded])
            _atomic_write(self.entry_file(key), encode_entry(entry))
        except (OSError, UnicodeError) as e:
            logger.warning(f"Failed to save cache for {path.name}: {e}")
            return False

        self._mod_times[key] = mtime_ms
        saved = self._save_index()
        logger.debug(f"Saved {len(entry)} segments to cache for {path.name}")
        return saved

    def forget(self, path: Union[str, Path]) -> None:
        """Drop the cached result for one file."""
        self._discard(cache_key(path))

    def _owned_files(self) -> List[Path]:
        """Entry files, leftover temp files and the index file."""
        patterns = (f"*{CACHE_SUFFIX}", f"*{CACHE_SUFFIX}.tmp", INDEX_FILE_NAME, f"{INDEX_FILE_NAME}.tmp")
        return [file for pattern in patterns for file in self.cache_dir.glob(pattern) if file.is_file()]

    def clear(self) -> None:
        """Delete the cache files in the cache directory and reset the index."""
        if self.cache_dir.exists():
            for file in self._owned_files():
                try:
                    file.unlink()
                except OSError as e:
                    logger.warning(f"Failed to delete cache file {file}: {e}")

        self._mod_times.clear()
        logger.info("Cache cleared")

    def stats(self) -> CacheStats:
        """Count cache entry files and their total size."""
        stats = CacheStats()
        if not self.cache_dir.exists():
            return stats

        for file in self.cache_dir.glob(f"*{CACHE_SUFFIX}"):
            try:
                if file.is_file():
                    stats.total_bytes += file.stat().st_size
                    stats.file_count += 1
            except OSError as e:
                logger.warning(f"Failed to stat cache file {file}: {e}")

        return stats

    def segment_count(self) -> int:
        """Total segments recorded across indexed entries, read from headers."""
        total = 0
        for key in self._mod_times:
            try:
                with open(self.entry_file(key), "rb") as f:
                    header = f.read(_HEADER.size)
            except OSError:
                continue
            if len(header) < _HEADER.size:
                continue
            magic, version, count = _HEADER.unpack(header)
            if magic == MAGIC and version == FORMAT_VERSION:
                total += count
        return total
