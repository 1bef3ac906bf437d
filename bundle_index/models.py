"""
Data Models - Type definitions for the indexing pipeline.

These dataclasses represent the data flowing through the pipeline stages,
ensuring type safety and clear interfaces between modules.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

import numpy as np


@dataclass
class FileInfo:
    """
    Basic file information from the scanner.

    This is the lightest-weight representation, containing only
    what we get from stat() without reading file content.
    """
    path: Path
    name: str
    extension: str
    size: int
    mtime_ms: int

    @classmethod
    def from_stat(cls, path: Path, stat: os.stat_result) -> "FileInfo":
        """Create FileInfo from a path and stat result."""
        return cls(
            path=path,
            name=path.name,
            extension=path.suffix.lower(),
            size=stat.st_size,
            mtime_ms=stat.st_mtime_ns // 1_000_000,
        )

    @classmethod
    def from_path(cls, path: Path) -> "FileInfo":
        """Stat a path and wrap the result."""
        path = Path(path).absolute()
        return cls.from_stat(path, path.stat())


@dataclass(frozen=True)
class Segment:
    """
    A contiguous span of a source file's text.

    Unit of embedding and retrieval. Immutable once created.
    """
    text: str
    index: int
    file_path: str
    file_name: str
    file_size: int

    def metadata(self) -> Dict[str, str]:
        """Metadata published alongside the vector."""
        return {
            "file_path": self.file_path,
            "file_name": self.file_name,
            "file_size": str(self.file_size),
            "segment_index": str(self.index),
        }


@dataclass
class EmbeddedSegment:
    """A segment paired with its embedding vector."""
    segment: Segment
    vector: np.ndarray


@dataclass
class CachedSegment:
    """
    One persisted (text, metadata, vector) triple.

    Metadata is kept minimal: source path, file name and ordinal.
    """
    text: str
    metadata: Dict[str, str]
    vector: np.ndarray

    @classmethod
    def from_embedded(cls, embedded: EmbeddedSegment) -> "CachedSegment":
        segment = embedded.segment
        return cls(
            text=segment.text,
            metadata={
                "file_path": segment.file_path,
                "file_name": segment.file_name,
                "segment_index": str(segment.index),
            },
            vector=np.asarray(embedded.vector, dtype=np.float32),
        )


@dataclass
class CacheEntry:
    """The cached indexing result of one source file."""
    segments: List[CachedSegment] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.segments)

    def to_embedded(self, file_size: int) -> List[EmbeddedSegment]:
        """Rebuild segments and vectors for replay into a vector store."""
        embedded = []
        for cached in self.segments:
            meta = cached.metadata
            segment = Segment(
                text=cached.text,
                index=int(meta.get("segment_index", 0)),
                file_path=meta.get("file_path", ""),
                file_name=meta.get("file_name", ""),
                file_size=file_size,
            )
            embedded.append(EmbeddedSegment(segment=segment, vector=cached.vector))
        return embedded


@dataclass
class CacheStats:
    """Size of the on-disk cache."""
    file_count: int = 0
    total_bytes: int = 0

    def __iter__(self):
        # Allows `files, size = store.stats()`
        return iter((self.file_count, self.total_bytes))

    def __str__(self) -> str:
        return f"Cache: {self.file_count} files, {self.total_bytes / (1024 * 1024):.2f} MB"


@dataclass
class IndexingStats:
    """Statistics from an indexing run."""
    files_scanned: int = 0
    files_indexed: int = 0
    files_from_cache: int = 0
    files_skipped: int = 0
    files_partial: int = 0
    segments_added: int = 0
    errors: int = 0
    duration_seconds: float = 0.0

    def __str__(self) -> str:
        return (
            f"Indexed {self.files_indexed} files "
            f"({self.segments_added} segments, "
            f"{self.files_from_cache} from cache, "
            f"{self.files_partial} partial, "
            f"{self.files_skipped} skipped) "
            f"in {self.duration_seconds:.2f}s"
        )
