"""
Indexer - Main entry point for indexing a support bundle.

Per eligible file:
- Cache hit: replay stored segments and vectors into the vector store
- Cache miss: chunk, batch-embed, publish, then persist to the cache

Only an invalid target directory aborts a run. Every per-file failure is
logged and the file is skipped.
"""

import logging
import threading
import time
from pathlib import Path
from typing import List, Optional, Set, Union

from .cache import CacheStore
from .chunker import Chunker
from .config import get_config, IndexerConfig
from .embedder import BatchEmbedder, EmbeddingService
from .errors import (
    EmbeddingError, ErrorAction, InvalidDirectoryError, ProcessingResult, handle_error
)
from .models import CacheStats, EmbeddedSegment, FileInfo, IndexingStats
from .scanner import Scanner
from .vector_store import StoredSegment, VectorStore


logger = logging.getLogger(__name__)


class TextFileIndexer:
    """
    Indexes text files into a vector store through the embedding cache.

    Counters are cumulative over the lifetime of the indexer and are
    guarded by a lock; each run also returns its own IndexingStats.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: VectorStore,
        config: Optional[IndexerConfig] = None,
        cache: Optional[CacheStore] = None,
    ):
        self.config = config or get_config()
        self.vector_store = vector_store

        self._scanner = Scanner(self.config)
        self._chunker = Chunker(self.config)
        self._embedder = BatchEmbedder(embedding_service, self.config)
        self._cache = cache or CacheStore(self.config)

        self._lock = threading.Lock()
        self._indexed_file_count = 0
        self._total_segment_count = 0
        self._indexed_files: Set[str] = set()

    @property
    def cache(self) -> CacheStore:
        return self._cache

    # --- Runs ---

    def run(self, directory: Union[str, Path]) -> IndexingStats:
        """
        Index every eligible file below a directory.

        Raises:
            InvalidDirectoryError: if the path is missing or not a directory
        """
        directory = Path(directory).expanduser().absolute()
        try:
            self._validate(directory)
        except InvalidDirectoryError as e:
            if handle_error(e, context="index_directory") is ErrorAction.ABORT:
                raise
            return IndexingStats()

        start_time = time.monotonic()
        stats = IndexingStats()
        logger.info(f"Indexing text files from: {directory}")

        for info in self._scanner.iter_files(directory):
            stats.files_scanned += 1
            result = self._process(info)

            if not result.success:
                stats.files_skipped += 1
                stats.errors += 1
                continue

            stats.files_indexed += 1
            stats.segments_added += result.segments
            if result.from_cache:
                stats.files_from_cache += 1
            if result.partial:
                stats.files_partial += 1

        stats.duration_seconds = time.monotonic() - start_time
        logger.info(f"Directory run complete: {stats}")
        return stats

    @staticmethod
    def _validate(directory: Path) -> None:
        if not directory.exists():
            raise InvalidDirectoryError(directory, "Directory does not exist")
        if not directory.is_dir():
            raise InvalidDirectoryError(directory, "Path is not a directory")

    def index_directory(self, directory: Union[str, Path]) -> int:
        """Index a directory; returns the number of files processed."""
        return self.run(directory).files_indexed

    def index_file(self, path: Union[str, Path]) -> bool:
        """
        Index a single file, bypassing the eligibility filter.

        Returns:
            True if the file ended up in the vector store
        """
        path = Path(path).expanduser().absolute()
        try:
            info = FileInfo.from_path(path)
        except OSError as e:
            handle_error(e, path, "index_file")
            return False
        return self._process(info).success

    # --- Per-file pipeline ---

    def _process(self, info: FileInfo) -> ProcessingResult:
        """Run one file through replay or compute, absorbing failures."""
        try:
            if self._cache.is_valid(info.path):
                replayed = self._replay(info)
                if replayed is not None:
                    return ProcessingResult.ok(info.path, replayed, from_cache=True)
            return self._compute(info)

        except Exception as e:
            handle_error(e, info.path, "index_file")
            return ProcessingResult.failed(info.path, e)

    def _replay(self, info: FileInfo) -> Optional[int]:
        """Publish a cached entry; None when the entry turned out unusable."""
        entry = self._cache.load(info.path)
        if entry is None:
            return None

        embedded = entry.to_embedded(info.size)
        self._publish(embedded)
        self._mark_indexed(info)
        logger.info(f"Loaded cached embeddings for: {info.name}")
        return len(embedded)

    def _compute(self, info: FileInfo) -> ProcessingResult:
        logger.info(f"Indexing text file: {info.path}")

        text = info.path.read_text(encoding="utf-8", errors="replace")
        segments = self._chunker.chunk_file(info, text)

        result = self._embedder.embed_segments(segments, str(info.path))
        if segments and not result.embedded:
            self._cache.forget(info.path)
            raise EmbeddingError(
                f"all {result.total_batches} embedding batches failed"
            )

        if result.partial:
            logger.warning(
                f"Partially indexed {info.name}: {len(result.embedded)}/{len(segments)} "
                f"segments embedded ({result.failed_batches} batches failed)"
            )

        self._publish(result.embedded)
        self._cache.save(info.path, result.embedded, mtime_ms=info.mtime_ms)
        self._mark_indexed(info)

        return ProcessingResult.ok(
            info.path,
            len(result.embedded),
            partial=result.partial,
        )

    def _publish(self, embedded: List[EmbeddedSegment]) -> None:
        for item in embedded:
            segment = item.segment
            self.vector_store.add(
                item.vector,
                StoredSegment(text=segment.text, metadata=segment.metadata()),
            )
            with self._lock:
                self._total_segment_count += 1

    def _mark_indexed(self, info: FileInfo) -> None:
        with self._lock:
            self._indexed_file_count += 1
            self._indexed_files.add(str(info.path))

    # --- Cache and status ---

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self) -> CacheStats:
        return self._cache.stats()

    def indexed_file_count(self) -> int:
        with self._lock:
            return self._indexed_file_count

    def total_segment_count(self) -> int:
        with self._lock:
            return self._total_segment_count

    def indexed_file_paths(self) -> Set[str]:
        with self._lock:
            return set(self._indexed_files)
