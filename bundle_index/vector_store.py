"""
Vector Store - Destinations for (vector, segment) pairs.

The indexer only ever calls add(); ownership of the data passes to the
store at that point. Two stores are provided:

    InMemoryVectorStore   numpy-backed list with cosine search
    LeannVectorStore      buffers into a LEANN builder, then writes an index
"""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

import numpy as np

from .config import get_config, IndexerConfig


logger = logging.getLogger(__name__)


@dataclass
class StoredSegment:
    """Segment text with its metadata, as held by a vector store."""
    text: str
    metadata: Dict[str, str] = field(default_factory=dict)


class VectorStore(Protocol):
    """Append-only sink for embeddings."""

    def add(self, vector: np.ndarray, segment: StoredSegment) -> None:
        ...


class InMemoryVectorStore:
    """
    Process-local vector store.

    Safe for add() from multiple threads. Search is brute-force cosine
    similarity, fine for the size of a single support bundle.
    """

    def __init__(self):
        self._vectors: List[np.ndarray] = []
        self._segments: List[StoredSegment] = []
        self._lock = threading.Lock()

    def add(self, vector: np.ndarray, segment: StoredSegment) -> None:
        with self._lock:
            self._vectors.append(np.asarray(vector, dtype=np.float32))
            self._segments.append(segment)

    def __len__(self) -> int:
        return len(self._segments)

    def segments(self) -> List[StoredSegment]:
        return list(self._segments)

    def texts(self) -> List[str]:
        return [s.text for s in self._segments]

    def search(
        self,
        query: np.ndarray,
        max_results: int = 5,
        min_score: float = 0.6,
    ) -> List[Tuple[float, StoredSegment]]:
        """Return up to max_results (score, segment) pairs, best first."""
        if not self._vectors:
            return []

        matrix = np.vstack(self._vectors)
        query = np.asarray(query, dtype=np.float32)

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        norms[norms == 0] = 1.0
        scores = (matrix @ query) / norms

        order = np.argsort(-scores, kind="stable")
        results = []
        for i in order[:max_results]:
            if scores[i] < min_score:
                break
            results.append((float(scores[i]), self._segments[i]))
        return results


class LeannVectorStore:
    """
    Vector store that feeds a LEANN HNSW index.

    Vectors are buffered in the builder until build() writes the index.
    """

    def __init__(self, config: IndexerConfig | None = None):
        self.config = config or get_config()
        self._builder = None
        self._count = 0

    def _get_builder(self):
        if self._builder is None:
            try:
                from leann import LeannBuilder
            except ImportError:
                logger.error("leann not installed. Run: pip install leann")
                raise
            self._builder = LeannBuilder(backend_name="hnsw")
        return self._builder

    def open(self) -> "LeannVectorStore":
        """Create the builder now, so a missing leann install fails before a run."""
        self._get_builder()
        return self

    def add(self, vector: np.ndarray, segment: StoredSegment) -> None:
        builder = self._get_builder()
        metadata = dict(segment.metadata)
        metadata["text"] = segment.text  # Full text for RAG
        builder.add_vector(np.asarray(vector, dtype=np.float32), metadata=metadata)
        self._count += 1

    def __len__(self) -> int:
        return self._count

    def build(self, index_path: Optional[Path] = None) -> str:
        """
        Write the LEANN index.

        Returns:
            Path to the created index
        """
        index_path = Path(index_path or self.config.index_path)
        index_path.parent.mkdir(parents=True, exist_ok=True)

        builder = self._get_builder()
        builder.build_index(str(index_path))

        logger.info(f"Built LEANN index: {self._count} segments → {index_path}")
        return str(index_path)
