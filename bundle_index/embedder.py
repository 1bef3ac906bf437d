"""
Embedder - Batch text-to-vector embedding.

BatchEmbedder submits segments to an embedding service in fixed-size
batches. A failing batch is logged and skipped, so a file may come back
with fewer vectors than segments.

SentenceTransformerEmbedder is the default service: a local
sentence-transformers model with optional ONNX Runtime backend.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

import numpy as np

from .config import get_config, IndexerConfig
from .models import EmbeddedSegment, Segment


logger = logging.getLogger(__name__)


class EmbeddingService(Protocol):
    """Anything that turns a batch of texts into one vector per text."""

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        ...


class SentenceTransformerEmbedder:
    """
    Local embedding service backed by sentence-transformers.

    Features:
    - ONNX Runtime backend when installed (1.5-2x faster than PyTorch)
    - Lazy model loading
    - Normalized float32 vectors (better for cosine similarity)
    """

    def __init__(self, config: IndexerConfig | None = None):
        self.config = config or get_config()
        self._model = None
        self._dimension: int = 384  # Default for all-MiniLM-L6-v2
        self._onnx_loaded = False

    def _get_model(self):
        """Lazy-load the embedding model with ONNX support if available."""
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
                import torch
            except ImportError:
                logger.error("sentence-transformers not installed. Run: pip install sentence-transformers")
                raise

            # Determine device
            device = "cpu"
            if torch.backends.mps.is_available():
                device = "mps"
            elif torch.cuda.is_available():
                device = "cuda"

            # Try ONNX backend if enabled
            backend = "torch"
            if self.config.use_onnx:
                try:
                    import onnxruntime  # noqa: F401
                    backend = "onnx"
                except ImportError:
                    logger.warning(
                        "onnxruntime not installed. Using PyTorch. "
                        "Install with: pip install onnxruntime"
                    )

            logger.info(f"Loading {backend} embedding model {self.config.model_name} on {device}...")
            self._model = SentenceTransformer(
                self.config.model_name,
                device=device,
                backend=backend,
            )
            self._onnx_loaded = backend == "onnx"
            self._dimension = self._model.get_sentence_embedding_dimension()
            logger.info(f"Loaded model (dim={self._dimension}) on {device}")
        return self._model

    @property
    def dimension(self) -> int:
        """Get embedding dimension (loads model if needed)."""
        self._get_model()
        return self._dimension

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        """
        Embed one batch of texts.

        Returns:
            NumPy array of shape (len(texts), dimension)
        """
        if not texts:
            return np.empty((0, self._dimension), dtype=np.float32)

        model = self._get_model()
        embeddings = model.encode(
            list(texts),
            batch_size=len(texts),
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return np.asarray(embeddings, dtype=np.float32)


@dataclass
class BatchResult:
    """Vectors for the segments whose batch succeeded."""
    embedded: List[EmbeddedSegment] = field(default_factory=list)
    total_batches: int = 0
    failed_batches: int = 0

    @property
    def partial(self) -> bool:
        return 0 < self.failed_batches < self.total_batches


class BatchEmbedder:
    """Calls an embedding service once per fixed-size batch of segments."""

    def __init__(self, service: EmbeddingService, config: IndexerConfig | None = None):
        self.config = config or get_config()
        self.service = service
        self.batch_size = self.config.embedder_batch_size
        if self.batch_size < 1:
            raise ValueError(f"embedder_batch_size must be positive, got {self.batch_size}")

    def embed_segments(
        self,
        segments: Sequence[Segment],
        file_path: Optional[str] = None,
    ) -> BatchResult:
        """
        Embed segments batch by batch.

        The result pairs vectors with segments by position and keeps the
        input order. Segments of a failed batch are left out.
        """
        result = BatchResult()
        label = file_path or (segments[0].file_path if segments else "<none>")

        for start in range(0, len(segments), self.batch_size):
            batch = segments[start:start + self.batch_size]
            end = start + len(batch) - 1
            result.total_batches += 1

            try:
                vectors = np.asarray(self.service.embed([s.text for s in batch]), dtype=np.float32)
                if vectors.ndim != 2 or vectors.shape[0] != len(batch):
                    raise ValueError(
                        f"expected {len(batch)} vectors, got shape {vectors.shape}"
                    )
            except Exception as e:
                result.failed_batches += 1
                logger.error(
                    f"Failed to process batch {start}-{end} for file {label}: {e}",
                    exc_info=True,
                )
                continue

            for segment, vector in zip(batch, vectors):
                result.embedded.append(EmbeddedSegment(segment=segment, vector=vector))

            logger.debug(f"Processed batch {start}-{end} for file {label}")

        return result
