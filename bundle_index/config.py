"""
Indexing Configuration - Centralized settings for the bundle indexer.

Uses environment variables with sensible defaults. All paths are resolved
to absolute paths for reliability.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Set


MB = 1024 * 1024


@dataclass
class IndexerConfig:
    """
    Configuration for the indexing system.

    The cache lives in ~/.supportbundle-cache by default.
    Size thresholds and the extension allow-list are fixed defaults
    that callers may override per instance.
    """

    # --- Paths ---
    cache_dir: Path = field(default_factory=lambda: Path.home() / ".supportbundle-cache")
    index_path: Path = field(default_factory=lambda: Path.home() / ".supportbundle-index" / "bundle.leann")

    # --- Eligibility ---
    allowed_extensions: Set[str] = field(default_factory=lambda: {
        ".txt", ".json", ".log",
    })
    max_file_size: int = 100 * MB       # Larger files are skipped with a warning

    # --- Chunking ---
    large_file_threshold: int = 10 * MB  # Above this, use large_chunk_size
    chunk_size: int = 1000               # Characters per segment
    large_chunk_size: int = 2000
    chunk_overlap: int = 200             # Shared between adjacent segments

    # --- Embedding ---
    embedder_batch_size: int = 20       # Segments per embedding call
    model_name: str = "all-MiniLM-L6-v2"
    use_onnx: bool = True               # Use ONNX Runtime when installed

    def __post_init__(self):
        """Ensure all paths are absolute and extensions are normalised."""
        self.cache_dir = Path(self.cache_dir).expanduser().resolve()
        self.index_path = Path(self.index_path).expanduser().resolve()
        self.allowed_extensions = {
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in self.allowed_extensions
        }

    @classmethod
    def from_env(cls) -> "IndexerConfig":
        """
        Create config from environment variables.

        Supported env vars:
            INDEXER_CACHE_DIR: Directory holding the embedding cache
            INDEXER_INDEX_PATH: Path to LEANN index
            INDEXER_MODEL: Sentence-transformers model name
            INDEXER_BATCH_SIZE: Segments per embedding call
        """
        config = cls()

        if cache_dir := os.environ.get("INDEXER_CACHE_DIR"):
            config.cache_dir = Path(cache_dir)

        if index_path := os.environ.get("INDEXER_INDEX_PATH"):
            config.index_path = Path(index_path)

        if model := os.environ.get("INDEXER_MODEL"):
            config.model_name = model

        if batch_size := os.environ.get("INDEXER_BATCH_SIZE"):
            config.embedder_batch_size = int(batch_size)

        config.__post_init__()
        return config


# Singleton default config
_default_config: IndexerConfig | None = None


def get_config() -> IndexerConfig:
    """Get the default configuration (singleton)."""
    global _default_config
    if _default_config is None:
        _default_config = IndexerConfig.from_env()
    return _default_config


def set_config(config: IndexerConfig | None) -> None:
    """Override the default configuration (for testing)."""
    global _default_config
    _default_config = config
