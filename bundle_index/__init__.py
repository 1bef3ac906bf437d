"""
Bundle Index - Embedding cache and indexer for support bundle text files.

Modules:
    - config: Centralized configuration
    - scanner: Directory traversal and eligibility filter
    - chunker: Overlapping text segments, sized by file tier
    - hasher: xxHash cache keys and checksums
    - cache: Versioned on-disk embedding cache
    - embedder: Batched embedding calls (sentence-transformers)
    - vector_store: In-memory and LEANN vector stores
    - indexer: Main entry point (cache hit → replay, miss → compute)

Flow:
    Scan → Filter → Cache lookup → (Chunk → Embed → Cache save) → Publish

Usage:
    from bundle_index import TextFileIndexer, InMemoryVectorStore
    from bundle_index.embedder import SentenceTransformerEmbedder

    indexer = TextFileIndexer(SentenceTransformerEmbedder(), InMemoryVectorStore())
    count = indexer.index_directory("/path/to/bundle")
"""

from .indexer import TextFileIndexer
from .vector_store import InMemoryVectorStore

__all__ = ["TextFileIndexer", "InMemoryVectorStore"]
