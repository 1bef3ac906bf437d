"""
Test Configuration - Shared fixtures for indexing tests.

Uses pytest fixtures to create isolated test environments. The embedding
model is replaced by a deterministic fake so tests never load weights.
"""

import os
import shutil
import tempfile
import zlib
from pathlib import Path
from typing import Generator, List, Sequence, Set

import numpy as np
import pytest

from bundle_index.config import IndexerConfig, set_config
from bundle_index.indexer import TextFileIndexer
from bundle_index.vector_store import InMemoryVectorStore


DIMENSION = 8


class FakeEmbeddingService:
    """
    Deterministic stand-in for the embedding model.

    Vectors are seeded from the text, so identical texts always embed the
    same. Calls listed in fail_on_calls (1-based) raise instead.
    """

    def __init__(self, fail_on_calls: Set[int] | None = None, fail_always: bool = False):
        self.calls: List[List[str]] = []
        self.fail_on_calls = fail_on_calls or set()
        self.fail_always = fail_always

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        self.calls.append(list(texts))
        if self.fail_always or self.call_count in self.fail_on_calls:
            raise ConnectionError("embedding service unavailable")
        return np.vstack([self.vector_for(t) for t in texts])

    @staticmethod
    def vector_for(text: str) -> np.ndarray:
        rng = np.random.default_rng(zlib.crc32(text.encode("utf-8")))
        return rng.standard_normal(DIMENSION).astype(np.float32)


def bump_mtime(path: Path, seconds: float = 2.0) -> None:
    """Move a file's mtime forward so staleness checks see a change."""
    st = path.stat()
    new_ns = st.st_mtime_ns + int(seconds * 1_000_000_000)
    os.utime(path, ns=(st.st_atime_ns, new_ns))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    tmp = tempfile.mkdtemp(prefix="bundle_index_test_")
    # Resolve to handle macOS /var -> /private/var symlink
    resolved = Path(tmp).resolve()
    yield resolved
    shutil.rmtree(str(resolved), ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> Generator[IndexerConfig, None, None]:
    """Create an isolated test configuration with small sizes."""
    config = IndexerConfig(
        cache_dir=temp_dir / "cache",
        index_path=temp_dir / "index" / "test.leann",
        max_file_size=50_000,
        large_file_threshold=2_000,
        chunk_size=100,
        large_chunk_size=300,
        chunk_overlap=20,
        embedder_batch_size=4,
        use_onnx=False,
    )
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def bundle_dir(temp_dir: Path) -> Path:
    """Directory holding the support bundle under test."""
    bundle = temp_dir / "bundle"
    bundle.mkdir()
    return bundle


@pytest.fixture
def sample_files(bundle_dir: Path) -> dict[str, Path]:
    """Create a small support bundle."""
    files = {}

    log = bundle_dir / "logs" / "puppetserver.log"
    log.parent.mkdir(parents=True)
    log.write_text(
        "".join(f"2024-01-0{i % 9 + 1} INFO [main] request {i} handled\n" for i in range(20))
    )
    files["log"] = log

    metrics = bundle_dir / "metrics.json"
    metrics.write_text('{"jruby": {"borrowed": 3, "free": 1}, "status": "running"}')
    files["json"] = metrics

    notes = bundle_dir / "NOTES.TXT"
    notes.write_text("Collected from primary server.")
    files["txt"] = notes

    nested = bundle_dir / "enterprise" / "state" / "services.log"
    nested.parent.mkdir(parents=True)
    nested.write_text("pe-puppetserver running\npe-postgresql running\n")
    files["nested"] = nested

    # Ineligible files
    pdf = bundle_dir / "report.pdf"
    pdf.write_bytes(b"%PDF-1.4 not really a pdf")
    files["pdf"] = pdf

    empty = bundle_dir / "empty.log"
    empty.write_text("")
    files["empty"] = empty

    return files


@pytest.fixture
def embedding_service() -> FakeEmbeddingService:
    return FakeEmbeddingService()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def indexer(test_config, embedding_service, vector_store) -> TextFileIndexer:
    return TextFileIndexer(embedding_service, vector_store, test_config)
