"""
Embedder Tests - Verify batching and per-batch failure handling.

Tests:
- Fixed-size batches, one service call each
- Vectors paired with segments by position
- Failed batches skipped, later batches still processed
- SentenceTransformerEmbedder adapter (model mocked)
"""

import logging
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from bundle_index.embedder import BatchEmbedder, SentenceTransformerEmbedder
from bundle_index.models import Segment

from conftest import DIMENSION, FakeEmbeddingService


def _segments(count):
    return [
        Segment(text=f"segment {i}", index=i, file_path="/b/app.log", file_name="app.log", file_size=100)
        for i in range(count)
    ]


class TestBatchEmbedder:
    """Tests for the BatchEmbedder class."""

    def test_one_call_per_batch(self, test_config):
        service = FakeEmbeddingService()
        result = BatchEmbedder(service, test_config).embed_segments(_segments(10))

        assert service.call_count == 3  # batch size 4: 4 + 4 + 2
        assert [len(c) for c in service.calls] == [4, 4, 2]
        assert result.total_batches == 3
        assert result.failed_batches == 0
        assert not result.partial

    def test_vectors_pair_with_segments_in_order(self, test_config):
        segments = _segments(6)
        result = BatchEmbedder(FakeEmbeddingService(), test_config).embed_segments(segments)

        assert [e.segment for e in result.embedded] == segments
        for item in result.embedded:
            np.testing.assert_array_equal(item.vector, FakeEmbeddingService.vector_for(item.segment.text))
            assert item.vector.shape == (DIMENSION,)

    def test_failed_batch_is_skipped(self, test_config, caplog):
        """Second batch fails: its segments are dropped, the third still runs."""
        service = FakeEmbeddingService(fail_on_calls={2})

        with caplog.at_level(logging.ERROR, logger="bundle_index.embedder"):
            result = BatchEmbedder(service, test_config).embed_segments(_segments(10))

        assert service.call_count == 3
        assert [e.segment.index for e in result.embedded] == [0, 1, 2, 3, 8, 9]
        assert result.failed_batches == 1
        assert result.partial
        assert "Failed to process batch 4-7 for file /b/app.log" in caplog.text

    def test_all_batches_failing(self, test_config):
        service = FakeEmbeddingService(fail_always=True)
        result = BatchEmbedder(service, test_config).embed_segments(_segments(5))

        assert result.embedded == []
        assert result.failed_batches == result.total_batches == 2
        assert not result.partial

    def test_wrong_vector_count_counts_as_failure(self, test_config):
        service = MagicMock()
        service.embed.return_value = np.zeros((1, DIMENSION), dtype=np.float32)

        result = BatchEmbedder(service, test_config).embed_segments(_segments(3))

        assert result.embedded == []
        assert result.failed_batches == 1

    def test_no_segments_no_calls(self, test_config):
        service = FakeEmbeddingService()
        result = BatchEmbedder(service, test_config).embed_segments([])

        assert service.call_count == 0
        assert result.total_batches == 0

    def test_default_batch_size_is_twenty(self, temp_dir):
        from bundle_index.config import IndexerConfig

        config = IndexerConfig(cache_dir=temp_dir / "cache")
        service = FakeEmbeddingService()
        BatchEmbedder(service, config).embed_segments(_segments(45))

        assert [len(c) for c in service.calls] == [20, 20, 5]

    def test_rejects_non_positive_batch_size(self, test_config):
        test_config.embedder_batch_size = 0
        with pytest.raises(ValueError):
            BatchEmbedder(FakeEmbeddingService(), test_config)


class TestSentenceTransformerEmbedder:
    """Tests for the model adapter, with the model mocked out."""

    def test_encodes_batch_as_float32(self, test_config):
        model = MagicMock()
        model.encode.return_value = np.ones((2, 3), dtype=np.float64)

        embedder = SentenceTransformerEmbedder(test_config)
        embedder._model = model

        vectors = embedder.embed(["a", "b"])

        assert vectors.dtype == np.float32
        assert vectors.shape == (2, 3)
        args, kwargs = model.encode.call_args
        assert args[0] == ["a", "b"]
        assert kwargs["normalize_embeddings"] is True

    def test_empty_batch_skips_model(self, test_config):
        embedder = SentenceTransformerEmbedder(test_config)
        vectors = embedder.embed([])

        assert vectors.shape == (0, 384)
        assert embedder._model is None

    def test_model_is_loaded_lazily_once(self, test_config):
        fake_model = MagicMock()
        fake_model.get_sentence_embedding_dimension.return_value = 16
        fake_model.encode.return_value = np.zeros((1, 16))

        with patch("sentence_transformers.SentenceTransformer", return_value=fake_model) as ctor:
            embedder = SentenceTransformerEmbedder(test_config)
            assert ctor.call_count == 0

            embedder.embed(["x"])
            embedder.embed(["y"])

            assert ctor.call_count == 1
            assert ctor.call_args.args[0] == test_config.model_name
            assert ctor.call_args.kwargs["backend"] == "torch"  # use_onnx=False in tests
            assert embedder.dimension == 16
