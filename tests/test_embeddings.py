"""Tests for the sentence-transformers embedder (model mocked)."""

from __future__ import annotations

from unittest.mock import MagicMock

import numpy as np
import pytest

from webbrain.services.cache import LRUCache
from webbrain.services.embeddings import EmbeddingError, SentenceTransformerEmbedder


def _model(*rows):
    model = MagicMock()
    model.encode.return_value = np.asarray(rows, dtype=np.float32)
    return model


class TestEmbed:
    def test_returns_plain_floats(self):
        embedder = SentenceTransformerEmbedder(model=_model([0.6, 0.8]))
        vector = embedder.embed("react hooks")

        assert vector == pytest.approx([0.6, 0.8])
        assert all(type(x) is float for x in vector)

    def test_requests_normalised_vectors(self):
        model = _model([1.0, 0.0])
        SentenceTransformerEmbedder(model=model).embed("css")

        assert model.encode.call_args.args[0] == ["css"]
        assert model.encode.call_args.kwargs["normalize_embeddings"] is True

    def test_repeated_query_hits_cache(self):
        model = _model([1.0, 0.0])
        embedder = SentenceTransformerEmbedder(model=model, cache=LRUCache())

        first = embedder.embed("css")
        second = embedder.embed("css")

        assert first == second
        model.encode.assert_called_once()

    def test_encode_failure_is_wrapped(self):
        model = MagicMock()
        model.encode.side_effect = RuntimeError("CUDA out of memory")

        with pytest.raises(EmbeddingError, match="CUDA out of memory"):
            SentenceTransformerEmbedder(model=model).embed("css")

    def test_failed_query_is_not_cached(self):
        model = MagicMock()
        model.encode.side_effect = [RuntimeError("boom"), np.asarray([[1.0, 0.0]])]
        embedder = SentenceTransformerEmbedder(model=model)

        with pytest.raises(EmbeddingError):
            embedder.embed("css")
        assert embedder.embed("css") == pytest.approx([1.0, 0.0])


class TestEmbedBatch:
    def test_one_model_call_for_many_texts(self):
        model = _model([1.0, 0.0], [0.0, 1.0])
        vectors = SentenceTransformerEmbedder(model=model).embed_batch(["a", "b"])

        assert vectors == [pytest.approx([1.0, 0.0]), pytest.approx([0.0, 1.0])]
        model.encode.assert_called_once()

    def test_empty_batch_skips_model(self):
        model = _model()
        assert SentenceTransformerEmbedder(model=model).embed_batch([]) == []
        model.encode.assert_not_called()


class TestModelLoading:
    def test_default_model_name(self):
        embedder = SentenceTransformerEmbedder(model=_model([1.0]))
        assert embedder.model_name == "sentence-transformers/all-MiniLM-L6-v2"

    def test_injected_model_is_used(self):
        model = _model([1.0])
        assert SentenceTransformerEmbedder(model=model).model is model
