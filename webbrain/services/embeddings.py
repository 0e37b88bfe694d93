"""Sentence-transformers embedding provider.

Maps text to a fixed-length, mean-pooled, L2-normalised vector, so the dot
product of two embeddings is their cosine similarity.  The same model
embeds graph node names (``generate_embeddings``) and search queries; the
two must stay on the same model version for scores to mean anything.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from typing import Any

from webbrain.config import EMBEDDING_CACHE_MAX_BYTES, EMBEDDING_MODEL_NAME
from webbrain.services.cache import LRUCache
from webbrain.services.metrics import timed

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Raised when the embedding model cannot be loaded or fails to encode."""


class SentenceTransformerEmbedder:
    """Lazily-loaded ``SentenceTransformer`` with a query-vector cache."""

    def __init__(
        self,
        model_name: str | None = None,
        *,
        model: Any | None = None,
        cache: LRUCache | None = None,
    ):
        self.model_name = model_name or EMBEDDING_MODEL_NAME
        self._model = model
        self._model_lock = threading.Lock()
        self._cache = cache if cache is not None else LRUCache(EMBEDDING_CACHE_MAX_BYTES)

    @property
    def model(self):
        """Load the model on first use (downloads weights on a cold host)."""
        if self._model is None:
            with self._model_lock:
                if self._model is None:
                    try:
                        from sentence_transformers import SentenceTransformer

                        logger.info("Loading embedding model %s", self.model_name)
                        self._model = SentenceTransformer(self.model_name)
                    except (OSError, RuntimeError, ValueError) as exc:
                        raise EmbeddingError(
                            f"Could not load embedding model {self.model_name}: {exc}"
                        ) from exc
        return self._model

    def _encode(self, texts: Sequence[str]) -> list[list[float]]:
        try:
            vectors = self.model.encode(
                list(texts),
                normalize_embeddings=True,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except (RuntimeError, ValueError, TypeError) as exc:
            raise EmbeddingError(f"Embedding failed: {exc}") from exc
        return [[float(x) for x in vector] for vector in vectors]

    def embed(self, text: str) -> list[float]:
        """Embed a single query string (cached)."""
        cached = self._cache.get(text)
        if cached is not None:
            return cached

        with timed("embeddings", "embed_query"):
            vector = self._encode([text])[0]
        self._cache.put(text, vector)
        return vector

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed many texts in one model call.  Not cached."""
        if not texts:
            return []
        with timed("embeddings", "embed_batch"):
            return self._encode(texts)
