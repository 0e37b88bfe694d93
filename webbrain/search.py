"""Semantic search over the embedded nodes of the skill graph.

Every candidate is scored against the query in one matrix product.  Node
vectors are stored pre-normalised and the query vector is normalised by
the embedder, so the dot product is the cosine similarity.  Scores are
returned raw; deciding what counts as relevant is left to the LLM.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import numpy as np

from webbrain.config import DEFAULT_SEARCH_LIMIT
from webbrain.services.knowledge_store import EmbeddedNode

logger = logging.getLogger(__name__)

NO_EMBEDDINGS_NOTE = (
    "No embeddings available. Run 'python -m webbrain.generate_embeddings' "
    "to populate embeddings."
)


class EmbeddedNodeSource(Protocol):
    def fetch_embedded_nodes(self) -> list[EmbeddedNode]: ...


class Embedder(Protocol):
    def embed(self, text: str) -> list[float]: ...


class SimilaritySearch:
    """Top-K nodes for a query by cosine similarity."""

    def __init__(self, store: EmbeddedNodeSource, embedder: Embedder):
        self._store = store
        self._embedder = embedder

    def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> dict[str, Any]:
        """Return ``{"results": [{"node": {...}, "similarity": float}], "note"?: str}``.

        Results are in descending similarity; equal scores keep the order
        the store returned the nodes in.  Nodes whose vector length differs
        from the query are skipped.  Store and embedding errors propagate
        to the caller.
        """
        nodes = self._store.fetch_embedded_nodes()
        if not nodes:
            logger.info("Search for %r skipped: no embedded nodes", query)
            return {"results": [], "note": NO_EMBEDDINGS_NOTE}

        query_vector = np.asarray(self._embedder.embed(query), dtype=np.float64)

        # Vectors written by a different embedding model cannot be compared.
        skipped = [node.id for node in nodes if len(node.embedding) != query_vector.size]
        if skipped:
            logger.warning(
                "Skipping %d node(s) whose embedding size differs from the query (%d): %s",
                len(skipped), query_vector.size, skipped[:10],
            )
            nodes = [node for node in nodes if len(node.embedding) == query_vector.size]
        if not nodes:
            return {"results": []}

        matrix = np.asarray([node.embedding for node in nodes], dtype=np.float64)

        scores = np.clip(matrix @ query_vector, -1.0, 1.0)
        order = np.argsort(-scores, kind="stable")[:limit]

        results = [
            {"node": nodes[i].summary(), "similarity": float(scores[i])}
            for i in order
        ]
        logger.debug(
            "Search for %r scored %d nodes, returning %d",
            query, len(nodes), len(results),
        )
        return {"results": results}
