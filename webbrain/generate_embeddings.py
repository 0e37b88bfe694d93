"""Back-fill embeddings for Skill and URL nodes that do not have one.

Embeds each node's ``name`` with the same model the search uses, in
batches, and stores the vector on the node.  Components are rounded to
4 decimals to keep node properties small; the resulting drift in cosine
scores is far below anything that changes a ranking.

Usage:
    python -m webbrain.generate_embeddings
    python -m webbrain.generate_embeddings --batch-size 50 --debug
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

from webbrain.config import EMBEDDING_BATCH_SIZE
from webbrain.main import configure_logging
from webbrain.services.embeddings import EmbeddingError, SentenceTransformerEmbedder
from webbrain.services.knowledge_store import KnowledgeStoreError, Neo4jKnowledgeStore

logger = logging.getLogger(__name__)

DECIMALS = 4


def round_embedding(vector: list[float], decimals: int = DECIMALS) -> list[float]:
    return [round(float(x), decimals) for x in vector]


def generate_embeddings(
    store: Neo4jKnowledgeStore,
    embedder: SentenceTransformerEmbedder,
    batch_size: int = EMBEDDING_BATCH_SIZE,
) -> int:
    """Embed every node that lacks a vector.  Returns the number processed."""
    nodes = store.fetch_nodes_without_embeddings()
    print(f"Processing {len(nodes)} nodes in batches of {batch_size}...\n")

    processed = 0
    for start in range(0, len(nodes), batch_size):
        batch = nodes[start : start + batch_size]
        print(f"[{start + 1}/{len(nodes)}] Processing batch...")

        vectors = embedder.embed_batch([node["name"] for node in batch])
        for node, vector in zip(batch, vectors, strict=True):
            store.update_node_embedding(node["id"], round_embedding(vector))

        processed += len(batch)
        print(f"  ✓ Processed {len(batch)} nodes ({processed}/{len(nodes)})")

    return processed


def _print_stats(stats: dict[str, int]) -> None:
    print("\nNode statistics:")
    print(f"  Total nodes: {stats['total']}")
    print(f"  With embeddings: {stats['with_embeddings']}")
    print(f"  Remaining: {stats['remaining']}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Generate embeddings for graph nodes")
    parser.add_argument(
        "--batch-size", type=int, default=EMBEDDING_BATCH_SIZE,
        help=f"Nodes embedded per model call (default {EMBEDDING_BATCH_SIZE})",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    args = parser.parse_args(argv)
    if args.batch_size < 1:
        parser.error("--batch-size must be a positive integer")

    load_dotenv()
    configure_logging(debug=args.debug)

    store = Neo4jKnowledgeStore()
    embedder = SentenceTransformerEmbedder()
    print(f"Embedding model: {embedder.model_name}  (batch size {args.batch_size})")

    try:
        stats = store.get_node_stats()
        _print_stats(stats)
        if stats["remaining"] == 0:
            print("\n✓ All nodes already have embeddings!")
            return 0

        generate_embeddings(store, embedder, args.batch_size)

        stats = store.get_node_stats()
        coverage = stats["with_embeddings"] / stats["total"] * 100 if stats["total"] else 100.0
        print("\n✓ Embedding generation complete!")
        _print_stats(stats)
        print(f"  Coverage: {coverage:.1f}%")
        return 0
    except (KnowledgeStoreError, EmbeddingError) as e:
        logger.error("Embedding generation failed: %s", e)
        print(f"\n✗ Error during embedding generation: {e}")
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
