"""Shared test fixtures for the Web Brain test suite."""

from __future__ import annotations

import json
import os
from unittest.mock import MagicMock

import numpy as np
import pytest

EMBEDDING_SIZE = 384


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any test module is imported, so config.py won't fail
    on module load.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("NEO4J_URI", "bolt://localhost:7687")
    os.environ.setdefault("NEO4J_PASSWORD", "test-neo4j-password")
    os.environ.setdefault("METRICS_ENABLED", "false")


def normalized_embedding(seed: int = 0) -> list[float]:
    """A deterministic unit vector; different seeds point different ways."""
    values = np.sin((np.arange(EMBEDDING_SIZE) + seed * 7) * 0.1) * 0.5
    return (values / np.linalg.norm(values)).tolist()


def final_reply(message: str, **fields) -> str:
    """Raw LLM text for a ``final`` decision."""
    return json.dumps({"type": "final", "message": message, **fields})


def tool_call_reply(tool: str, args: dict) -> str:
    """Raw LLM text for a ``tool_call`` decision."""
    return json.dumps({"type": "tool_call", "tool": tool, "args": args})


@pytest.fixture
def make_llm():
    """Factory: a mock LLM client that returns *replies* in order."""

    def _make(*replies: str):
        llm = MagicMock()
        llm.complete.side_effect = list(replies)
        return llm

    return _make


@pytest.fixture
def make_node():
    """Factory for ``EmbeddedNode`` values."""
    from webbrain.services.knowledge_store import EmbeddedNode

    def _make(node_id: str, name: str, node_type: str = "url", seed: int = 0,
              embedding: list[float] | None = None):
        return EmbeddedNode(
            id=node_id,
            name=name,
            type=node_type,
            embedding=embedding if embedding is not None else normalized_embedding(seed),
        )

    return _make


@pytest.fixture
def mock_store():
    """A knowledge store with no embedded nodes until a test adds some."""
    store = MagicMock()
    store.fetch_embedded_nodes.return_value = []
    return store


@pytest.fixture
def mock_embedder():
    embedder = MagicMock()
    embedder.embed.return_value = normalized_embedding(0)
    return embedder
