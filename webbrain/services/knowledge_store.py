"""Neo4j access for the Web Brain skill graph.

The graph holds two node labels, ``Skill`` and ``URL``, each with a string
``id`` (a UUID assigned on creation), a ``name`` and an optional
``embedding`` (list of floats).  Relationships:

  (Skill)-[:IS_PREREQUISITE_TO]->(URL)
  (URL)-[:TEACHES]->(Skill)

Every query is parameterised; user input is never interpolated into Cypher.
Each operation opens its own session and closes it on every exit path.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from neo4j import GraphDatabase
from neo4j.exceptions import DriverError, Neo4jError

from webbrain.config import NEO4J_PASSWORD, NEO4J_URI, NEO4J_USERNAME
from webbrain.services.metrics import timed

logger = logging.getLogger(__name__)

CONNECTION_TIMEOUT_SECONDS = 15.0

# ── Cypher ──────────────────────────────────────────────────────────

_EMBEDDED_NODES = """
MATCH (n:Skill|URL)
WHERE n.embedding IS NOT NULL
RETURN n.id AS id, n.name AS name, toLower(labels(n)[0]) AS type,
       n.embedding AS embedding
"""

_NODES_WITHOUT_EMBEDDINGS = """
MATCH (n:Skill|URL)
WHERE n.embedding IS NULL
RETURN n.id AS id, n.name AS name, toLower(labels(n)[0]) AS type
"""

_SET_EMBEDDING = """
MATCH (n {id: $id})
SET n.embedding = $embedding
"""

_NODE_STATS = """
MATCH (n:Skill|URL)
RETURN count(n.embedding) AS with_embeddings, count(n) AS total
"""

_NODES_BY_LABEL = """
MATCH (n)
WHERE $label IN labels(n)
RETURN properties(n) AS properties
"""

_PREREQUISITE_LINKS = """
MATCH (s:Skill)-[r:IS_PREREQUISITE_TO]->(u:URL)
RETURN r.id AS id, s.id AS source, u.id AS target
"""

_TEACHES_LINKS = """
MATCH (u:URL)-[r:TEACHES]->(s:Skill)
RETURN r.id AS id, u.id AS source, s.id AS target
"""

_PATH_NODES = """
MATCH p = ({id: $start_id})-[*]->({id: $target_id})
UNWIND nodes(p) AS n
WITH DISTINCT n
RETURN properties(n) AS properties, toLower(labels(n)[0]) AS type
"""

_PATH_LINKS = """
MATCH p = ({id: $start_id})-[*]->({id: $target_id})
UNWIND relationships(p) AS r
WITH DISTINCT r
RETURN r.id AS id, startNode(r).id AS source, endNode(r).id AS target
"""


class KnowledgeStoreError(Exception):
    """Raised when a graph read or write fails."""


@dataclass(frozen=True)
class EmbeddedNode:
    """A Skill or URL node together with its stored embedding."""

    id: str
    name: str
    type: str
    embedding: Sequence[float]

    def summary(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "type": self.type}


def _public_properties(properties: dict[str, Any], node_type: str) -> dict[str, Any]:
    """Node properties for API output: raw vectors dropped, ``type`` set."""
    data = {k: v for k, v in properties.items() if k != "embedding"}
    data["type"] = node_type
    return data


class Neo4jKnowledgeStore:
    """Read/write access to the skill graph over a pooled Neo4j driver."""

    def __init__(
        self,
        uri: str | None = None,
        username: str | None = None,
        password: str | None = None,
        *,
        driver: Any | None = None,
    ):
        self._uri = uri or NEO4J_URI
        self._username = username or NEO4J_USERNAME
        self._password = password or NEO4J_PASSWORD
        self._driver = driver

    @property
    def driver(self):
        """Create the driver on first use (no network until then)."""
        if self._driver is None:
            self._driver = GraphDatabase.driver(
                self._uri,
                auth=(self._username, self._password),
                connection_timeout=CONNECTION_TIMEOUT_SECONDS,
            )
            logger.info("Neo4j driver created for %s", self._uri)
        return self._driver

    def close(self) -> None:
        if self._driver is not None:
            self._driver.close()
            self._driver = None
            logger.info("Neo4j driver closed")

    @contextmanager
    def session(self) -> Iterator[Any]:
        """Scoped session: always closed, even when the body raises."""
        session = self.driver.session()
        try:
            yield session
        finally:
            session.close()

    # ── Internal helpers ─────────────────────────────────────────────

    def _read(self, operation: str, query: str, **params: Any) -> list[dict[str, Any]]:
        return self._execute(operation, query, params, write=False)

    def _write(self, operation: str, query: str, **params: Any) -> list[dict[str, Any]]:
        return self._execute(operation, query, params, write=True)

    def _execute(
        self,
        operation: str,
        query: str,
        params: dict[str, Any],
        *,
        write: bool,
    ) -> list[dict[str, Any]]:
        def _work(tx) -> list[dict[str, Any]]:
            return tx.run(query, params).data()

        try:
            with timed("neo4j", operation), self.session() as session:
                if write:
                    return session.execute_write(_work)
                return session.execute_read(_work)
        except (Neo4jError, DriverError) as exc:
            logger.error("Neo4j %s failed: %s", operation, exc)
            raise KnowledgeStoreError(f"{operation} failed: {exc}") from exc

    # ── Search support ───────────────────────────────────────────────

    def fetch_embedded_nodes(self) -> list[EmbeddedNode]:
        """All Skill/URL nodes that carry an embedding, in retrieval order."""
        rows = self._read("fetch_embedded_nodes", _EMBEDDED_NODES)
        return [
            EmbeddedNode(
                id=row["id"],
                name=row["name"],
                type=row["type"],
                embedding=row["embedding"],
            )
            for row in rows
        ]

    # ── Graph reads ──────────────────────────────────────────────────

    def read_tree(self) -> dict[str, list[dict[str, Any]]]:
        """The whole graph: URL nodes then Skill nodes, prerequisite then teaches links."""
        urls = self._read("read_tree", _NODES_BY_LABEL, label="URL")
        skills = self._read("read_tree", _NODES_BY_LABEL, label="Skill")
        nodes = [_public_properties(r["properties"], "url") for r in urls]
        nodes += [_public_properties(r["properties"], "skill") for r in skills]

        links = self._read("read_tree", _PREREQUISITE_LINKS)
        links += self._read("read_tree", _TEACHES_LINKS)
        return {"nodes": nodes, "links": links}

    def read_path(self, start_id: str, target_id: str) -> dict[str, list[dict[str, Any]]]:
        """Nodes and links on every directed path from *start_id* to *target_id*."""
        node_rows = self._read(
            "read_path", _PATH_NODES, start_id=start_id, target_id=target_id,
        )
        link_rows = self._read(
            "read_path", _PATH_LINKS, start_id=start_id, target_id=target_id,
        )
        return {
            "nodes": [_public_properties(r["properties"], r["type"]) for r in node_rows],
            "links": link_rows,
        }

    # ── Embedding maintenance ────────────────────────────────────────

    def fetch_nodes_without_embeddings(self) -> list[dict[str, str]]:
        return self._read("fetch_nodes_without_embeddings", _NODES_WITHOUT_EMBEDDINGS)

    def update_node_embedding(self, node_id: str, embedding: Sequence[float]) -> None:
        self._write(
            "update_node_embedding", _SET_EMBEDDING,
            id=node_id, embedding=list(embedding),
        )

    def get_node_stats(self) -> dict[str, int]:
        """Counts of embeddable nodes: ``total``, ``with_embeddings``, ``remaining``."""
        rows = self._read("get_node_stats", _NODE_STATS)
        row = rows[0] if rows else {"total": 0, "with_embeddings": 0}
        total = int(row["total"])
        with_embeddings = int(row["with_embeddings"])
        return {
            "total": total,
            "with_embeddings": with_embeddings,
            "remaining": total - with_embeddings,
        }
