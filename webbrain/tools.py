"""Backend tools the LLM can request during a chat turn.

Each tool takes the ``args`` object from a ``tool_call`` decision and
returns a JSON-serialisable dict that is fed back to the model verbatim.

* ``search_materials``          — semantic search over the skill graph
* ``request_material_addition`` — queue a request for new materials

An unknown tool or unusable arguments produce an ``{"error": ...}`` payload
rather than an exception: the model sees the error and can adapt.  Store
and embedding failures are not caught here; they end the turn.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from webbrain.config import DEFAULT_SEARCH_LIMIT
from webbrain.decisions import ToolCallDecision, ToolExchange
from webbrain.search import SimilaritySearch
from webbrain.services.material_requests import MaterialRequestQueue
from webbrain.services.metrics import MetricsClient, metrics

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], dict[str, Any]]


def coerce_limit(value: Any, default: int) -> int:
    """Positive integer ``limit`` from model output, else *default*."""
    if isinstance(value, bool):
        return default
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return default
    return limit if limit > 0 else default


class ToolRegistry:
    """Maps tool names to handlers and owns their side effects."""

    def __init__(
        self,
        search: SimilaritySearch,
        material_requests: MaterialRequestQueue,
        *,
        default_limit: int = DEFAULT_SEARCH_LIMIT,
        metrics_client: MetricsClient | None = None,
    ):
        self._search = search
        self._material_requests = material_requests
        self._default_limit = default_limit
        self._metrics = metrics_client if metrics_client is not None else metrics
        self._handlers: dict[str, ToolHandler] = {
            "search_materials": self._search_materials,
            "request_material_addition": self._request_material_addition,
        }

    def execute(self, name: str, args: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run tool *name* with *args* and return its result payload."""
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning("LLM requested unknown tool %r", name)
            self._metrics.record_tool_call(name, "unknown_tool")
            return {"error": f"Unknown tool: {name}"}

        logger.info("Executing tool %s with args=%s", name, args)
        output = handler(args or {})
        self._metrics.record_tool_call(name, "error" if "error" in output else "success")
        return output

    def run(self, call: ToolCallDecision) -> ToolExchange:
        """Execute a tool-call decision and pair it with its output."""
        return ToolExchange(call=call, output=self.execute(call.tool, call.args))

    # ── Handlers ─────────────────────────────────────────────────────

    def _search_materials(self, args: dict[str, Any]) -> dict[str, Any]:
        query = args.get("query")
        if not isinstance(query, str) or not query.strip():
            return {"error": "search_materials requires a non-empty 'query' string"}
        limit = coerce_limit(args.get("limit"), self._default_limit)
        return self._search.search(query, limit)

    def _request_material_addition(self, args: dict[str, Any]) -> dict[str, Any]:
        topic = args.get("topic")
        if not isinstance(topic, str) or not topic.strip():
            return {"error": "request_material_addition requires a non-empty 'topic' string"}
        request_id = self._material_requests.record(args)
        return {"requestId": request_id, "status": "queued"}
