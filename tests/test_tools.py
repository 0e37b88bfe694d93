"""Tests for the tool registry."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from webbrain.decisions import ToolCallDecision
from webbrain.tools import ToolRegistry, coerce_limit


@pytest.fixture
def search():
    search = MagicMock()
    search.search.return_value = {"results": []}
    return search


@pytest.fixture
def material_requests():
    queue = MagicMock()
    queue.record.return_value = "req_1760000000000_abcd1234"
    return queue


@pytest.fixture
def tool_metrics():
    return MagicMock()


@pytest.fixture
def registry(search, material_requests, tool_metrics):
    return ToolRegistry(search, material_requests, default_limit=5, metrics_client=tool_metrics)


class TestCoerceLimit:
    @pytest.mark.parametrize(
        "value, expected",
        [(3, 3), ("7", 7), (2.9, 2), (None, 5), (0, 5), (-1, 5), ("many", 5), (True, 5), ([], 5)],
    )
    def test_values(self, value, expected):
        assert coerce_limit(value, 5) == expected


class TestSearchMaterials:
    def test_delegates_to_search(self, registry, search):
        output = registry.execute("search_materials", {"query": "React hooks", "limit": 3})

        search.search.assert_called_once_with("React hooks", 3)
        assert output == {"results": []}

    def test_default_limit(self, registry, search):
        registry.execute("search_materials", {"query": "CSS"})
        search.search.assert_called_once_with("CSS", 5)

    def test_invalid_limit_uses_default(self, registry, search):
        registry.execute("search_materials", {"query": "CSS", "limit": "lots"})
        search.search.assert_called_once_with("CSS", 5)

    @pytest.mark.parametrize("args", [{}, {"query": ""}, {"query": "   "}, {"query": 42}])
    def test_missing_query_returns_error(self, registry, search, args):
        output = registry.execute("search_materials", args)

        assert output == {"error": "search_materials requires a non-empty 'query' string"}
        search.search.assert_not_called()

    def test_search_errors_propagate(self, registry, search):
        search.search.side_effect = RuntimeError("graph down")
        with pytest.raises(RuntimeError):
            registry.execute("search_materials", {"query": "CSS"})


class TestRequestMaterialAddition:
    def test_queues_request(self, registry, material_requests):
        args = {"topic": "SolidJS", "user_context": "Coming from React"}
        output = registry.execute("request_material_addition", args)

        material_requests.record.assert_called_once_with(args)
        assert output == {"requestId": "req_1760000000000_abcd1234", "status": "queued"}

    def test_missing_topic_returns_error(self, registry, material_requests):
        output = registry.execute("request_material_addition", {"user_context": "x"})

        assert output == {"error": "request_material_addition requires a non-empty 'topic' string"}
        material_requests.record.assert_not_called()


class TestDispatch:
    def test_unknown_tool(self, registry, search, material_requests):
        assert registry.execute("drop_database", {}) == {"error": "Unknown tool: drop_database"}
        search.search.assert_not_called()
        material_requests.record.assert_not_called()

    def test_none_args(self, registry):
        output = registry.execute("search_materials", None)
        assert "error" in output

    def test_run_pairs_call_with_output(self, registry):
        call = ToolCallDecision(tool="search_materials", args={"query": "CSS"})
        exchange = registry.run(call)

        assert exchange.call is call
        assert exchange.output == {"results": []}


class TestToolMetrics:
    def test_success_is_recorded(self, registry, tool_metrics):
        registry.execute("search_materials", {"query": "CSS"})
        tool_metrics.record_tool_call.assert_called_once_with("search_materials", "success")

    def test_error_payload_is_recorded_as_error(self, registry, tool_metrics):
        registry.execute("request_material_addition", {})
        tool_metrics.record_tool_call.assert_called_once_with("request_material_addition", "error")

    def test_unknown_tool_is_recorded(self, registry, tool_metrics):
        registry.execute("drop_database", {})
        tool_metrics.record_tool_call.assert_called_once_with("drop_database", "unknown_tool")

    def test_raising_tool_is_not_recorded(self, registry, search, tool_metrics):
        search.search.side_effect = RuntimeError("graph down")
        with pytest.raises(RuntimeError):
            registry.execute("search_materials", {"query": "CSS"})
        tool_metrics.record_tool_call.assert_not_called()
