"""Tests for turning raw LLM text into typed decisions."""

from __future__ import annotations

import json

import pytest

from webbrain.decisions import FinalDecision, MaterialRef, ToolCallDecision
from webbrain.parser import (
    FALLBACK_ACTIONS,
    FALLBACK_MESSAGE,
    parse_llm_response,
    strip_reasoning,
)


def _assert_fallback(decision) -> None:
    assert isinstance(decision, FinalDecision)
    assert decision.message == FALLBACK_MESSAGE
    assert decision.suggested_actions == ["try_again", "contact_support"]
    assert decision.related_materials == []


# ── Well-formed replies ──────────────────────────────────────────────


class TestWellFormedReplies:
    def test_final_decision(self):
        raw = json.dumps({
            "type": "final",
            "message": "React hooks are great.",
            "relatedMaterials": [
                {"nodeId": "uuid-1", "name": "https://react.dev/hooks", "type": "url"},
            ],
            "suggestedActions": ["Learn useState"],
        })
        decision = parse_llm_response(raw)

        assert isinstance(decision, FinalDecision)
        assert decision.message == "React hooks are great."
        assert decision.related_materials == [
            MaterialRef(node_id="uuid-1", name="https://react.dev/hooks", type="url"),
        ]
        assert decision.suggested_actions == ["Learn useState"]

    def test_final_decision_defaults_missing_lists(self):
        decision = parse_llm_response('{"type":"final","message":"Found it."}')
        assert isinstance(decision, FinalDecision)
        assert decision.related_materials == []
        assert decision.suggested_actions == []

    def test_null_lists_are_treated_as_empty(self):
        decision = parse_llm_response(
            '{"type":"final","message":"Hi","relatedMaterials":null,"suggestedActions":null}'
        )
        assert decision.related_materials == []
        assert decision.suggested_actions == []

    def test_tool_call_decision(self):
        raw = '{"type":"tool_call","tool":"search_materials","args":{"query":"React hooks","limit":5}}'
        decision = parse_llm_response(raw)

        assert isinstance(decision, ToolCallDecision)
        assert decision.tool == "search_materials"
        assert decision.args == {"query": "React hooks", "limit": 5}

    def test_tool_call_without_args_gets_empty_args(self):
        decision = parse_llm_response('{"type":"tool_call","tool":"search_materials"}')
        assert isinstance(decision, ToolCallDecision)
        assert decision.args == {}

    def test_unknown_tool_name_is_still_a_tool_call(self):
        """The registry, not the parser, rejects unknown tools."""
        decision = parse_llm_response('{"type":"tool_call","tool":"delete_graph","args":{}}')
        assert isinstance(decision, ToolCallDecision)
        assert decision.tool == "delete_graph"

    def test_material_type_is_lowercased(self):
        decision = parse_llm_response(
            '{"type":"final","message":"x","relatedMaterials":'
            '[{"nodeId":"s1","name":"CSS","type":"Skill"}]}'
        )
        assert decision.related_materials[0].type == "skill"


# ── Wrapped replies ──────────────────────────────────────────────────


class TestWrappedReplies:
    def test_strips_think_block(self):
        raw = '<think>The user wants hooks. {"type":"oops"}</think>\n{"type":"final","message":"Hooks!"}'
        decision = parse_llm_response(raw)
        assert isinstance(decision, FinalDecision)
        assert decision.message == "Hooks!"

    def test_extracts_json_from_markdown_fence(self):
        raw = 'Sure!\n```json\n{"type":"final","message":"Here you go."}\n```'
        decision = parse_llm_response(raw)
        assert decision.message == "Here you go."

    def test_nested_braces_inside_tool_args(self):
        raw = 'Calling: {"type":"tool_call","tool":"search_materials","args":{"query":"css"}} done'
        decision = parse_llm_response(raw)
        assert isinstance(decision, ToolCallDecision)
        assert decision.args == {"query": "css"}

    def test_strip_reasoning_handles_multiple_blocks(self):
        assert strip_reasoning("<think>a</think> x <think>b</think>  ") == "x"

    def test_strip_reasoning_without_block_only_trims(self):
        assert strip_reasoning("  hello \n") == "hello"


# ── Malformed replies ────────────────────────────────────────────────


class TestMalformedReplies:
    @pytest.mark.parametrize(
        "raw",
        [
            "This is not valid JSON",
            "",
            "   ",
            "{not json at all}",
            '{"message":"no type field"}',
            '{"type":"question","message":"unknown type"}',
            '["type", "final"]',
            '"just a string"',
            '{"type":"final","message":42}',
            '{"type":"tool_call","args":{"query":"missing tool"}}',
            '{"type":"final","message":"x","relatedMaterials":[{"nodeId":"1"}]}',
            "<think>only reasoning, no answer</think>",
            '{"type":"final","message":"x","n":' + "1" * 5000 + "}",
            "[" * 100_000 + "]" * 100_000,
        ],
        ids=lambda raw: raw[:30] or "empty",
    )
    def test_falls_back_to_apology(self, raw):
        _assert_fallback(parse_llm_response(raw))

    def test_non_text_input_falls_back(self):
        _assert_fallback(parse_llm_response(None))

    def test_fallback_wording_is_fixed(self):
        assert "administrators have been notified" in FALLBACK_MESSAGE
        assert FALLBACK_ACTIONS == ["try_again", "contact_support"]

    def test_fallback_actions_are_not_shared(self):
        decision = parse_llm_response("nope")
        decision.suggested_actions.append("mutated")
        assert FALLBACK_ACTIONS == ["try_again", "contact_support"]


# ── Re-parsing serialised decisions ──────────────────────────────────


class TestReparse:
    def test_final_decision_survives_reserialisation(self):
        original = parse_llm_response(
            '{"type":"final","message":"Try these.","relatedMaterials":'
            '[{"nodeId":"u1","name":"MDN","type":"url"}],"suggestedActions":["Read MDN"]}'
        )
        assert parse_llm_response(original.to_json()) == original

    def test_tool_call_survives_reserialisation(self):
        original = parse_llm_response(
            '{"type":"tool_call","tool":"request_material_addition",'
            '"args":{"topic":"SolidJS","user_context":"beginner"}}'
        )
        assert parse_llm_response(original.to_json()) == original

    def test_final_json_uses_camel_case(self):
        decision = FinalDecision(message="x", suggested_actions=["a"])
        data = json.loads(decision.to_json())
        assert data == {
            "type": "final",
            "message": "x",
            "relatedMaterials": [],
            "suggestedActions": ["a"],
        }
