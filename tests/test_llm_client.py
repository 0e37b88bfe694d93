"""Tests for the LangChain-backed LLM client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from webbrain.decisions import ConversationTurn
from webbrain.services import metrics as metrics_module
from webbrain.services.llm_client import LLMClient, response_text, to_langchain_messages


class TestMessageConversion:
    def test_roles_map_to_langchain_types(self):
        turns = [
            ConversationTurn(role="system", content="policy"),
            ConversationTurn(role="user", content="hi"),
            ConversationTurn(role="assistant", content='{"type":"final"}'),
        ]
        messages = to_langchain_messages(turns)

        assert [type(m) for m in messages] == [SystemMessage, HumanMessage, AIMessage]
        assert [m.content for m in messages] == ["policy", "hi", '{"type":"final"}']


class TestResponseText:
    def test_plain_string(self):
        assert response_text(AIMessage(content='{"type":"final"}')) == '{"type":"final"}'

    def test_joins_text_blocks(self):
        message = AIMessage(content=[
            {"type": "text", "text": '{"type":'},
            {"type": "text", "text": '"final"}'},
        ])
        assert response_text(message) == '{"type":"final"}'

    def test_text_wins_over_thinking(self):
        message = AIMessage(content=[
            {"type": "thinking", "thinking": "let me see"},
            {"type": "text", "text": "answer"},
        ])
        assert response_text(message) == "answer"

    def test_falls_back_to_thinking(self):
        message = AIMessage(content=[{"type": "thinking", "thinking": '{"type":"final"}'}])
        assert response_text(message) == '{"type":"final"}'

    def test_no_text_at_all(self):
        assert response_text(AIMessage(content=[])) == ""


class TestLLMClient:
    def test_complete_sends_turns_in_order(self):
        llm = MagicMock()
        llm.invoke.return_value = AIMessage(content="reply")
        client = LLMClient(llm)

        text = client.complete([
            ConversationTurn(role="system", content="s"),
            ConversationTurn(role="user", content="u"),
        ])

        assert text == "reply"
        sent = llm.invoke.call_args.args[0]
        assert [m.content for m in sent] == ["s", "u"]

    def test_provider_errors_propagate_and_are_recorded(self):
        llm = MagicMock()
        llm.invoke.side_effect = TimeoutError("provider timed out")
        recorder = MagicMock()

        with patch.object(metrics_module, "metrics", recorder):
            with pytest.raises(TimeoutError):
                LLMClient(llm).complete([ConversationTurn(role="user", content="u")])

        recorder.record_failure.assert_called_once()
        assert recorder.record_failure.call_args.args[:2] == ("llm", "chat_completion")
        assert recorder.record_failure.call_args.kwargs["error_type"] == "TimeoutError"

    def test_success_is_recorded(self):
        llm = MagicMock()
        llm.invoke.return_value = AIMessage(content="ok")
        recorder = MagicMock()

        with patch.object(metrics_module, "metrics", recorder):
            LLMClient(llm).complete([ConversationTurn(role="user", content="u")])

        recorder.record_success.assert_called_once()
