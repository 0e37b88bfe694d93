"""LLM provider: ordered transcript in, raw text out.

Wraps a LangChain chat model (Anthropic by default).  The client does not
interpret the reply; it only flattens it to text for the response parser.
Provider errors (timeouts, rate limits, auth) propagate unchanged so the
orchestrator can fail the turn; nothing is retried here.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from webbrain.config import ANTHROPIC_API_KEY, LLM_MAX_TOKENS, LLM_TEMPERATURE, MODEL_NAME
from webbrain.decisions import ConversationTurn
from webbrain.services.metrics import timed

logger = logging.getLogger(__name__)

_MESSAGE_TYPES: dict[str, type[BaseMessage]] = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


def _build_llm() -> ChatAnthropic:
    """Build the chat model used for every orchestration call (no tool bindings).

    Tools are described in the system prompt and requested as JSON, so the
    model never needs provider-native tool calling.
    """
    return ChatAnthropic(
        model=MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=LLM_TEMPERATURE,
        max_tokens=LLM_MAX_TOKENS,
    )


def to_langchain_messages(turns: Sequence[ConversationTurn]) -> list[BaseMessage]:
    """Convert transcript turns to LangChain messages, preserving order."""
    return [_MESSAGE_TYPES[turn.role](content=turn.content) for turn in turns]


def _blocks_text(blocks: list[Any], kind: str, key: str) -> str:
    parts = [
        block.get(key, "")
        for block in blocks
        if isinstance(block, dict) and block.get("type") == kind
    ]
    return "".join(parts)


def response_text(message: BaseMessage) -> str:
    """Flatten a model reply to text.

    Reasoning models may return their whole answer inside a thinking block
    with no text block; in that case the reasoning is returned instead so
    the parser still gets a chance to find the JSON.
    """
    content = message.content
    if isinstance(content, str):
        return content

    text = _blocks_text(content, "text", "text")
    if text:
        return text
    return _blocks_text(content, "thinking", "thinking")


class LLMClient:
    """``complete(turns) -> str`` over a LangChain chat model."""

    def __init__(self, llm: BaseChatModel | None = None):
        self._llm = llm if llm is not None else _build_llm()

    def complete(self, turns: Sequence[ConversationTurn]) -> str:
        messages = to_langchain_messages(turns)
        logger.debug("LLM call with %d messages", len(messages))
        with timed("llm", "chat_completion"):
            reply = self._llm.invoke(messages)
        text = response_text(reply)
        logger.debug("LLM replied with %d characters", len(text))
        return text
