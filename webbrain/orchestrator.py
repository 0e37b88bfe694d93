"""Bounded tool-calling loop between the chat client, the LLM and the tools.

Architecture:
  One chat turn is a LangGraph StateGraph with four nodes:

    1. **decide**    — build the transcript, call the LLM, parse its reply
    2. **tools**     — execute the requested tool (search / material request)
    3. **fallback**  — replace a tool call that exceeds the round cap
    4. **respond**   — turn the final decision into a ``ChatResponse``

  Routing:
    decide → (final?)                       → respond → END
    decide → (tool_call, rounds left?)      → tools → decide
    decide → (tool_call, no rounds left?)   → fallback → respond → END

  With the default cap of one round a turn makes at most two LLM calls and
  one tool execution.  The cap bounds cost and rules out tool/LLM ping-pong.

  State:
    The graph is compiled without a checkpointer.  Nothing survives a
    request; the client carries the conversation in ``conversationHistory``.
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import Any

from langgraph.graph import END, StateGraph
from pydantic import ValidationError
from typing_extensions import TypedDict

from webbrain.api.schemas import ChatRequest, ChatResponse, ConversationState
from webbrain.config import MAX_TOOL_ROUNDS
from webbrain.decisions import FinalDecision, ToolCallDecision, ToolExchange
from webbrain.messages import build_messages
from webbrain.parser import parse_llm_response
from webbrain.search import SimilaritySearch
from webbrain.services.llm_client import LLMClient
from webbrain.services.material_requests import MaterialRequestQueue
from webbrain.tools import ToolRegistry

logger = logging.getLogger(__name__)

MESSAGE_REQUIRED = "message is required and must be a string"

UNABLE_TO_COMPLETE_MESSAGE = (
    "I'm unable to complete that request right now. "
    "Please try rephrasing your question or try again later."
)


class ChatRequestError(ValueError):
    """The client sent an unusable chat request (HTTP 400)."""


# ── State schema ─────────────────────────────────────────────────────


class ChatState(TypedDict):
    """The state that flows through the graph for one chat turn.

    ``exchanges`` holds the executed tool rounds in order; its length is
    the number of rounds used so far.  ``decision`` is the latest parsed
    LLM reply (or the fallback that replaced it).
    """

    request: ChatRequest
    exchanges: list[ToolExchange]
    decision: FinalDecision | ToolCallDecision | None
    llm_calls: int
    response: ChatResponse | None


# ── Request validation ───────────────────────────────────────────────


def parse_chat_request(payload: Any) -> ChatRequest:
    """Validate a raw JSON body before any external call is made."""
    if not isinstance(payload, dict):
        raise ChatRequestError(MESSAGE_REQUIRED)

    message = payload.get("message")
    if not isinstance(message, str) or not message.strip():
        raise ChatRequestError(MESSAGE_REQUIRED)

    try:
        return ChatRequest.model_validate(payload)
    except ValidationError as exc:
        fields = ", ".join(
            ".".join(str(part) for part in error["loc"]) for error in exc.errors()
        )
        raise ChatRequestError(f"Invalid chat request fields: {fields}") from exc


# ── Helpers ──────────────────────────────────────────────────────────


def unable_to_complete_decision() -> FinalDecision:
    """Final answer used when the model still wants a tool after the last round."""
    return FinalDecision(
        message=UNABLE_TO_COMPLETE_MESSAGE,
        related_materials=[],
        suggested_actions=["try_again"],
    )


def new_session_id() -> str:
    return f"session_{time.time_ns() // 1_000_000}"


def utc_timestamp() -> str:
    """Current time as sortable ISO 8601, e.g. ``2026-10-19T08:15:30.123Z``."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ── Orchestrator ─────────────────────────────────────────────────────


class ChatOrchestrator:
    """Runs one chat turn through the compiled graph.

    Holds no per-request state, so one instance serves concurrent requests.
    LLM, store and embedding failures propagate to the caller unchanged;
    nothing is retried, because a retried turn could repeat a tool's side
    effects (e.g. queue the same material request twice).
    """

    def __init__(
        self,
        llm: LLMClient,
        tools: ToolRegistry,
        *,
        max_tool_rounds: int = MAX_TOOL_ROUNDS,
    ):
        self._llm = llm
        self._tools = tools
        self._max_tool_rounds = max(0, max_tool_rounds)
        self._graph = self._build_graph()

    # ── Nodes ────────────────────────────────────────────────────────

    def _decide(self, state: ChatState) -> dict:
        """Call the LLM with the transcript so far and parse its reply."""
        request = state["request"]
        turns = build_messages(
            request.message,
            request.conversation_history,
            request.custom_instructions,
            state["exchanges"],
        )
        raw = self._llm.complete(turns)
        decision = parse_llm_response(raw)
        llm_calls = state["llm_calls"] + 1
        logger.info(
            "LLM call %d for session=%s returned %s",
            llm_calls, request.session_id or "none", decision.type,
        )
        return {"decision": decision, "llm_calls": llm_calls}

    def _run_tool(self, state: ChatState) -> dict:
        """Execute the tool the LLM asked for and record the round."""
        exchange = self._tools.run(state["decision"])
        logger.info(
            "Tool %s output: %.200s", exchange.call.tool, exchange.output_json(),
        )
        return {"exchanges": [*state["exchanges"], exchange]}

    def _fallback(self, state: ChatState) -> dict:
        """Override a tool call that arrived after the last allowed round."""
        logger.warning(
            "LLM requested %s after %d tool round(s); returning fallback answer",
            state["decision"].tool, len(state["exchanges"]),
        )
        return {"decision": unable_to_complete_decision()}

    def _respond(self, state: ChatState) -> dict:
        """Build the client response from the final decision."""
        decision = state["decision"]
        request = state["request"]
        response = ChatResponse(
            message=decision.message or "",
            related_materials=list(decision.related_materials),
            suggested_actions=list(decision.suggested_actions),
            conversation_state=ConversationState(
                session_id=request.session_id or new_session_id(),
                last_updated=utc_timestamp(),
            ),
        )
        return {"response": response}

    # ── Conditional edges ────────────────────────────────────────────

    def _route_decision(self, state: ChatState) -> str:
        """Send a tool call to the tools node while rounds remain."""
        decision = state["decision"]
        if isinstance(decision, FinalDecision):
            return "respond"
        if isinstance(decision, ToolCallDecision):
            if len(state["exchanges"]) < self._max_tool_rounds:
                return "tools"
            return "fallback"
        raise TypeError(f"Unexpected decision type: {type(decision).__name__}")

    # ── Graph assembly ───────────────────────────────────────────────

    def _build_graph(self):
        graph = StateGraph(ChatState)

        graph.add_node("decide", self._decide)
        graph.add_node("tools", self._run_tool)
        graph.add_node("fallback", self._fallback)
        graph.add_node("respond", self._respond)

        graph.set_entry_point("decide")
        graph.add_conditional_edges(
            "decide",
            self._route_decision,
            {"respond": "respond", "tools": "tools", "fallback": "fallback"},
        )
        graph.add_edge("tools", "decide")
        graph.add_edge("fallback", "respond")
        graph.add_edge("respond", END)

        compiled = graph.compile()
        logger.debug("Chat graph compiled — max tool rounds: %d", self._max_tool_rounds)
        return compiled

    # ── Public API ───────────────────────────────────────────────────

    def chat(self, request: ChatRequest) -> ChatResponse:
        """Run one chat turn and return the response.

        Raises ``ChatRequestError`` for a blank message before any LLM call.
        """
        if not request.message.strip():
            raise ChatRequestError(MESSAGE_REQUIRED)

        logger.info(
            "Chat turn session=%s message=%.50r",
            request.session_id or "none", request.message,
        )
        final_state = self._graph.invoke(
            {
                "request": request,
                "exchanges": [],
                "decision": None,
                "llm_calls": 0,
                "response": None,
            },
            config={"recursion_limit": 2 * self._max_tool_rounds + 5},
        )
        return final_state["response"]


def create_chat_orchestrator(
    search: SimilaritySearch,
    material_requests: MaterialRequestQueue,
    llm: LLMClient | None = None,
) -> ChatOrchestrator:
    """Wire the orchestrator to its collaborators (default LLM if none given)."""
    tools = ToolRegistry(search, material_requests)
    return ChatOrchestrator(llm or LLMClient(), tools)
